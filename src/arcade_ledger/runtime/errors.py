from __future__ import annotations

from dataclasses import dataclass
from typing import Any

ALREADY_INITIALIZED = "already_initialized"
NOT_INITIALIZED = "not_initialized"
UNAUTHORIZED = "unauthorized"
INCORRECT_PAYMENT_AMOUNT = "incorrect_payment_amount"
INSUFFICIENT_AVAILABLE = "insufficient_available"
INVALID_SUBJECT = "invalid_subject"
LAST_ADMIN_REMOVAL = "last_admin_removal"
ARITHMETIC_OVERFLOW = "arithmetic_overflow"

INVALID_PAYLOAD = "invalid_payload"
INSUFFICIENT_FUNDS = "insufficient_funds"
TOO_MANY_ADMINS = "too_many_admins"
FORBIDDEN = "forbidden"
TX_UNIMPLEMENTED = "tx_unimplemented"
INVARIANT_VIOLATION = "invariant_violation"

# Admission-only codes; these never come out of apply.
BAD_NONCE = "bad_nonce"
BAD_SIG = "bad_sig"


@dataclass
class ArcadeError(Exception):
    """Canonical error type for arcade apply failures.

    A raised ArcadeError aborts the whole operation; callers never observe a
    partially applied state.
    """

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"
