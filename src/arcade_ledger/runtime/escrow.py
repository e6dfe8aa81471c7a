# src/arcade_ledger/runtime/escrow.py
from __future__ import annotations

"""Prize escrow held by an arcade record, and the record's signing authority.

The escrow balance lives at the record's own address in state["accounts"].
Funds leave it through two paths only: the beneficiary's cut of an entry fee
(which never lands in escrow) and withdraw(), which must be authorized by the
record's own SigningAuthority.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from arcade_ledger.ledger import balances
from arcade_ledger.ledger.addressing import arcade_seeds, derive_address
from arcade_ledger.runtime.errors import (
    INSUFFICIENT_AVAILABLE,
    INVALID_PAYLOAD,
    INVALID_SUBJECT,
    UNAUTHORIZED,
    ArcadeError,
)

Json = Dict[str, Any]

_MINT = object()


@dataclass(frozen=True)
class SigningAuthority:
    """Capability letting one record authorize transfers out of its own escrow.

    Minted only via for_record(). The address is re-derived from program_id
    and seeds on every check, so an authority is only ever valid for the
    record it was derived from.
    """

    program_id: str
    seeds: Tuple[str, ...]
    address: str
    _mint: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self._mint is not _MINT:
            raise ArcadeError(UNAUTHORIZED, "authority_not_minted", {"address": self.address})

    @classmethod
    def for_record(cls, record: Json, *, program_id: str) -> "SigningAuthority":
        seeds = arcade_seeds(str(record.get("owner") or ""))
        return cls(
            program_id=str(program_id),
            seeds=tuple(seeds),
            address=derive_address(program_id, *seeds),
            _mint=_MINT,
        )

    def verify(self, address: str) -> bool:
        return self.address == address and derive_address(self.program_id, *self.seeds) == address


class EscrowAccount:
    def __init__(self, state: Json, record: Json) -> None:
        self._state = state
        self._record = record

    @property
    def address(self) -> str:
        return str(self._record.get("address") or "")

    def balance(self) -> int:
        return balances.get_balance(self._state, self.address)

    def min_reserve(self) -> int:
        return int(self._record.get("min_reserve", 0) or 0)

    def available_for_payout(self) -> int:
        return max(0, self.balance() - self.min_reserve())

    def deposit(self, src: str, amount: int) -> None:
        balances.transfer(self._state, src, self.address, amount)

    def withdraw(self, amount: int, destination: str, authority: SigningAuthority) -> None:
        if not isinstance(authority, SigningAuthority) or not authority.verify(self.address):
            raise ArcadeError(
                UNAUTHORIZED,
                "authority_not_bound_to_escrow",
                {"escrow": self.address, "authority": getattr(authority, "address", None)},
            )
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ArcadeError(INVALID_PAYLOAD, "bad_withdraw_amount", {"amount": amount})
        if destination == self.address:
            raise ArcadeError(INVALID_SUBJECT, "withdraw_to_own_escrow", {"escrow": self.address})
        available = self.available_for_payout()
        if amount > available:
            raise ArcadeError(
                INSUFFICIENT_AVAILABLE,
                "withdraw_exceeds_available",
                {"amount": amount, "available": available, "min_reserve": self.min_reserve()},
            )
        balances.transfer(self._state, self.address, destination, amount)
