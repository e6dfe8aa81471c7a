# src/arcade_ledger/runtime/tx_admission_types.py
from __future__ import annotations

"""Arcade tx envelope and the verdict admission hands back.

Envelope parsing raises ArcadeError(invalid_payload) rather than coercing:
a bool nonce, a non-object payload or a missing tx_type never reaches apply.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from arcade_ledger.runtime.errors import INVALID_PAYLOAD, TX_UNIMPLEMENTED, ArcadeError
from arcade_ledger.runtime.supported_txs import PAYLOAD_FIELDS

Json = Dict[str, Any]


@dataclass(frozen=True)
class TxVerdict:
    ok: bool
    code: str = ""
    reason: str = ""
    details: Optional[Json] = None

    def __iter__(self) -> Iterator[Any]:
        """`ok, err = admit_tx(...)`; err is the rejection as an ArcadeError, or None."""
        yield self.ok
        yield None if self.ok else self.to_error()

    @staticmethod
    def admit() -> "TxVerdict":
        return TxVerdict(True)

    @staticmethod
    def reject(code: str, reason: str, details: Optional[Json] = None) -> "TxVerdict":
        return TxVerdict(False, code, reason, details)

    @staticmethod
    def from_error(e: ArcadeError) -> "TxVerdict":
        return TxVerdict(False, e.code, e.reason, e.details)

    def to_error(self) -> ArcadeError:
        return ArcadeError(self.code, self.reason, self.details)


def _bad(reason: str, **details: Any) -> ArcadeError:
    return ArcadeError(INVALID_PAYLOAD, reason, details)


@dataclass(frozen=True)
class TxEnvelope:
    tx_type: str
    signer: str
    nonce: int
    payload: Json
    sig: str = ""

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            raise _bad("envelope_not_object", type=type(j).__name__)

        tx_type = j.get("tx_type")
        if not isinstance(tx_type, str) or not tx_type.strip():
            raise _bad("missing_tx_type")

        nonce = j.get("nonce", 0)
        if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
            raise _bad("bad_nonce_type", nonce=nonce)

        payload = j.get("payload", {})
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise _bad("payload_not_object", type=type(payload).__name__)

        signer = j.get("signer") or ""
        sig = j.get("sig") or ""
        if not isinstance(signer, str) or not isinstance(sig, str):
            raise _bad("signer_and_sig_must_be_strings")

        return TxEnvelope(
            tx_type=tx_type.strip().upper(),
            signer=signer.strip(),
            nonce=nonce,
            payload=dict(payload),
            sig=sig,
        )

    @property
    def arcade(self) -> str:
        """Target record address, for the tx types that name one."""
        a = self.payload.get("arcade")
        if not isinstance(a, str) or not a.strip():
            raise _bad("missing_arcade", tx_type=self.tx_type)
        return a.strip()

    def check_payload(self) -> None:
        """Reject payloads whose keys don't match the tx type's shape."""
        shape = PAYLOAD_FIELDS.get(self.tx_type)
        if shape is None:
            raise ArcadeError(TX_UNIMPLEMENTED, "unknown_tx_type", {"tx_type": self.tx_type})
        required, optional = shape
        keys = set(self.payload)
        missing = sorted(required - keys)
        if missing:
            raise _bad("missing_fields", tx_type=self.tx_type, fields=missing)
        unknown = sorted(keys - required - optional)
        if unknown:
            raise _bad("unknown_fields", tx_type=self.tx_type, fields=unknown)

    def to_json(self) -> Json:
        return {
            "tx_type": self.tx_type,
            "signer": self.signer,
            "nonce": self.nonce,
            "payload": self.payload,
            "sig": self.sig,
        }
