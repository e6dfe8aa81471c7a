# src/arcade_ledger/runtime/tx_admission.py
from __future__ import annotations

"""Stateless and state-dependent checks a tx must pass before apply.

Admission never mutates state. Its job is to reject envelopes that could not
possibly apply (unknown type, bad shape, bad signature, wrong nonce) with a
TxVerdict instead of an exception.
"""

from typing import Any, Dict

from arcade_ledger.crypto.sig import canonical_tx_message, verify_ed25519_signature
from arcade_ledger.ledger import balances
from arcade_ledger.runtime.errors import (
    BAD_NONCE,
    BAD_SIG,
    FORBIDDEN,
    INVALID_PAYLOAD,
    TX_UNIMPLEMENTED,
    ArcadeError,
)
from arcade_ledger.runtime.supported_txs import DEV_ONLY_TX_TYPES, SUPPORTED_TX_TYPES
from arcade_ledger.runtime.tx_admission_types import TxEnvelope, TxVerdict

Json = Dict[str, Any]


def admit_tx(
    state: Json,
    tx: Any,
    *,
    chain_id: str,
    mode: str = "prod",
    allow_unsigned: bool = False,
) -> TxVerdict:
    try:
        env = TxEnvelope.from_json(tx)
    except ArcadeError as e:
        return TxVerdict.from_error(e)

    if env.tx_type not in SUPPORTED_TX_TYPES:
        return TxVerdict.reject(TX_UNIMPLEMENTED, "unknown_tx_type", {"tx_type": env.tx_type})

    if env.tx_type in DEV_ONLY_TX_TYPES and mode == "prod":
        return TxVerdict.reject(FORBIDDEN, "dev_only_tx_type", {"tx_type": env.tx_type, "mode": mode})

    if not env.signer:
        return TxVerdict.reject(INVALID_PAYLOAD, "missing_signer", {})

    try:
        env.check_payload()
    except ArcadeError as e:
        return TxVerdict.from_error(e)

    expected = balances.get_nonce(state, env.signer) + 1
    if env.nonce != expected:
        return TxVerdict.reject(
            BAD_NONCE,
            "nonce_mismatch",
            {"signer": env.signer, "nonce": env.nonce, "expected": expected},
        )

    if allow_unsigned and not env.sig:
        return TxVerdict.admit()

    # Principals are hex-encoded Ed25519 public keys; the signer verifies itself.
    msg = canonical_tx_message(
        chain_id=chain_id,
        tx_type=env.tx_type,
        signer=env.signer,
        nonce=env.nonce,
        payload=env.payload,
    )
    if not env.sig or not verify_ed25519_signature(message=msg, sig=env.sig, pubkey=env.signer):
        return TxVerdict.reject(BAD_SIG, "signature_invalid", {"signer": env.signer})

    return TxVerdict.admit()
