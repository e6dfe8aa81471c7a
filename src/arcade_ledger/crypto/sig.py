# src/arcade_ledger/crypto/sig.py
from __future__ import annotations

import base64
import json
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

Json = Dict[str, Any]


def _decode_bytes(s: str) -> bytes:
    s = s.strip()
    if not s:
        raise ValueError("empty string")
    try:
        return bytes.fromhex(s)
    except ValueError:
        pass
    try:
        padding = "=" * (-len(s) % 4)
        s2 = (s + padding).replace("-", "+").replace("_", "/")
        return base64.b64decode(s2, validate=True)
    except (ValueError, TypeError) as e:
        raise ValueError("not hex or base64") from e


def canonical_tx_message(*, chain_id: str, tx_type: str, signer: str, nonce: int, payload: Json) -> bytes:
    """Bytes a signer commits to. The chain id keeps signatures from replaying across deployments."""
    obj: Json = {
        "chain_id": str(chain_id),
        "tx_type": str(tx_type),
        "signer": str(signer),
        "nonce": int(nonce),
        "payload": payload if isinstance(payload, dict) else {},
    }
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def verify_ed25519_signature(*, message: bytes, sig: str, pubkey: str) -> bool:
    try:
        key = Ed25519PublicKey.from_public_bytes(_decode_bytes(pubkey))
        key.verify(_decode_bytes(sig), message)
        return True
    except (InvalidSignature, ValueError):
        return False


def _private_key(privkey: str) -> Ed25519PrivateKey:
    pk_b = _decode_bytes(privkey)
    # 64-byte expanded keys carry the seed in the first half.
    if len(pk_b) == 64:
        pk_b = pk_b[:32]
    if len(pk_b) != 32:
        raise ValueError("ed25519 privkey must be 32-byte seed (or 64-byte expanded key)")
    return Ed25519PrivateKey.from_private_bytes(pk_b)


def public_key_hex(privkey: str) -> str:
    """Principal id (hex public key) for a private key seed."""
    return _private_key(privkey).public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


def sign_ed25519(*, message: bytes, privkey: str, encoding: str = "hex") -> str:
    """Sign a message with an Ed25519 private key.

    privkey: hex or base64/base64url string representing 32-byte seed or 64-byte private key.
    encoding: "hex" (default) or "b64".
    """
    sig_b = _private_key(privkey).sign(message)
    if encoding == "hex":
        return sig_b.hex()
    if encoding in {"b64", "base64"}:
        return base64.b64encode(sig_b).decode("ascii")
    raise ValueError("unsupported encoding")


def sign_tx_envelope_dict(*, tx: Json, privkey: str, chain_id: str, encoding: str = "hex") -> Json:
    """Return a copy of tx with its 'sig' field populated.

    Expected shape (extra keys allowed):
      {"tx_type": str, "signer": str, "nonce": int, "payload": dict}
    """
    tx_type = str(tx.get("tx_type") or "").strip().upper()
    signer = str(tx.get("signer") or "").strip()
    nonce = int(tx.get("nonce") or 0)
    payload = tx.get("payload") if isinstance(tx.get("payload"), dict) else {}

    msg = canonical_tx_message(chain_id=chain_id, tx_type=tx_type, signer=signer, nonce=nonce, payload=payload)

    out = dict(tx)
    out["tx_type"] = tx_type
    out["signer"] = signer
    out["nonce"] = nonce
    out["payload"] = payload
    out["sig"] = sign_ed25519(message=msg, privkey=privkey, encoding=encoding)
    return out
