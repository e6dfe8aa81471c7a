# src/arcade_ledger/ledger/addressing.py
from __future__ import annotations

import hashlib
from typing import Tuple

from arcade_ledger.ledger.constants import ARCADE_SEED

_DOMAIN = b"arcade-ledger/derived-address/v1"


def _seed_bytes(seed: object) -> bytes:
    if isinstance(seed, bytes):
        return seed
    return str(seed).encode("utf-8")


def derive_address(program_id: str, *seeds: object) -> str:
    """
    Derive a storage address from a program id and an ordered list of seeds.

    Contract:
      - pure: same inputs, same address
      - seeds are length-prefixed, so ("ab", "c") != ("a", "bc")
      - program_id separates address spaces between deployments
    """
    if not seeds:
        raise ValueError("derive_address requires at least one seed")

    h = hashlib.sha256()
    h.update(_DOMAIN)
    pid = _seed_bytes(program_id)
    h.update(len(pid).to_bytes(4, "big"))
    h.update(pid)
    for s in seeds:
        b = _seed_bytes(s)
        h.update(len(b).to_bytes(4, "big"))
        h.update(b)
    return h.hexdigest()


def arcade_seeds(owner: str) -> Tuple[str, str]:
    return (ARCADE_SEED, str(owner))


def arcade_address(program_id: str, owner: str) -> str:
    """Address of the single arcade record owned by `owner`."""
    return derive_address(program_id, *arcade_seeds(owner))
