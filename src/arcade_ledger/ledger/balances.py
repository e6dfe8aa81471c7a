# src/arcade_ledger/ledger/balances.py
from __future__ import annotations

"""Account balances and nonces inside the world state.

This is the in-process stand-in for the payment network the arcade runs on:
state["accounts"][principal] = {"balance": int, "nonce": int}.

Only the interface boundary is modelled: credit, debit and transfer with
u64 bounds. Anything richer (fees, multi-asset) is out of scope.
"""

from typing import Any, Dict

from arcade_ledger.ledger.constants import U64_MAX
from arcade_ledger.runtime.errors import (
    ARITHMETIC_OVERFLOW,
    INSUFFICIENT_FUNDS,
    INVALID_PAYLOAD,
    ArcadeError,
)

Json = Dict[str, Any]


def checked_add(a: int, b: int, *, what: str) -> int:
    out = int(a) + int(b)
    if out > U64_MAX:
        raise ArcadeError(ARITHMETIC_OVERFLOW, f"{what}_overflow", {"a": int(a), "b": int(b)})
    return out


def _require_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ArcadeError(INVALID_PAYLOAD, "amount_not_integer", {"amount": amount})
    if amount < 0 or amount > U64_MAX:
        raise ArcadeError(INVALID_PAYLOAD, "amount_out_of_range", {"amount": amount})
    return amount


def _accounts(state: Json) -> Json:
    acc = state.get("accounts")
    if not isinstance(acc, dict):
        acc = {}
        state["accounts"] = acc
    return acc


def _touch(state: Json, principal: str) -> Json:
    accounts = _accounts(state)
    rec = accounts.get(principal)
    if not isinstance(rec, dict):
        rec = {"balance": 0, "nonce": 0}
        accounts[principal] = rec
    rec.setdefault("balance", 0)
    rec.setdefault("nonce", 0)
    return rec


def get_balance(state: Json, principal: str) -> int:
    rec = _accounts(state).get(principal)
    if not isinstance(rec, dict):
        return 0
    return int(rec.get("balance", 0) or 0)


def get_nonce(state: Json, principal: str) -> int:
    rec = _accounts(state).get(principal)
    if not isinstance(rec, dict):
        return 0
    return int(rec.get("nonce", 0) or 0)


def set_nonce(state: Json, principal: str, nonce: int) -> None:
    _touch(state, principal)["nonce"] = int(nonce)


def credit(state: Json, principal: str, amount: int) -> int:
    amount = _require_amount(amount)
    rec = _touch(state, principal)
    rec["balance"] = checked_add(int(rec["balance"]), amount, what="balance")
    return int(rec["balance"])


def debit(state: Json, principal: str, amount: int) -> int:
    amount = _require_amount(amount)
    rec = _touch(state, principal)
    have = int(rec["balance"])
    if amount > have:
        raise ArcadeError(
            INSUFFICIENT_FUNDS,
            "balance_too_low",
            {"account": principal, "balance": have, "amount": amount},
        )
    rec["balance"] = have - amount
    return int(rec["balance"])


def transfer(state: Json, src: str, dst: str, amount: int) -> None:
    """Move `amount` from src to dst. Either both legs apply or neither does."""
    amount = _require_amount(amount)
    if amount == 0 or src == dst:
        return
    if get_balance(state, src) < amount:
        raise ArcadeError(
            INSUFFICIENT_FUNDS,
            "balance_too_low",
            {"account": src, "balance": get_balance(state, src), "amount": amount},
        )
    # Check the credit side before touching the debit side.
    checked_add(get_balance(state, dst), amount, what="balance")
    debit(state, src, amount)
    credit(state, dst, amount)
