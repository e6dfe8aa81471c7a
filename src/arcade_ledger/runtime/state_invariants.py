# src/arcade_ledger/runtime/state_invariants.py
from __future__ import annotations

"""State normalization and arcade record invariants.

World state is a JSON-like dict:

  {"accounts": {principal: {"balance", "nonce"}},
   "arcades":  {address:   {...record...}},
   "params":   {...}}

ensure_state() creates the core containers. check_invariants() is run by the
executor after every mutating operation, against the working copy, before
anything is committed. A violation there is a bug, never a user error, and
aborts the operation like any other ArcadeError.
"""

from collections.abc import MutableMapping
from typing import Any, Dict, Optional

from arcade_ledger.ledger.constants import MAX_ADMINS, MAX_TOP_SCORES, MIN_TOP_SCORES
from arcade_ledger.runtime.errors import INVARIANT_VIOLATION, ArcadeError

Json = Dict[str, Any]


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains core keys.

    Returns the (possibly mutated) dict.

    Raises:
        TypeError: if st or one of its core containers has the wrong type
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    for key in ("accounts", "arcades", "params"):
        v = st.get(key)
        if v is None:
            st[key] = {}
        elif not isinstance(v, dict):
            raise TypeError(f"state[{key!r}] must be dict, got {type(v)}")

    return st  # type: ignore[return-value]


def _fail(reason: str, address: str, **details: Any) -> None:
    details["arcade"] = address
    raise ArcadeError(INVARIANT_VIOLATION, reason, details)


def _balance(state: Optional[Json], address: str) -> int:
    acct = ((state or {}).get("accounts") or {}).get(address) or {}
    return int(acct.get("balance", 0) or 0)


def check_record(state: Json, rec: Json, prev: Optional[Json] = None, *, before: Optional[Json] = None) -> None:
    address = str(rec.get("address") or "")

    top = rec.get("top_scores") or []
    cap = int(rec.get("max_top_scores", 0) or 0)
    if not MIN_TOP_SCORES <= cap <= MAX_TOP_SCORES:
        _fail("capacity_out_of_range", address, capacity=cap)
    if len(top) > cap:
        _fail("leaderboard_over_capacity", address, size=len(top), capacity=cap)

    for a, b in zip(top, top[1:]):
        if int(a["score"]) < int(b["score"]):
            _fail("leaderboard_not_sorted", address, ahead=a, behind=b)
        if int(a["score"]) == int(b["score"]) and int(a["seq"]) > int(b["seq"]):
            _fail("leaderboard_tie_order_broken", address, ahead=a, behind=b)

    bal = _balance(state, address)
    reserve = int(rec.get("min_reserve", 0) or 0)
    if bal < reserve:
        _fail("escrow_below_reserve", address, balance=bal, min_reserve=reserve)

    admins = rec.get("admins") or []
    if not admins or len(admins) > MAX_ADMINS:
        _fail("admin_set_size", address, size=len(admins))

    if prev is not None:
        if int(rec.get("total_distributed", 0)) < int(prev.get("total_distributed", 0)):
            _fail("total_distributed_decreased", address)
        if int(rec.get("game_counter", 0)) < int(prev.get("game_counter", 0)):
            _fail("game_counter_decreased", address)
        if int(rec.get("max_top_scores", 0)) != int(prev.get("max_top_scores", 0)):
            _fail("capacity_changed", address)

        # Every lamport added to total_distributed must have left this escrow.
        paid = int(rec.get("total_distributed", 0)) - int(prev.get("total_distributed", 0))
        if paid > 0 and before is not None:
            outflow = _balance(before, address) - bal
            if outflow != paid:
                _fail("distribution_not_conserved", address, total_delta=paid, escrow_outflow=outflow)


def check_invariants(state: Json, before: Optional[Json] = None) -> None:
    """Check every arcade record in `state`.

    With `before`, also check monotonic fields against the prior committed
    state, that no record disappeared, and that any growth in
    total_distributed matches what actually left the escrow.
    """
    arcades = state.get("arcades") or {}
    prev_arcades = (before or {}).get("arcades") or {}

    for address in prev_arcades:
        if address not in arcades:
            _fail("record_removed", str(address))

    for address, rec in arcades.items():
        check_record(state, rec, prev_arcades.get(address), before=before)


__all__ = ["ensure_state", "check_invariants", "check_record"]
