# src/arcade_ledger/runtime/domain_apply.py
# ---------------------------------------------------------------------------
# Public, stable import path for applying tx envelopes.
# ---------------------------------------------------------------------------

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Callable, Dict

from arcade_ledger.ledger import balances
from arcade_ledger.ledger.constants import DEFAULT_PROGRAM_ID, FEE_REMAINDER_ESCROW
from arcade_ledger.runtime.arcade import ArcadeLedger, OpResult
from arcade_ledger.runtime.errors import FORBIDDEN, TX_UNIMPLEMENTED, ArcadeError
from arcade_ledger.runtime.state_invariants import check_invariants, ensure_state
from arcade_ledger.runtime.supported_txs import (
    ACCOUNT_AIRDROP,
    ARCADE_ADMIN_REMOVE,
    ARCADE_ADMINS_ADD,
    ARCADE_INITIALIZE,
    ARCADE_PLAY,
    ARCADE_PRICE_SET,
    ARCADE_SCORE_SUBMIT,
)
from arcade_ledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


@dataclass(frozen=True)
class ApplyContext:
    program_id: str = DEFAULT_PROGRAM_ID
    mode: str = "prod"
    default_fee_remainder_to: str = FEE_REMAINDER_ESCROW

    @property
    def dev_ops_allowed(self) -> bool:
        return self.mode != "prod"


def _apply_initialize(ledger: ArcadeLedger, env: TxEnvelope) -> OpResult:
    p = env.payload
    return ledger.initialize(
        env.signer,
        name=p.get("name"),
        max_top_scores=p.get("max_top_scores"),
        price_per_game=p.get("price_per_game"),
        admins=p.get("admins"),
        beneficiary=p.get("beneficiary"),
        fee_remainder_to=p.get("fee_remainder_to"),
    )


def _apply_play(ledger: ArcadeLedger, env: TxEnvelope) -> OpResult:
    return ledger.play(env.signer, env.arcade, lamports=env.payload.get("lamports"))


def _apply_score_submit(ledger: ArcadeLedger, env: TxEnvelope) -> OpResult:
    p = env.payload
    return ledger.submit_score(
        env.signer,
        env.arcade,
        player=p.get("player"),
        nickname=p.get("nickname"),
        score=p.get("score"),
        beneficiary_account=p.get("beneficiary_account"),
    )


def _apply_price_set(ledger: ArcadeLedger, env: TxEnvelope) -> OpResult:
    return ledger.set_price(env.signer, env.arcade, price_per_game=env.payload.get("price_per_game"))


def _apply_admins_add(ledger: ArcadeLedger, env: TxEnvelope) -> OpResult:
    return ledger.add_admins(env.signer, env.arcade, admins=env.payload.get("admins"))


def _apply_admin_remove(ledger: ArcadeLedger, env: TxEnvelope) -> OpResult:
    return ledger.remove_admin(env.signer, env.arcade, admin=env.payload.get("admin"))


_ARCADE_APPLIERS: Dict[str, Callable[[ArcadeLedger, TxEnvelope], OpResult]] = {
    ARCADE_INITIALIZE: _apply_initialize,
    ARCADE_PLAY: _apply_play,
    ARCADE_SCORE_SUBMIT: _apply_score_submit,
    ARCADE_PRICE_SET: _apply_price_set,
    ARCADE_ADMINS_ADD: _apply_admins_add,
    ARCADE_ADMIN_REMOVE: _apply_admin_remove,
}


def _apply_airdrop(state: Json, env: TxEnvelope, ctx: ApplyContext) -> OpResult:
    if not ctx.dev_ops_allowed:
        raise ArcadeError(FORBIDDEN, "airdrop_disabled_in_prod", {"mode": ctx.mode})
    account = str(env.payload.get("account") or env.signer).strip()
    lamports = env.payload.get("lamports")
    new_balance = balances.credit(state, account, lamports)
    return OpResult(
        data={"account": account, "balance": new_balance},
        events=[{"event": "account_airdropped", "account": account, "lamports": lamports}],
    )


def apply_tx(state: Json, env: Any, *, ctx: ApplyContext | None = None) -> Json:
    """Apply one envelope to `state` in place.

    Raises ArcadeError on any failure. `state` may be partially mutated when
    that happens; use apply_tx_atomic() unless you own a throwaway copy.
    """
    ctx = ctx or ApplyContext()
    env = TxEnvelope.from_json(env)
    ensure_state(state)

    t = env.tx_type
    fn = _ARCADE_APPLIERS.get(t)
    if fn is None and t != ACCOUNT_AIRDROP:
        raise ArcadeError(TX_UNIMPLEMENTED, "tx_type_not_implemented", {"tx_type": t})
    env.check_payload()

    if fn is None:
        res = _apply_airdrop(state, env, ctx)
    else:
        ledger = ArcadeLedger(
            state,
            program_id=ctx.program_id,
            default_fee_remainder_to=ctx.default_fee_remainder_to,
        )
        res = fn(ledger, env)

    return {"applied": t, "result": res.data, "events": res.events}


def apply_tx_atomic(state: Json, env: Any, *, ctx: ApplyContext | None = None) -> Json:
    """Apply a tx with fail-atomic semantics.

    On success the signer's nonce is set to env.nonce and `state` is updated
    in place. On ArcadeError (including an invariant violation) `state` is
    left exactly as it was; the nonce is not consumed either.
    """
    env_norm = TxEnvelope.from_json(env)

    working = copy.deepcopy(state)
    meta = apply_tx(working, env_norm, ctx=ctx)
    check_invariants(working, before=state)
    if env_norm.signer:
        balances.set_nonce(working, env_norm.signer, int(env_norm.nonce))

    # Commit by replacing contents in-place so callers holding references
    # to `state` see the updated view.
    state.clear()
    state.update(working)
    return meta


__all__ = ["ApplyContext", "ArcadeError", "apply_tx", "apply_tx_atomic", "Json"]
