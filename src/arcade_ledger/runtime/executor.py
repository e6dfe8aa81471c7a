from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from arcade_ledger.api.structured_logging import log_event
from arcade_ledger.ledger import balances
from arcade_ledger.ledger.constants import DEFAULT_PROGRAM_ID, FEE_REMAINDER_ESCROW
from arcade_ledger.ledger.state import ArcadeView
from arcade_ledger.runtime.domain_apply import ApplyContext, apply_tx_atomic
from arcade_ledger.runtime.errors import INVALID_PAYLOAD, ArcadeError
from arcade_ledger.runtime.node_config import load_node_config
from arcade_ledger.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from arcade_ledger.runtime.state_invariants import ensure_state
from arcade_ledger.runtime.tx_admission import admit_tx
from arcade_ledger.runtime.tx_admission_types import TxEnvelope
from arcade_ledger.runtime.tx_id import compute_tx_id_from_envelope

Json = Dict[str, Any]

_log = logging.getLogger("arcade_ledger.executor")


def _now_ms() -> int:
    return int(time.time() * 1000)


class ExecutorError(RuntimeError):
    pass


@dataclass
class SubmitMeta:
    ok: bool
    tx_id: str = ""
    seq: int = 0
    error: str = ""
    reason: str = ""
    details: Any = None
    result: Optional[Json] = None
    events: Optional[List[Json]] = None

    def to_json(self) -> Json:
        if not self.ok:
            out: Json = {"ok": False, "error": self.error, "reason": self.reason}
            if self.details is not None:
                out["details"] = self.details
            if self.tx_id:
                out["tx_id"] = self.tx_id
            return out
        return {
            "ok": True,
            "tx_id": self.tx_id,
            "seq": self.seq,
            "result": self.result or {},
            "events": list(self.events or []),
        }


class ArcadeExecutor:
    """Arcade node executor using SQLite for persistence.

    Every accepted envelope is admitted, applied against a deep copy of the
    in-memory state, checked, and then persisted (snapshot, events, receipt)
    in a single SQLite write transaction. Only after the commit succeeds does
    the in-memory state move forward, so a failure anywhere leaves both disk
    and memory exactly as they were.
    """

    def __init__(
        self,
        *,
        db_path: str,
        node_id: str,
        chain_id: str,
        program_id: str = DEFAULT_PROGRAM_ID,
        mode: str = "prod",
        allow_unsigned_txs: bool = False,
        fee_remainder_to: str = FEE_REMAINDER_ESCROW,
        genesis_balances: Optional[Mapping[str, int]] = None,
    ) -> None:
        self.node_id = str(node_id)
        self.chain_id = str(chain_id)
        self.program_id = str(program_id)
        self.mode = str(mode or "prod").strip().lower()
        self.allow_unsigned_txs = bool(allow_unsigned_txs)
        self.db_path = str(db_path)
        self.genesis_balances = dict(genesis_balances or {})

        if self.allow_unsigned_txs and self.mode == "prod":
            raise ExecutorError("allow_unsigned_txs is not permitted in prod mode. Refuse to start.")

        self._ctx = ApplyContext(
            program_id=self.program_id,
            mode=self.mode,
            default_fee_remainder_to=str(fee_remainder_to),
        )

        self._db = SqliteDB(path=self.db_path)
        self._store = SqliteLedgerStore(db=self._db)
        self._lock = threading.Lock()

        if self._store.exists():
            self.state = self._store.read()
            self._seq = self._store.read_seq()
        else:
            self.state = self._initial_state()
            self._seq = 0
            self._store.write(self.state, seq=0)

        for key, want in (("chain_id", self.chain_id), ("program_id", self.program_id)):
            have = str(self.state.get(key) or "").strip()
            if have and have != want:
                raise ExecutorError(f"{key} mismatch: db={have!r} executor={want!r}. Refuse to start.")
            self.state[key] = want

        ensure_state(self.state)

        log_event(
            _log,
            "executor_started",
            node_id=self.node_id,
            chain_id=self.chain_id,
            program_id=self.program_id,
            mode=self.mode,
            seq=self._seq,
            arcades=len(self.state["arcades"]),
        )

    def _initial_state(self) -> Json:
        st: Json = {
            "chain_id": self.chain_id,
            "program_id": self.program_id,
            "accounts": {},
            "arcades": {},
            "params": {},
            "created_ms": _now_ms(),
        }
        # Genesis funding applies to a brand-new ledger only; a restart reads the snapshot.
        for account, amount in sorted(self.genesis_balances.items()):
            balances.credit(st, account, amount)
        if self.genesis_balances:
            log_event(
                _log,
                "genesis_funded",
                accounts=len(self.genesis_balances),
                lamports=sum(self.genesis_balances.values()),
            )
        return st

    # ----------------------------
    # Public accessors
    # ----------------------------

    @property
    def store(self) -> SqliteLedgerStore:
        return self._store

    @property
    def seq(self) -> int:
        return self._seq

    def read_state(self) -> Json:
        return self.state

    def snapshot(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def view(self) -> ArcadeView:
        return ArcadeView.from_state(self.snapshot(), program_id=self.program_id)

    def events(self, arcade: str, *, after_id: int = 0, limit: int = 100) -> List[Json]:
        return self._store.events(arcade, after_id=after_id, limit=limit)

    def receipt(self, tx_id: str) -> Optional[Json]:
        return self._store.receipt(tx_id)

    # ----------------------------
    # Tx submission
    # ----------------------------

    def submit_tx(self, env: Json) -> Json:
        return self._submit(env).to_json()

    def _submit(self, env: Any) -> SubmitMeta:
        if not isinstance(env, dict):
            return SubmitMeta(ok=False, error=INVALID_PAYLOAD, reason="envelope_not_object")

        with self._lock:
            verdict = admit_tx(
                self.state,
                env,
                chain_id=self.chain_id,
                mode=self.mode,
                allow_unsigned=self.allow_unsigned_txs,
            )
            if not verdict.ok:
                log_event(_log, "tx_rejected", code=verdict.code, reason=verdict.reason, tx_type=env.get("tx_type"))
                return SubmitMeta(ok=False, error=verdict.code, reason=verdict.reason, details=verdict.details)

            txe = TxEnvelope.from_json(env)
            tx_id = compute_tx_id_from_envelope(self.chain_id, txe)

            working = copy.deepcopy(self.state)
            try:
                meta = apply_tx_atomic(working, txe, ctx=self._ctx)
            except ArcadeError as e:
                log_event(
                    _log,
                    "tx_failed",
                    tx_id=tx_id,
                    tx_type=txe.tx_type,
                    signer=txe.signer,
                    code=e.code,
                    reason=e.reason,
                )
                return SubmitMeta(ok=False, tx_id=tx_id, error=e.code, reason=e.reason, details=e.details)

            seq = self._seq + 1
            events = [dict(ev, tx_id=tx_id) for ev in meta.get("events") or []]
            self._store.commit(
                working,
                seq=seq,
                tx_id=tx_id,
                tx_type=txe.tx_type,
                signer=txe.signer,
                result=meta.get("result") or {},
                events=events,
            )

            self.state = working
            self._seq = seq

        log_event(_log, "tx_applied", tx_id=tx_id, tx_type=txe.tx_type, signer=txe.signer, seq=seq)
        for ev in events:
            log_event(_log, "arcade_event", payload=ev)

        return SubmitMeta(ok=True, tx_id=tx_id, seq=seq, result=meta.get("result") or {}, events=events)

    # ----------------------------
    # Orchestration hooks
    # ----------------------------

    @classmethod
    def from_env(cls) -> "ArcadeExecutor":
        cfg = load_node_config()
        return cls(
            db_path=cfg.db_path,
            node_id=cfg.node_id,
            chain_id=cfg.chain_id,
            program_id=cfg.program_id,
            mode=cfg.mode,
            allow_unsigned_txs=cfg.allow_unsigned_txs,
            fee_remainder_to=cfg.fee_remainder_to,
            genesis_balances=cfg.genesis_balances,
        )
