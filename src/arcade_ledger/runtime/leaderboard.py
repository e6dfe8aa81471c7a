# src/arcade_ledger/runtime/leaderboard.py
from __future__ import annotations

"""Bounded top-N leaderboard.

Entries are kept sorted by score, highest first. Equal scores keep their
admission order: the earlier entry ranks ahead. That makes the last element
the one evicted on overflow (lowest score, latest among ties).

Each admitted entry is stamped with record["admission_seq"] so the tie order
survives serialization and can be re-checked by the invariant pass.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from arcade_ledger.ledger.balances import checked_add
from arcade_ledger.ledger.constants import MAX_NICKNAME_BYTES, U64_MAX
from arcade_ledger.runtime.errors import INVALID_PAYLOAD, ArcadeError

Json = Dict[str, Any]

INSERTED = "inserted"
REPLACED = "replaced"
REJECTED = "rejected"


@dataclass(frozen=True)
class ScoreEntry:
    player: str
    nickname: str
    score: int
    seq: int = 0

    @staticmethod
    def from_json(j: Any) -> "ScoreEntry":
        if isinstance(j, ScoreEntry):
            return j
        if not isinstance(j, dict):
            raise ArcadeError(INVALID_PAYLOAD, "score_entry_not_object", {"value": j})
        return ScoreEntry(
            player=str(j.get("player") or ""),
            nickname=str(j.get("nickname") or ""),
            score=j.get("score"),  # type: ignore[arg-type]
            seq=int(j.get("seq", 0) or 0),
        )

    def to_json(self) -> Json:
        return {"player": self.player, "nickname": self.nickname, "score": self.score, "seq": self.seq}

    def validate(self) -> "ScoreEntry":
        if not self.player.strip():
            raise ArcadeError(INVALID_PAYLOAD, "missing_player", {})
        nick_len = len(self.nickname.encode("utf-8"))
        if nick_len == 0 or nick_len > MAX_NICKNAME_BYTES:
            raise ArcadeError(
                INVALID_PAYLOAD,
                "bad_nickname_length",
                {"bytes": nick_len, "max": MAX_NICKNAME_BYTES},
            )
        if isinstance(self.score, bool) or not isinstance(self.score, int):
            raise ArcadeError(INVALID_PAYLOAD, "score_not_integer", {"score": self.score})
        if self.score < 0 or self.score > U64_MAX:
            raise ArcadeError(INVALID_PAYLOAD, "score_out_of_range", {"score": self.score})
        return self


@dataclass(frozen=True)
class AdmitResult:
    kind: str
    evicted: Optional[ScoreEntry] = None

    @property
    def changed(self) -> bool:
        return self.kind != REJECTED

    def to_json(self) -> Json:
        return {"kind": self.kind, "evicted": self.evicted.to_json() if self.evicted else None}


@dataclass(frozen=True)
class AdmitPlan:
    result: AdmitResult
    entries: Optional[List[ScoreEntry]]
    seq: int


class Leaderboard:
    def __init__(self, record: Json) -> None:
        self._record = record

    @property
    def capacity(self) -> int:
        return int(self._record.get("max_top_scores", 0) or 0)

    def entries(self) -> List[ScoreEntry]:
        raw = self._record.get("top_scores")
        if not isinstance(raw, list):
            return []
        return [ScoreEntry.from_json(e) for e in raw]

    def highest_score(self) -> Optional[int]:
        es = self.entries()
        return es[0].score if es else None

    def lowest_score(self) -> Optional[int]:
        es = self.entries()
        return es[-1].score if es else None

    def is_new_highest(self, score: int) -> bool:
        top = self.highest_score()
        return top is None or int(score) > top

    def plan(self, candidate: ScoreEntry) -> AdmitPlan:
        """Work out what admit() would do, without touching the record."""
        candidate.validate()
        es = self.entries()
        cap = self.capacity
        if cap <= 0:
            raise ArcadeError(INVALID_PAYLOAD, "leaderboard_has_no_capacity", {"max_top_scores": cap})

        evicted: Optional[ScoreEntry] = None
        if len(es) >= cap:
            if int(candidate.score) <= es[-1].score:
                return AdmitPlan(AdmitResult(REJECTED), None, 0)
            evicted = es[-1]
            es = es[:-1]

        seq = checked_add(int(self._record.get("admission_seq", 0) or 0), 1, what="admission_seq")
        placed = ScoreEntry(candidate.player, candidate.nickname, int(candidate.score), seq)

        # First slot strictly below the candidate: ties stay ahead of it.
        idx = len(es)
        for i, e in enumerate(es):
            if e.score < placed.score:
                idx = i
                break
        es.insert(idx, placed)

        result = AdmitResult(REPLACED, evicted) if evicted is not None else AdmitResult(INSERTED)
        return AdmitPlan(result, es, seq)

    def commit(self, plan: AdmitPlan) -> None:
        if plan.entries is None:
            return
        self._record["admission_seq"] = plan.seq
        self._record["top_scores"] = [e.to_json() for e in plan.entries]

    def admit(self, candidate: ScoreEntry) -> AdmitResult:
        plan = self.plan(candidate)
        self.commit(plan)
        return plan.result
