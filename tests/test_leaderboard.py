from __future__ import annotations

import pytest

from arcade_ledger.runtime.errors import ARITHMETIC_OVERFLOW, INVALID_PAYLOAD, ArcadeError
from arcade_ledger.runtime.leaderboard import INSERTED, REJECTED, REPLACED, Leaderboard, ScoreEntry


def _record(cap: int) -> dict:
    return {"max_top_scores": cap, "top_scores": [], "admission_seq": 0}


def _e(player: str, score: int) -> ScoreEntry:
    return ScoreEntry(player=player, nickname=player[:3], score=score)


def _scores(rec: dict) -> list:
    return [(e["player"], e["score"]) for e in rec["top_scores"]]


def test_insert_keeps_descending_order() -> None:
    rec = _record(5)
    lb = Leaderboard(rec)
    for p, s in [("a", 10), ("b", 30), ("c", 20)]:
        assert lb.admit(_e(p, s)).kind == INSERTED
    assert _scores(rec) == [("b", 30), ("c", 20), ("a", 10)]
    assert lb.highest_score() == 30
    assert lb.lowest_score() == 10


def test_ties_keep_admission_order() -> None:
    rec = _record(4)
    lb = Leaderboard(rec)
    lb.admit(_e("first", 50))
    lb.admit(_e("second", 50))
    lb.admit(_e("low", 10))
    lb.admit(_e("third", 50))
    assert [p for p, _ in _scores(rec)] == ["first", "second", "third", "low"]
    seqs = [e["seq"] for e in rec["top_scores"][:3]]
    assert seqs == sorted(seqs)


def test_full_board_rejects_score_not_above_lowest() -> None:
    rec = _record(2)
    lb = Leaderboard(rec)
    lb.admit(_e("a", 90))
    lb.admit(_e("b", 80))
    before = [dict(e) for e in rec["top_scores"]]

    assert lb.admit(_e("c", 70)).kind == REJECTED
    # Equal to the lowest is not enough either.
    assert lb.admit(_e("d", 80)).kind == REJECTED
    assert rec["top_scores"] == before


def test_full_board_replaces_last_entry() -> None:
    rec = _record(2)
    lb = Leaderboard(rec)
    lb.admit(_e("a", 90))
    lb.admit(_e("b", 80))

    res = lb.admit(_e("c", 85))
    assert res.kind == REPLACED
    assert res.evicted is not None and res.evicted.player == "b"
    assert _scores(rec) == [("a", 90), ("c", 85)]


def test_eviction_among_ties_drops_latest() -> None:
    rec = _record(2)
    lb = Leaderboard(rec)
    lb.admit(_e("early", 10))
    lb.admit(_e("late", 10))
    res = lb.admit(_e("new", 20))
    assert res.evicted is not None and res.evicted.player == "late"
    assert _scores(rec) == [("new", 20), ("early", 10)]


def test_plan_does_not_mutate_until_commit() -> None:
    rec = _record(3)
    lb = Leaderboard(rec)
    plan = lb.plan(_e("a", 5))
    assert rec["top_scores"] == []
    assert rec["admission_seq"] == 0
    lb.commit(plan)
    assert _scores(rec) == [("a", 5)]
    assert rec["admission_seq"] == 1


def test_is_new_highest_on_empty_and_ties() -> None:
    lb = Leaderboard(_record(3))
    assert lb.is_new_highest(0) is True
    lb.admit(_e("a", 40))
    assert lb.is_new_highest(40) is False
    assert lb.is_new_highest(41) is True


@pytest.mark.parametrize(
    "entry",
    [
        ScoreEntry(player="", nickname="x", score=1),
        ScoreEntry(player="p", nickname="", score=1),
        ScoreEntry(player="p", nickname="n" * 33, score=1),
        ScoreEntry(player="p", nickname="n", score=-1),
        ScoreEntry(player="p", nickname="n", score=2**64),
        ScoreEntry(player="p", nickname="n", score="12"),  # type: ignore[arg-type]
        ScoreEntry(player="p", nickname="n", score=True),  # type: ignore[arg-type]
    ],
)
def test_invalid_entries_rejected(entry: ScoreEntry) -> None:
    rec = _record(3)
    with pytest.raises(ArcadeError) as ei:
        Leaderboard(rec).admit(entry)
    assert ei.value.code == INVALID_PAYLOAD
    assert rec["top_scores"] == []


def test_admission_seq_overflow_is_checked() -> None:
    rec = _record(3)
    rec["admission_seq"] = 2**64 - 1
    with pytest.raises(ArcadeError) as ei:
        Leaderboard(rec).admit(_e("a", 1))
    assert ei.value.code == ARITHMETIC_OVERFLOW


@pytest.mark.parametrize("cap", [0, -1])
def test_board_without_capacity_refuses_admission(cap: int) -> None:
    rec = _record(cap)
    with pytest.raises(ArcadeError) as ei:
        Leaderboard(rec).admit(_e("a", 1))
    assert ei.value.code == INVALID_PAYLOAD
    assert rec["top_scores"] == []
