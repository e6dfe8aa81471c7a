from __future__ import annotations

import copy

import pytest

from arcade_ledger.ledger import balances
from arcade_ledger.ledger.addressing import arcade_address
from arcade_ledger.ledger.constants import DEFAULT_PROGRAM_ID, minimum_balance, record_size
from arcade_ledger.runtime.arcade import ArcadeLedger
from arcade_ledger.runtime.errors import (
    ALREADY_INITIALIZED,
    INVALID_PAYLOAD,
    INVALID_SUBJECT,
    LAST_ADMIN_REMOVAL,
    NOT_INITIALIZED,
    UNAUTHORIZED,
    ArcadeError,
)


def _submit(ledger: ArcadeLedger, arcade: str, player: str, score: int, *, caller: str = "owner"):
    return ledger.submit_score(
        caller,
        arcade,
        player=player,
        nickname=player[:8],
        score=score,
        beneficiary_account=player,
    )


def test_initialize_funds_reserve_and_sets_defaults(state, ledger) -> None:
    owner_before = balances.get_balance(state, "owner")
    res = ledger.initialize("owner", name="Arcade", max_top_scores=3, price_per_game=100)
    address = res.data["arcade"]

    assert address == arcade_address(DEFAULT_PROGRAM_ID, "owner")
    rec = ledger.record(address)
    assert rec["record_size"] == record_size(3) == 883
    assert rec["min_reserve"] == minimum_balance(883) == 7_036_560
    assert balances.get_balance(state, address) == rec["min_reserve"]
    assert balances.get_balance(state, "owner") == owner_before - rec["min_reserve"]
    assert rec["admins"] == ["owner"]
    assert rec["beneficiary"] == "owner"
    assert ledger.get_top_scores(address) == []
    assert ledger.get_game_counter(address) == 0
    assert ledger.get_total_distributed(address) == 0
    assert ledger.get_price_per_game(address) == 100
    assert ledger.get_available_for_payout(address) == 0
    assert [e["event"] for e in res.events] == ["arcade_initialized"]


def test_initialize_twice_fails(ledger, arcade) -> None:
    with pytest.raises(ArcadeError) as ei:
        ledger.initialize("owner", name="Again", max_top_scores=3, price_per_game=1)
    assert ei.value.code == ALREADY_INITIALIZED


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "", "max_top_scores": 3, "price_per_game": 1},
        {"name": "x" * 257, "max_top_scores": 3, "price_per_game": 1},
        {"name": "ok", "max_top_scores": 0, "price_per_game": 1},
        {"name": "ok", "max_top_scores": 256, "price_per_game": 1},
        {"name": "ok", "max_top_scores": 3, "price_per_game": -1},
        {"name": "ok", "max_top_scores": 3, "price_per_game": 1, "fee_remainder_to": "nobody"},
    ],
)
def test_initialize_validates_arguments(state, ledger, kwargs) -> None:
    before = copy.deepcopy(state)
    with pytest.raises(ArcadeError) as ei:
        ledger.initialize("alice", **kwargs)
    assert ei.value.code == INVALID_PAYLOAD
    assert state == before


def test_operations_on_missing_record_fail(ledger) -> None:
    with pytest.raises(ArcadeError) as ei:
        ledger.play("alice", "no-such-arcade", lamports=1)
    assert ei.value.code == NOT_INITIALIZED


# ----------------------------
# Worked scenarios
# ----------------------------


def test_scenario_two_plays_split_fees(state, ledger, arcade) -> None:
    reserve = ledger.record(arcade)["min_reserve"]
    owner_before = balances.get_balance(state, "owner")

    ledger.play("alice", arcade, lamports=100)
    ledger.play("bob", arcade, lamports=100)

    assert ledger.get_game_counter(arcade) == 2
    assert ledger.get_escrow_balance(arcade) == reserve + 100
    assert ledger.get_available_for_payout(arcade) == 100
    assert balances.get_balance(state, "owner") == owner_before + 100


def test_scenario_first_score_takes_the_pool(state, ledger, arcade) -> None:
    ledger.play("alice", arcade, lamports=100)
    ledger.play("bob", arcade, lamports=100)
    alice_before = balances.get_balance(state, "alice")

    res = _submit(ledger, arcade, "alice", 50)

    assert res.data["kind"] == "inserted"
    assert res.data["new_highest"] is True
    assert res.data["payout"] == 100
    assert balances.get_balance(state, "alice") == alice_before + 100
    assert ledger.get_total_distributed(arcade) == 100
    assert ledger.get_available_for_payout(arcade) == 0
    assert [e["event"] for e in res.events] == ["score_submitted", "prize_paid"]


def test_scenario_full_board_rejects_low_score(state, ledger, arcade) -> None:
    for p, s in [("alice", 100), ("bob", 90), ("carol", 80)]:
        _submit(ledger, arcade, p, s)
    ledger.play("alice", arcade, lamports=100)
    board_before = ledger.get_top_scores(arcade)
    total_before = ledger.get_total_distributed(arcade)
    escrow_before = ledger.get_escrow_balance(arcade)

    res = _submit(ledger, arcade, "mallory", 70)

    assert res.data["kind"] == "rejected"
    assert res.data["payout"] == 0
    assert ledger.get_top_scores(arcade) == board_before
    assert ledger.get_total_distributed(arcade) == total_before
    assert ledger.get_escrow_balance(arcade) == escrow_before


def test_scenario_full_board_new_maximum_replaces_and_pays(state, ledger, arcade) -> None:
    for p, s in [("alice", 90), ("bob", 85), ("carol", 80)]:
        _submit(ledger, arcade, p, s)
    ledger.play("bob", arcade, lamports=100)
    ledger.play("carol", arcade, lamports=100)
    mallory_before = balances.get_balance(state, "mallory")

    res = _submit(ledger, arcade, "mallory", 95)

    assert res.data["kind"] == "replaced"
    assert res.data["evicted"]["player"] == "carol"
    assert res.data["payout"] == 100
    assert balances.get_balance(state, "mallory") == mallory_before + 100
    assert [e["player"] for e in ledger.get_top_scores(arcade)] == ["mallory", "alice", "bob"]


def test_scenario_removing_last_admin_fails(ledger, arcade) -> None:
    with pytest.raises(ArcadeError) as ei:
        ledger.remove_admin("owner", arcade, admin="owner")
    assert ei.value.code == LAST_ADMIN_REMOVAL
    assert ledger.record(arcade)["admins"] == ["owner"]


# ----------------------------
# Prize distribution details
# ----------------------------


def test_admitted_but_not_highest_pays_nothing(state, ledger, arcade) -> None:
    _submit(ledger, arcade, "alice", 100)
    ledger.play("bob", arcade, lamports=100)
    res = _submit(ledger, arcade, "bob", 60)
    assert res.data["kind"] == "inserted"
    assert res.data["new_highest"] is False
    assert res.data["payout"] == 0
    assert ledger.get_available_for_payout(arcade) == 50


def test_new_highest_with_empty_pool_pays_zero(ledger, arcade) -> None:
    res = _submit(ledger, arcade, "alice", 10)
    assert res.data["new_highest"] is True
    assert res.data["payout"] == 0
    assert [e["event"] for e in res.events] == ["score_submitted"]


def test_score_subject_must_match_beneficiary_account(state, ledger, arcade) -> None:
    ledger.play("alice", arcade, lamports=100)
    before = copy.deepcopy(state)
    with pytest.raises(ArcadeError) as ei:
        ledger.submit_score(
            "owner", arcade, player="alice", nickname="al", score=5, beneficiary_account="mallory"
        )
    assert ei.value.code == INVALID_SUBJECT
    assert state == before


def test_only_admins_submit_scores_or_set_price(state, ledger, arcade) -> None:
    before = copy.deepcopy(state)
    with pytest.raises(ArcadeError) as ei:
        _submit(ledger, arcade, "mallory", 1_000, caller="mallory")
    assert ei.value.code == UNAUTHORIZED
    with pytest.raises(ArcadeError) as ei:
        ledger.set_price("mallory", arcade, price_per_game=0)
    assert ei.value.code == UNAUTHORIZED
    assert state == before


def test_added_admin_can_act_and_price_change_applies(state, ledger, arcade) -> None:
    ledger.add_admins("owner", arcade, admins=["alice"])
    res = ledger.set_price("alice", arcade, price_per_game=7)
    assert res.events[0]["old"] == 100 and res.events[0]["new"] == 7
    ledger.play("bob", arcade, lamports=7)
    # Odd price: the extra lamport stays in escrow by default.
    assert ledger.get_available_for_payout(arcade) == 4


def test_beneficiary_remainder_policy(state, ledger) -> None:
    res = ledger.initialize(
        "alice",
        name="Odd",
        max_top_scores=1,
        price_per_game=7,
        beneficiary="carol",
        fee_remainder_to="beneficiary",
    )
    address = res.data["arcade"]
    carol_before = balances.get_balance(state, "carol")
    ledger.play("bob", address, lamports=7)
    assert ledger.get_available_for_payout(address) == 3
    assert balances.get_balance(state, "carol") == carol_before + 4


def test_distinct_owners_get_distinct_records(ledger, arcade) -> None:
    other = ledger.initialize("alice", name="Other", max_top_scores=1, price_per_game=5).data["arcade"]
    assert other != arcade
    ledger.play("bob", other, lamports=5)
    assert ledger.get_game_counter(arcade) == 0
    assert ledger.get_game_counter(other) == 1


def test_get_arcade_is_a_detached_copy(state, ledger, arcade) -> None:
    ledger.play("alice", arcade, lamports=100)
    snap = ledger.get_arcade(arcade)
    assert snap["available_for_payout"] == 50
    assert snap["escrow_balance"] == ledger.get_balance(arcade)
    snap["top_scores"].append({"player": "x"})
    assert ledger.get_top_scores(arcade) == []


def test_escrow_address_cannot_be_score_subject(state, ledger, arcade) -> None:
    ledger.play("alice", arcade, lamports=100)
    ledger.play("bob", arcade, lamports=100)
    before = copy.deepcopy(state)

    with pytest.raises(ArcadeError) as ei:
        _submit(ledger, arcade, arcade, 10)
    assert ei.value.code == INVALID_SUBJECT
    assert state == before
    assert ledger.get_total_distributed(arcade) == 0
    assert ledger.get_available_for_payout(arcade) == 100


def test_other_arcade_address_cannot_be_score_subject(state, ledger, arcade) -> None:
    other = ledger.initialize("alice", name="Other", max_top_scores=1, price_per_game=5).data["arcade"]
    ledger.play("bob", arcade, lamports=100)
    before = copy.deepcopy(state)

    with pytest.raises(ArcadeError) as ei:
        _submit(ledger, arcade, other, 10)
    assert ei.value.code == INVALID_SUBJECT
    assert state == before


def test_beneficiary_cannot_be_an_arcade_record(state, ledger, arcade) -> None:
    before = copy.deepcopy(state)
    with pytest.raises(ArcadeError) as ei:
        ledger.initialize("alice", name="Leech", max_top_scores=1, price_per_game=5, beneficiary=arcade)
    assert ei.value.code == INVALID_SUBJECT

    own = ledger.address_for("bob")
    with pytest.raises(ArcadeError) as ei:
        ledger.initialize("bob", name="Loop", max_top_scores=1, price_per_game=5, beneficiary=own)
    assert ei.value.code == INVALID_SUBJECT
    assert state == before
