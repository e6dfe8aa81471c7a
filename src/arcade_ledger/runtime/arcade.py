# src/arcade_ledger/runtime/arcade.py
from __future__ import annotations

"""
Arcade orchestrator.

ArcadeLedger wraps one world-state dict and exposes the public operations:
initialize, play, submit_score, set_price, add_admins, remove_admin, plus
read-only queries. Each mutating method validates first, then delegates to
the component that owns the affected slice of the record:

  - AdminRegistry      record["admins"]
  - EscrowAccount      accounts[record address]
  - Leaderboard        record["top_scores"]
  - PaymentProcessor   fee split + game_counter
  - PrizeDistributor   leaderboard + escrow payout + total_distributed

Atomicity is the caller's job: run each operation against a working copy of
the state and keep it only if the method returns normally (see
runtime/executor.py). Methods here raise ArcadeError and never catch it.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from arcade_ledger.ledger import balances
from arcade_ledger.ledger.addressing import arcade_address
from arcade_ledger.ledger.constants import (
    DEFAULT_PROGRAM_ID,
    FEE_REMAINDER_ESCROW,
    FEE_REMAINDER_POLICIES,
    MAX_ADMINS,
    MAX_NAME_BYTES,
    MAX_TOP_SCORES,
    MIN_TOP_SCORES,
    U64_MAX,
    minimum_balance,
    record_size,
)
from arcade_ledger.runtime.admins import AdminRegistry, normalize_principals
from arcade_ledger.runtime.errors import (
    ALREADY_INITIALIZED,
    INVALID_PAYLOAD,
    INVALID_SUBJECT,
    NOT_INITIALIZED,
    TOO_MANY_ADMINS,
    ArcadeError,
)
from arcade_ledger.runtime.escrow import EscrowAccount, SigningAuthority
from arcade_ledger.runtime.leaderboard import ScoreEntry
from arcade_ledger.runtime.payments import FeeSplit, PaymentProcessor
from arcade_ledger.runtime.prizes import PrizeDistributor, ScoreOutcome
from arcade_ledger.runtime.state_invariants import ensure_state

Json = Dict[str, Any]


def _as_u64(v: Any, *, name: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise ArcadeError(INVALID_PAYLOAD, f"{name}_not_integer", {name: v})
    if v < 0 or v > U64_MAX:
        raise ArcadeError(INVALID_PAYLOAD, f"{name}_out_of_range", {name: v})
    return v


def _as_name(v: Any) -> str:
    if not isinstance(v, str):
        raise ArcadeError(INVALID_PAYLOAD, "name_not_string", {"name": v})
    n = len(v.encode("utf-8"))
    if not v.strip() or n > MAX_NAME_BYTES:
        raise ArcadeError(INVALID_PAYLOAD, "bad_name_length", {"bytes": n, "max": MAX_NAME_BYTES})
    return v


def _as_capacity(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, int) or not (MIN_TOP_SCORES <= v <= MAX_TOP_SCORES):
        raise ArcadeError(
            INVALID_PAYLOAD,
            "bad_max_top_scores",
            {"max_top_scores": v, "min": MIN_TOP_SCORES, "max": MAX_TOP_SCORES},
        )
    return v


@dataclass
class OpResult:
    """What an operation returns to its caller, plus informational events."""

    data: Json = field(default_factory=dict)
    events: List[Json] = field(default_factory=list)


class ArcadeLedger:
    def __init__(
        self,
        state: Json,
        *,
        program_id: str = DEFAULT_PROGRAM_ID,
        default_fee_remainder_to: str = FEE_REMAINDER_ESCROW,
    ) -> None:
        self.state = ensure_state(state)
        self.program_id = str(program_id)
        self.default_fee_remainder_to = str(default_fee_remainder_to)

    # ----------------------------
    # Record lookup
    # ----------------------------

    def address_for(self, owner: str) -> str:
        return arcade_address(self.program_id, owner)

    def find(self, address: str) -> Optional[Json]:
        rec = self.state["arcades"].get(str(address or ""))
        return rec if isinstance(rec, dict) else None

    def record(self, address: str) -> Json:
        rec = self.find(address)
        if rec is None:
            raise ArcadeError(NOT_INITIALIZED, "arcade_not_found", {"arcade": address})
        return rec

    def _authority(self, record: Json) -> SigningAuthority:
        return SigningAuthority.for_record(record, program_id=self.program_id)

    # ----------------------------
    # Mutations
    # ----------------------------

    def initialize(
        self,
        caller: str,
        *,
        name: Any,
        max_top_scores: Any,
        price_per_game: Any,
        admins: Any = None,
        beneficiary: Any = None,
        fee_remainder_to: Any = None,
    ) -> OpResult:
        owner = str(caller or "").strip()
        if not owner:
            raise ArcadeError(INVALID_PAYLOAD, "missing_caller", {})

        name_s = _as_name(name)
        cap = _as_capacity(max_top_scores)
        price = _as_u64(price_per_game, name="price_per_game")

        admin_list = normalize_principals([owner] + (normalize_principals(admins) if admins is not None else []))
        if len(admin_list) > MAX_ADMINS:
            raise ArcadeError(TOO_MANY_ADMINS, "admin_set_full", {"have": len(admin_list), "max": MAX_ADMINS})

        payee = owner if beneficiary is None else str(beneficiary).strip()
        if not payee:
            raise ArcadeError(INVALID_PAYLOAD, "bad_beneficiary", {"beneficiary": beneficiary})

        policy = self.default_fee_remainder_to if fee_remainder_to is None else str(fee_remainder_to)
        if policy not in FEE_REMAINDER_POLICIES:
            raise ArcadeError(INVALID_PAYLOAD, "bad_fee_remainder_to", {"fee_remainder_to": policy})

        address = self.address_for(owner)
        if self.find(address) is not None:
            raise ArcadeError(ALREADY_INITIALIZED, "arcade_exists", {"arcade": address, "owner": owner})
        if payee == address or payee in self.state["arcades"]:
            raise ArcadeError(INVALID_SUBJECT, "beneficiary_is_an_arcade_record", {"beneficiary": payee})

        size = record_size(cap)
        reserve = minimum_balance(size)

        # The initializer funds the reserve floor before the record exists.
        balances.transfer(self.state, owner, address, reserve)

        self.state["arcades"][address] = {
            "address": address,
            "owner": owner,
            "name": name_s,
            "admins": admin_list,
            "beneficiary": payee,
            "price_per_game": price,
            "game_counter": 0,
            "total_distributed": 0,
            "max_top_scores": cap,
            "top_scores": [],
            "admission_seq": 0,
            "record_size": size,
            "min_reserve": reserve,
            "fee_remainder_to": policy,
        }

        return OpResult(
            data={"arcade": address, "min_reserve": reserve, "record_size": size},
            events=[
                {
                    "event": "arcade_initialized",
                    "arcade": address,
                    "owner": owner,
                    "name": name_s,
                    "max_top_scores": cap,
                    "price_per_game": price,
                }
            ],
        )

    def play(self, caller: str, address: str, *, lamports: Any) -> OpResult:
        rec = self.record(address)
        split: FeeSplit = PaymentProcessor(self.state, rec).charge_entry_fee(caller, lamports)
        return OpResult(
            data={
                "arcade": address,
                "game_counter": rec["game_counter"],
                "to_escrow": split.escrow,
                "to_beneficiary": split.beneficiary,
            },
            events=[
                {
                    "event": "game_played",
                    "arcade": address,
                    "player": caller,
                    "lamports": int(lamports),
                    "game_counter": rec["game_counter"],
                }
            ],
        )

    def submit_score(
        self,
        caller: str,
        address: str,
        *,
        player: Any,
        nickname: Any,
        score: Any,
        beneficiary_account: Any,
    ) -> OpResult:
        rec = self.record(address)
        candidate = ScoreEntry(
            player=str(player or "").strip(),
            nickname=nickname if isinstance(nickname, str) else "",
            score=score,
        )
        outcome: ScoreOutcome = PrizeDistributor(
            self.state, rec, authority=self._authority(rec)
        ).submit_score(caller, candidate, str(beneficiary_account or "").strip())

        events: List[Json] = [
            {
                "event": "score_submitted",
                "arcade": address,
                "player": candidate.player,
                "score": candidate.score,
                "result": outcome.result.kind,
            }
        ]
        if outcome.payout > 0:
            events.append(
                {
                    "event": "prize_paid",
                    "arcade": address,
                    "player": candidate.player,
                    "amount": outcome.payout,
                    "total_distributed": rec["total_distributed"],
                }
            )
        data = outcome.to_json()
        data["arcade"] = address
        data["player"] = candidate.player
        return OpResult(data=data, events=events)

    def set_price(self, caller: str, address: str, *, price_per_game: Any) -> OpResult:
        rec = self.record(address)
        AdminRegistry(rec).require_admin(caller)
        new_price = _as_u64(price_per_game, name="price_per_game")
        old_price = int(rec.get("price_per_game", 0) or 0)
        rec["price_per_game"] = new_price
        return OpResult(
            data={"arcade": address, "price_per_game": new_price},
            events=[{"event": "price_changed", "arcade": address, "old": old_price, "new": new_price, "by": caller}],
        )

    def add_admins(self, caller: str, address: str, *, admins: Any) -> OpResult:
        rec = self.record(address)
        added = AdminRegistry(rec).add_admins(caller, normalize_principals(admins))
        return OpResult(
            data={"arcade": address, "added": added, "admins": list(rec["admins"])},
            events=[{"event": "admins_changed", "arcade": address, "added": added, "removed": [], "by": caller}],
        )

    def remove_admin(self, caller: str, address: str, *, admin: Any) -> OpResult:
        rec = self.record(address)
        target = str(admin or "").strip()
        if not target:
            raise ArcadeError(INVALID_PAYLOAD, "missing_admin", {})
        removed = AdminRegistry(rec).remove_admin(caller, target)
        return OpResult(
            data={"arcade": address, "removed": removed, "admins": list(rec["admins"])},
            events=[
                {
                    "event": "admins_changed",
                    "arcade": address,
                    "added": [],
                    "removed": [target] if removed else [],
                    "by": caller,
                }
            ],
        )

    # ----------------------------
    # Queries
    # ----------------------------

    def get_total_distributed(self, address: str) -> int:
        return int(self.record(address)["total_distributed"])

    def get_top_scores(self, address: str) -> List[Json]:
        return [dict(e) for e in self.record(address)["top_scores"]]

    def get_game_counter(self, address: str) -> int:
        return int(self.record(address)["game_counter"])

    def get_price_per_game(self, address: str) -> int:
        return int(self.record(address)["price_per_game"])

    def get_escrow_balance(self, address: str) -> int:
        return EscrowAccount(self.state, self.record(address)).balance()

    def get_available_for_payout(self, address: str) -> int:
        return EscrowAccount(self.state, self.record(address)).available_for_payout()

    def get_arcade(self, address: str) -> Json:
        """Full copy of the record, with the escrow figures alongside."""
        rec = self.record(address)
        escrow = EscrowAccount(self.state, rec)
        out = copy.deepcopy(rec)
        out["escrow_balance"] = escrow.balance()
        out["available_for_payout"] = escrow.available_for_payout()
        return out

    def get_balance(self, account: str) -> int:
        return balances.get_balance(self.state, account)
