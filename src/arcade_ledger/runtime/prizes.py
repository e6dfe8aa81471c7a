# src/arcade_ledger/runtime/prizes.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from arcade_ledger.ledger.balances import checked_add
from arcade_ledger.runtime.admins import AdminRegistry
from arcade_ledger.runtime.errors import INVALID_SUBJECT, ArcadeError
from arcade_ledger.runtime.escrow import EscrowAccount, SigningAuthority
from arcade_ledger.runtime.leaderboard import AdmitResult, Leaderboard, ScoreEntry

Json = Dict[str, Any]


@dataclass(frozen=True)
class ScoreOutcome:
    result: AdmitResult
    new_highest: bool
    payout: int

    def to_json(self) -> Json:
        out = self.result.to_json()
        out["new_highest"] = self.new_highest
        out["payout"] = self.payout
        return out


class PrizeDistributor:
    """Leaderboard admission plus prize payout for one record.

    Three phases, in order:
      1) read: authorization, subject binding, new-highest test, payout amount
      2) effect: withdraw from escrow under the record's own authority
      3) commit: leaderboard entries and total_distributed
    Nothing is written to the record before the transfer has succeeded.
    """

    def __init__(self, state: Json, record: Json, *, authority: SigningAuthority) -> None:
        self._state = state
        self._record = record
        self._admins = AdminRegistry(record)
        self._board = Leaderboard(record)
        self._escrow = EscrowAccount(state, record)
        self._authority = authority

    def submit_score(self, caller: str, candidate: ScoreEntry, beneficiary_account: str) -> ScoreOutcome:
        self._admins.require_admin(caller)

        if candidate.player != str(beneficiary_account or ""):
            raise ArcadeError(
                INVALID_SUBJECT,
                "player_does_not_match_beneficiary_account",
                {"player": candidate.player, "beneficiary_account": beneficiary_account},
            )
        if candidate.player in self._state.get("arcades", {}):
            raise ArcadeError(INVALID_SUBJECT, "player_is_an_arcade_record", {"player": candidate.player})

        plan = self._board.plan(candidate)
        new_highest = self._board.is_new_highest(candidate.score)

        payout = 0
        total = int(self._record.get("total_distributed", 0) or 0)
        if new_highest and plan.result.changed:
            payout = self._escrow.available_for_payout()
            total = checked_add(total, payout, what="total_distributed")

        if payout > 0:
            self._escrow.withdraw(payout, candidate.player, self._authority)

        self._board.commit(plan)
        self._record["total_distributed"] = total
        return ScoreOutcome(result=plan.result, new_highest=new_highest, payout=payout)
