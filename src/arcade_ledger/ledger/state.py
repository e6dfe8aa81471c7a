from __future__ import annotations

from dataclasses import dataclass, field
import copy
from typing import Any, Dict, List, Optional

from arcade_ledger.ledger.addressing import arcade_address
from arcade_ledger.ledger.constants import DEFAULT_PROGRAM_ID


Json = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class ArcadeView:
    """
    Immutable read-only view of the world state used by the HTTP layer.
    """

    accounts: Dict[str, Any] = field(default_factory=dict)
    arcades: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    program_id: str = DEFAULT_PROGRAM_ID

    @classmethod
    def from_state(cls, state: Dict[str, Any], *, program_id: str = DEFAULT_PROGRAM_ID) -> "ArcadeView":
        return cls(
            accounts=copy.deepcopy(state.get("accounts", {})),
            arcades=copy.deepcopy(state.get("arcades", {})),
            params=copy.deepcopy(state.get("params", {})) if isinstance(state.get("params"), dict) else {},
            program_id=str(program_id),
        )

    def get_account(self, account_id: str) -> Dict[str, Any]:
        acct = self.accounts.get(account_id)
        return acct if isinstance(acct, dict) else {}

    def get_balance(self, account_id: str) -> int:
        return int(self.get_account(account_id).get("balance", 0) or 0)

    def get_nonce(self, account_id: str) -> int:
        return int(self.get_account(account_id).get("nonce", 0) or 0)

    def get_arcade(self, address: str) -> Optional[Json]:
        rec = self.arcades.get(address)
        return rec if isinstance(rec, dict) else None

    def address_for(self, owner: str) -> str:
        return arcade_address(self.program_id, owner)

    def escrow_balance(self, address: str) -> int:
        return self.get_balance(address)

    def available_for_payout(self, address: str) -> int:
        rec = self.get_arcade(address)
        if rec is None:
            return 0
        return max(0, self.escrow_balance(address) - int(rec.get("min_reserve", 0) or 0))

    def top_scores(self, address: str) -> List[Json]:
        rec = self.get_arcade(address) or {}
        return [dict(e) for e in rec.get("top_scores") or []]

    def describe_arcade(self, address: str) -> Optional[Json]:
        """Record plus the derived escrow figures clients usually want alongside it."""
        rec = self.get_arcade(address)
        if rec is None:
            return None
        out = dict(rec)
        out["escrow_balance"] = self.escrow_balance(address)
        out["available_for_payout"] = self.available_for_payout(address)
        return out
