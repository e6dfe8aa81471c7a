# src/arcade_ledger/runtime/admins.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List

from arcade_ledger.ledger.constants import MAX_ADMINS
from arcade_ledger.runtime.errors import (
    INVALID_PAYLOAD,
    LAST_ADMIN_REMOVAL,
    TOO_MANY_ADMINS,
    UNAUTHORIZED,
    ArcadeError,
)

Json = Dict[str, Any]


def normalize_principals(raw: Any) -> List[str]:
    """Ordered, deduplicated list of non-empty principal strings."""
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        raise ArcadeError(INVALID_PAYLOAD, "principals_not_list", {"value": raw})
    out: List[str] = []
    seen = set()
    for p in raw:
        if not isinstance(p, str) or not p.strip():
            raise ArcadeError(INVALID_PAYLOAD, "bad_principal", {"value": p})
        s = p.strip()
        if s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


class AdminRegistry:
    """Admin set of one arcade record (record["admins"]).

    Duplicates are tolerated: adding an existing admin is a no-op, never an
    error. The set is never allowed to become empty.
    """

    def __init__(self, record: Json) -> None:
        self._record = record

    @property
    def admins(self) -> List[str]:
        admins = self._record.get("admins")
        return list(admins) if isinstance(admins, list) else []

    def is_admin(self, principal: str) -> bool:
        return str(principal or "").strip() in self.admins

    def require_admin(self, caller: str) -> None:
        if not self.is_admin(caller):
            raise ArcadeError(UNAUTHORIZED, "caller_not_admin", {"caller": caller})

    def add_admins(self, caller: str, principals: Iterable[str]) -> List[str]:
        """Returns the principals that were actually added."""
        self.require_admin(caller)
        new = normalize_principals(list(principals))
        current = self.admins
        added = [p for p in new if p not in current]
        if len(current) + len(added) > MAX_ADMINS:
            raise ArcadeError(
                TOO_MANY_ADMINS,
                "admin_set_full",
                {"have": len(current), "adding": len(added), "max": MAX_ADMINS},
            )
        self._record["admins"] = current + added
        return added

    def remove_admin(self, caller: str, principal: str) -> bool:
        """Returns True if `principal` was a member and is now removed."""
        self.require_admin(caller)
        target = str(principal or "").strip()
        current = self.admins
        if target not in current:
            return False
        if len(current) == 1:
            raise ArcadeError(LAST_ADMIN_REMOVAL, "admin_set_would_be_empty", {"admin": target})
        self._record["admins"] = [p for p in current if p != target]
        return True
