from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from arcade_ledger.api.errors import ApiError
from arcade_ledger.ledger.state import ArcadeView

Json = Dict[str, Any]


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _view(request: Request) -> ArcadeView:
    return _executor(request).view()


def _arcade_or_404(view: ArcadeView, address: str) -> Json:
    rec = view.get_arcade(str(address or "").strip())
    if rec is None:
        raise ApiError.not_found("not_initialized", "arcade not found", {"arcade": address})
    return rec


def _int_param(v: Any, default: int) -> int:
    """Parse an int-ish query param."""
    if v is None:
        return int(default)
    s = str(v).strip()
    if s == "":
        return int(default)
    try:
        return int(s)
    except ValueError:
        raise ApiError.bad_request("bad_query", "expected an integer", {"value": s})
