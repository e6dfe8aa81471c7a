from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from arcade_ledger.api.routes_public_parts.common import _arcade_or_404, _executor, _int_param, _view
from arcade_ledger.api.schemas import CounterResponse, ScoreEntryOut, TopScoresResponse

router = APIRouter()

Json = Dict[str, Any]


# Registered ahead of /arcades/{address} so "derive" is not taken for an address.
@router.get("/arcades/derive/{owner}")
def arcade_derive(owner: str, request: Request) -> Json:
    view = _view(request)
    address = view.address_for(owner)
    return {
        "ok": True,
        "owner": owner,
        "program_id": view.program_id,
        "arcade": address,
        "initialized": view.get_arcade(address) is not None,
    }


@router.get("/arcades/{address}")
def arcade_get(address: str, request: Request) -> Json:
    view = _view(request)
    _arcade_or_404(view, address)
    return {"ok": True, "arcade": view.describe_arcade(address)}


@router.get("/arcades/{address}/top-scores", response_model=TopScoresResponse)
def arcade_top_scores(address: str, request: Request) -> TopScoresResponse:
    view = _view(request)
    rec = _arcade_or_404(view, address)
    return TopScoresResponse(
        arcade=address,
        max_top_scores=int(rec["max_top_scores"]),
        top_scores=[ScoreEntryOut(**e) for e in view.top_scores(address)],
    )


@router.get("/arcades/{address}/game-counter", response_model=CounterResponse)
def arcade_game_counter(address: str, request: Request) -> CounterResponse:
    rec = _arcade_or_404(_view(request), address)
    return CounterResponse(arcade=address, value=int(rec["game_counter"]))


@router.get("/arcades/{address}/price", response_model=CounterResponse)
def arcade_price(address: str, request: Request) -> CounterResponse:
    rec = _arcade_or_404(_view(request), address)
    return CounterResponse(arcade=address, value=int(rec["price_per_game"]))


@router.get("/arcades/{address}/total-distributed", response_model=CounterResponse)
def arcade_total_distributed(address: str, request: Request) -> CounterResponse:
    rec = _arcade_or_404(_view(request), address)
    return CounterResponse(arcade=address, value=int(rec["total_distributed"]))


@router.get("/arcades/{address}/events")
def arcade_events(
    address: str,
    request: Request,
    after_id: Optional[str] = None,
    limit: Optional[str] = None,
) -> Json:
    _arcade_or_404(_view(request), address)
    evs = _executor(request).events(address, after_id=_int_param(after_id, 0), limit=_int_param(limit, 100))
    return {"ok": True, "arcade": address, "events": evs}
