from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from arcade_ledger.api.errors import ApiError, from_submit_meta
from arcade_ledger.api.routes_public_parts.common import _executor
from arcade_ledger.api.schemas import TxSubmitRequest, TxSubmitResponse

router = APIRouter()

Json = Dict[str, Any]


@router.post("/tx/submit", response_model=TxSubmitResponse)
def tx_submit(body: TxSubmitRequest, request: Request) -> TxSubmitResponse:
    """Submit a signed tx envelope and apply it immediately.

    Returns the operation result and the events it emitted; a rejected or
    failed tx maps its ledger error code onto an HTTP status.
    """
    meta = _executor(request).submit_tx(body.model_dump())
    if not meta.get("ok"):
        raise from_submit_meta(meta)
    return TxSubmitResponse(
        tx_id=str(meta["tx_id"]),
        seq=int(meta["seq"]),
        result=meta.get("result") or {},
        events=meta.get("events") or [],
    )


@router.get("/tx/{tx_id}")
def tx_receipt(tx_id: str, request: Request) -> Json:
    rec = _executor(request).receipt(tx_id)
    if rec is None:
        raise ApiError.not_found("tx_not_found", "no receipt for tx_id", {"tx_id": tx_id})
    return {"ok": True, **rec}
