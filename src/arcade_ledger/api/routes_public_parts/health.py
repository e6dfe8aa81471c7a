from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    """Liveness plus a few identifiers; never touches the database."""
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        return {"ok": True, "ready": False}
    st = ex.read_state()
    return {
        "ok": True,
        "ready": True,
        "chain_id": ex.chain_id,
        "node_id": ex.node_id,
        "program_id": ex.program_id,
        "mode": ex.mode,
        "seq": int(ex.seq),
        "arcades": len(st.get("arcades") or {}),
    }
