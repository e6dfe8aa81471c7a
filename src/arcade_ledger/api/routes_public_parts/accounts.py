from __future__ import annotations

from fastapi import APIRouter, Request

from arcade_ledger.api.routes_public_parts.common import _view
from arcade_ledger.api.schemas import AccountResponse

router = APIRouter()


@router.get("/accounts/{account}", response_model=AccountResponse)
def v1_account_get(account: str, request: Request) -> AccountResponse:
    view = _view(request)
    return AccountResponse(
        account=account,
        balance=view.get_balance(account),
        nonce=view.get_nonce(account),
        arcade=account if view.get_arcade(account) is not None else None,
    )
