from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from arcade_ledger.runtime.errors import (
    ALREADY_INITIALIZED,
    BAD_NONCE,
    BAD_SIG,
    FORBIDDEN,
    INSUFFICIENT_AVAILABLE,
    INSUFFICIENT_FUNDS,
    LAST_ADMIN_REMOVAL,
    NOT_INITIALIZED,
    TOO_MANY_ADMINS,
    TX_UNIMPLEMENTED,
    UNAUTHORIZED,
)


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})


# Ledger error codes that map to something other than 400.
_STATUS_BY_CODE = {
    UNAUTHORIZED: 403,
    FORBIDDEN: 403,
    BAD_SIG: 403,
    NOT_INITIALIZED: 404,
    ALREADY_INITIALIZED: 409,
    LAST_ADMIN_REMOVAL: 409,
    TOO_MANY_ADMINS: 409,
    INSUFFICIENT_FUNDS: 409,
    INSUFFICIENT_AVAILABLE: 409,
    BAD_NONCE: 409,
    TX_UNIMPLEMENTED: 501,
}


def from_submit_meta(meta: Dict[str, Any]) -> ApiError:
    """Translate a failed executor submit result into an HTTP error."""
    code = str(meta.get("error") or "submit_failed")
    details: Dict[str, Any] = {"reason": meta.get("reason")}
    if meta.get("details") is not None:
        details["details"] = meta.get("details")
    if meta.get("tx_id"):
        details["tx_id"] = meta.get("tx_id")
    return ApiError(_STATUS_BY_CODE.get(code, 400), code, "tx rejected", details)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": {"code": exc.code, "message": exc.message, "details": exc.details}},
    )
