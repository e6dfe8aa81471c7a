# src/arcade_ledger/api/structured_logging.py
from __future__ import annotations

"""JSON-lines logging for the arcade node.

Every line written through the root handler is one JSON object. Records
produced by log_event() carry their structured fields under the
`arcade_fields` attribute; anything else (uvicorn, library warnings) is
rendered with its formatted message so the stream stays machine-readable.
"""

import json
import logging
import os
import re
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

Json = Dict[str, Any]

_FIELDS_ATTR = "arcade_fields"

# /v1/arcades/{address}[/...], excluding the derive helper.
_ARCADE_PATH = re.compile(r"^/v1/arcades/(?!derive/)([^/]+)")

_WRITE_PATHS = frozenset({"/v1/tx/submit"})


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        out: Json = {
            "ts_ms": int(record.created * 1000),
            "level": record.levelname.lower(),
            "logger": record.name,
        }
        fields = getattr(record, _FIELDS_ATTR, None)
        if isinstance(fields, dict):
            out["event"] = record.getMessage()
            out.update(fields)
        else:
            out["msg"] = record.getMessage()
        if record.exc_info:
            out["exc"] = self.formatException(record.exc_info)
        return json.dumps(out, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Route the root logger to one JSON line per record on stderr.

    Level comes from the argument, else ARCADE_LOG_LEVEL (default INFO).
    Calling it again only adjusts the level.
    """
    name = (level_name or os.environ.get("ARCADE_LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers:
        if isinstance(h.formatter, JsonLineFormatter):
            h.setLevel(level)
            return

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(JsonLineFormatter())
    root.handlers = [handler]


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit `event` with structured fields. Non-JSON values are rendered with str()."""
    logger.log(level, event, extra={_FIELDS_ATTR: fields})


def _request_scope(path: str) -> Json:
    out: Json = {"kind": "write" if path in _WRITE_PATHS else "read"}
    m = _ARCADE_PATH.match(path)
    if m:
        out["arcade"] = m.group(1)
    return out


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` event per request, tagged read/write and with the
    arcade address when the path names one. Server errors log at WARNING.

    ARCADE_LOG_REQUESTS=0 turns it off.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("ARCADE_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in {"0", "false", "no", "n", "off"}
        self._logger = logging.getLogger("arcade_ledger.http")

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        started = time.monotonic()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        path = str(request.url.path or "")

        status = 500
        try:
            response = await call_next(request)
            status = int(response.status_code)
            response.headers.setdefault("x-request-id", request_id)
            return response
        finally:
            log_event(
                self._logger,
                "http_request",
                level=logging.WARNING if status >= 500 else logging.INFO,
                request_id=request_id,
                method=request.method,
                path=path,
                status=status,
                duration_ms=int((time.monotonic() - started) * 1000),
                client=request.client.host if request.client else "",
                **_request_scope(path),
            )
