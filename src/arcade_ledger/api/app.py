from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from arcade_ledger.api.errors import ApiError, api_error_handler
from arcade_ledger.api.routes_public import public_router
from arcade_ledger.api.security import RateLimitMiddleware, RequestSizeLimitMiddleware
from arcade_ledger.api.structured_logging import RequestLogMiddleware, configure_structured_logging, log_event
from arcade_ledger.runtime.executor_boot import build_executor as _build_executor

_log = logging.getLogger("arcade_ledger.api")


def build_executor():
    """Build an ArcadeExecutor for API runtime.

    Tests monkeypatch `arcade_ledger.api.app.build_executor` through this
    wrapper without reaching into runtime modules.
    """
    return _build_executor()


def _parse_cors_origins() -> List[str]:
    """Parse CORS origins.

    Policy:
      - ARCADE_CORS_ORIGINS unset/empty -> CORS disabled
      - wildcard "*" is rejected in ARCADE_MODE=prod
    """
    raw = os.environ.get("ARCADE_CORS_ORIGINS", "").strip()
    mode = os.environ.get("ARCADE_MODE", "prod").strip().lower()

    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]

    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in ARCADE_CORS_ORIGINS."
            )
        return ["*"]

    return origins


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): attach an executor via build_executor()
      - False: no executor; routes that need one answer 500 not_ready
    """
    configure_structured_logging()
    mode = os.environ.get("ARCADE_MODE", "prod").strip().lower()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        ex = getattr(app.state, "executor", None)
        log_event(
            _log,
            "api_started",
            mode=mode,
            chain_id=getattr(ex, "chain_id", None),
            node_id=getattr(ex, "node_id", None),
        )
        yield
        log_event(_log, "api_stopped")

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(
            title="Arcade Ledger API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="Arcade Ledger API", lifespan=_lifespan)

    app.state.executor = build_executor() if boot_runtime else None

    app.add_exception_handler(ApiError, api_error_handler)

    # --- Middleware ---
    # Starlette runs the last-added middleware first.
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RateLimitMiddleware)

    cors_origins = _parse_cors_origins()
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=cors_origins != ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    app.add_middleware(RequestLogMiddleware)

    # --- Routers ---
    app.include_router(public_router)

    return app
