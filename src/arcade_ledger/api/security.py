from __future__ import annotations

import ipaddress
import os
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return int(default)
    try:
        return int(str(raw).strip())
    except ValueError:
        return int(default)


def _is_valid_ip(raw: str) -> bool:
    try:
        ipaddress.ip_address(raw)
        return True
    except ValueError:
        return False


def _client_ip(request: Request) -> str:
    """Best-effort client IP resolver, used only for rate limiting.

    X-Forwarded-For is honoured only when ARCADE_TRUST_PROXY_HEADERS=1 and,
    in prod, the immediate peer is listed in ARCADE_TRUSTED_PROXY_IPS
    (comma-separated IPs or CIDRs).
    """

    def _trusted_proxy_ok() -> bool:
        raw = (os.environ.get("ARCADE_TRUSTED_PROXY_IPS") or "").strip()
        if not raw:
            mode = (os.environ.get("ARCADE_MODE") or "prod").strip().lower()
            return mode != "prod"

        peer = request.client.host if request.client else ""
        if not peer or not _is_valid_ip(peer):
            return False
        peer_ip = ipaddress.ip_address(peer)

        for p in [p.strip() for p in raw.split(",") if p.strip()][:64]:
            try:
                if "/" in p:
                    if peer_ip in ipaddress.ip_network(p, strict=False):
                        return True
                elif peer_ip == ipaddress.ip_address(p):
                    return True
            except ValueError:
                continue
        return False

    if _truthy(os.environ.get("ARCADE_TRUST_PROXY_HEADERS")) and _trusted_proxy_ok():
        xff = request.headers.get("x-forwarded-for")
        if xff:
            ip = xff.split(",")[0].strip()
            if ip and _is_valid_ip(ip):
                return ip

    client = request.client
    if client and client.host:
        host = str(client.host)
        return host if _is_valid_ip(host) else "unknown"

    return "unknown"


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Fail-fast request size limiter.

    - Enforces Content-Length when present.
    - Also caps buffered body size for mutating requests.

    Configure:
      ARCADE_MAX_REQUEST_BYTES (default: 64_000)
      ARCADE_SIZE_LIMIT_DISABLE=1 to disable (only when handled at the edge)
    """

    def __init__(
        self,
        app,
        *,
        max_bytes: Optional[int] = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health"),
    ):
        super().__init__(app)
        self._enabled = not _truthy(os.environ.get("ARCADE_SIZE_LIMIT_DISABLE"))
        self._max_bytes = int(max_bytes) if max_bytes is not None else _env_int("ARCADE_MAX_REQUEST_BYTES", 64_000)
        self._exempt_prefixes = exempt_prefixes

    def _too_large(self) -> JSONResponse:
        return JSONResponse(
            status_code=413,
            content={
                "ok": False,
                "error": {"code": "tx_too_large", "message": "Request body too large"},
            },
        )

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        path = request.url.path or ""
        for ex in self._exempt_prefixes:
            if path.startswith(ex):
                return await call_next(request)

        cl = request.headers.get("content-length")
        if cl:
            try:
                if int(cl) > self._max_bytes:
                    return self._too_large()
            except ValueError:
                # Malformed header; the buffered body cap below still applies.
                pass

        if (request.method or "").upper() in {"POST", "PUT", "PATCH"}:
            body = await request.body()
            if body and len(body) > self._max_bytes:
                return self._too_large()

        return await call_next(request)


@dataclass(frozen=True)
class TokenBucket:
    rate_per_sec: float
    burst: float


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory token bucket rate limiter, one bucket pair per client IP.

    Best-effort and single-process. Buckets are evicted by TTL and by a size
    cap so that scanning traffic cannot grow memory without bound.
    """

    def __init__(
        self,
        app,
        *,
        write_bucket: TokenBucket | None = None,
        read_bucket: TokenBucket | None = None,
        ttl_s: int | None = None,
        max_keys: int | None = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health"),
    ):
        super().__init__(app)

        # Keyed by "<ip>:<rate>:<burst>".
        # Value: (tokens_remaining, last_refill_ts, last_seen_ts)
        self._buckets: Dict[str, Tuple[float, float, float]] = {}

        self._write = write_bucket or TokenBucket(
            rate_per_sec=float(_env_int("ARCADE_RL_WRITE_PER_SEC", 4)),
            burst=float(_env_int("ARCADE_RL_WRITE_BURST", 20)),
        )
        self._read = read_bucket or TokenBucket(
            rate_per_sec=float(_env_int("ARCADE_RL_READ_PER_SEC", 12)),
            burst=float(_env_int("ARCADE_RL_READ_BURST", 40)),
        )
        self._exempt_prefixes = exempt_prefixes
        self._ttl_s = int(ttl_s) if ttl_s is not None else _env_int("ARCADE_RL_TTL_S", 900)
        self._max_keys = int(max_keys) if max_keys is not None else _env_int("ARCADE_RL_MAX_KEYS", 20_000)
        self._prune_every = 256
        self._req_count = 0

    def _pick_bucket(self, request: Request) -> TokenBucket:
        if (request.method or "").upper() in {"POST", "PUT", "PATCH", "DELETE"}:
            return self._write
        return self._read

    def _rate_limited(self) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"ok": False, "error": {"code": "rate_limited", "message": "Too many requests"}},
        )

    def _prune(self, now: float) -> None:
        if self._ttl_s > 0:
            cutoff = now - float(self._ttl_s)
            for k in [k for k, (_, __, last_seen) in self._buckets.items() if last_seen < cutoff]:
                self._buckets.pop(k, None)

        # Size cap: drop oldest by last_seen.
        if self._max_keys > 0 and len(self._buckets) > self._max_keys:
            items = sorted(self._buckets.items(), key=lambda kv: kv[1][2])
            for k, _ in items[: len(items) - self._max_keys]:
                self._buckets.pop(k, None)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path or ""
        for ex in self._exempt_prefixes:
            if path.startswith(ex):
                return await call_next(request)

        bucket = self._pick_bucket(request)
        key = f"{_client_ip(request)}:{bucket.rate_per_sec}:{bucket.burst}"
        now = time.time()

        self._req_count += 1
        if (self._req_count % self._prune_every) == 0:
            self._prune(now)

        tokens, last, _ = self._buckets.get(key, (bucket.burst, now, now))
        tokens = min(bucket.burst, tokens + (now - last) * bucket.rate_per_sec)
        if tokens < 1.0:
            self._buckets[key] = (tokens, now, now)
            return self._rate_limited()

        self._buckets[key] = (tokens - 1.0, now, now)
        if self._max_keys > 0 and len(self._buckets) > self._max_keys:
            self._prune(now)

        return await call_next(request)
