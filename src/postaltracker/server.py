"""HTTP proxy in front of the carrier tracking API.

Routes:
- GET  /api/rastreamento/{code}  one record (400 invalid code, 404 not found)
- POST /api/rastreamento/lote    {"codigos": [...]} -> {"resultados": [...]}
- GET  /health
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import service
from .client import CarrierClient
from .config import Settings, setup_logging
from .errors import (
    MissingCredentialsError,
    TrackingValidationError,
    UpstreamErrorKind,
    classify_upstream_error,
    upstream_message,
    upstream_status,
)
from .models import BatchResult

logger = logging.getLogger(__name__)

MAX_TRACKED_CLIENTS = 10_000

NOT_FOUND_BODY = {
    "error": "Object not found.",
    "detalhe": "Check the tracking code and try again.",
}


class TokenBucket:
    """Token bucket: ``capacity`` requests, refilled at ``fill_rate`` per second."""

    def __init__(self, capacity: int, fill_rate: float):
        self.capacity = max(1, int(capacity))
        self.fill_rate = float(fill_rate)
        self.tokens = float(self.capacity)
        self.ts = time.monotonic()

    def allow(self, n: int = 1) -> bool:
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self.ts) * self.fill_rate)
        self.ts = now
        if self.tokens >= n:
            self.tokens -= n
            return True
        return False


class RateLimiter:
    """One bucket per client address, least recently seen first.

    A bucket idle for a whole window has refilled to capacity, so dropping it
    loses nothing. At most ``max_clients`` buckets are kept.
    """

    def __init__(self, limit: int, window: float, *, max_clients: int = MAX_TRACKED_CLIENTS):
        self.limit = limit
        self.window = window
        self.max_clients = max(1, max_clients)
        self._buckets: "OrderedDict[str, TokenBucket]" = OrderedDict()

    def allow(self, key: str) -> bool:
        bucket = self._buckets.get(key)
        if bucket is None:
            self._evict(time.monotonic())
            bucket = TokenBucket(capacity=self.limit, fill_rate=self.limit / self.window)
            self._buckets[key] = bucket
        else:
            self._buckets.move_to_end(key)
        return bucket.allow()

    def _evict(self, now: float) -> None:
        while self._buckets:
            key, bucket = next(iter(self._buckets.items()))
            if now - bucket.ts < self.window and len(self._buckets) < self.max_clients:
                break
            del self._buckets[key]

    def __len__(self) -> int:
        return len(self._buckets)


def retry_hint(window: float) -> str:
    if window >= 60:
        minutes = round(window / 60)
        return f"{minutes} minute{'' if minutes == 1 else 's'}"
    seconds = max(1, round(window))
    return f"{seconds} second{'' if seconds == 1 else 's'}"


def _upstream_error_response(exc: httpx.HTTPError) -> JSONResponse:
    kind = classify_upstream_error(exc)
    if kind is UpstreamErrorKind.AUTH:
        return JSONResponse(
            status_code=502,
            content={"error": "RAPIDAPI_KEY is invalid or lacks permission. Check the key in .env."},
        )
    if kind is UpstreamErrorKind.RATE_LIMIT:
        return JSONResponse(
            status_code=429,
            content={"error": "Tracking API request limit reached. Try again later."},
        )
    if kind is UpstreamErrorKind.NOT_FOUND:
        return JSONResponse(status_code=404, content={"error": NOT_FOUND_BODY["error"]})
    return JSONResponse(
        status_code=502,
        content={
            "error": "Error communicating with the tracking service.",
            "detalhe": upstream_message(exc),
        },
    )


def create_app(
    settings: Optional[Settings] = None,
    carrier: Optional[CarrierClient] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    carrier = carrier or CarrierClient(settings)
    limiter = RateLimiter(settings.rate_limit, settings.rate_window)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with httpx.AsyncClient(timeout=settings.timeout) as client:
            app.state.http_client = client
            yield
        app.state.http_client = None

    app = FastAPI(title="postaltracker", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.carrier = carrier
    app.state.http_client = None

    @app.middleware("http")
    async def _rate_limit(request: Request, call_next):
        if request.url.path.startswith("/api"):
            client_key = request.client.host if request.client else "unknown"
            if not limiter.allow(client_key):
                logger.warning("rate limit exceeded for %s", client_key)
                return JSONResponse(
                    status_code=429,
                    content={
                        "error": f"Too many requests. Try again in {retry_hint(settings.rate_window)}."
                    },
                )
        return await call_next(request)

    # added last so CORS wraps the limiter and its 429s carry CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TrackingValidationError)
    async def _validation_exc(request: Request, exc: TrackingValidationError):
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(MissingCredentialsError)
    async def _credentials_exc(request: Request, exc: MissingCredentialsError):
        logger.error("%s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"error": str(exc)})

    @app.exception_handler(httpx.HTTPError)
    async def _upstream_exc(request: Request, exc: httpx.HTTPError):
        status = upstream_status(exc)
        logger.error(
            "%s %s: %s%s",
            request.method,
            request.url.path,
            exc,
            f" (HTTP {status})" if status else "",
        )
        return _upstream_error_response(exc)

    @app.exception_handler(Exception)
    async def _unhandled_exc(request: Request, exc: Exception):
        logger.exception("%s %s: %s", request.method, request.url.path, exc)
        content: Dict[str, Any] = {"error": "Internal server error."}
        if not settings.is_production:
            content["detalhe"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    @app.get("/api/rastreamento/{code}")
    async def track_one(code: str, request: Request):
        record = await service.track(
            code,
            carrier=request.app.state.carrier,
            client=request.app.state.http_client,
        )
        if record is None:
            return JSONResponse(status_code=404, content=NOT_FOUND_BODY)
        return record.to_json_dict()

    @app.post("/api/rastreamento/lote")
    async def track_many(request: Request):
        try:
            body = await request.json()
        except ValueError:
            body = None
        codes = body.get("codigos") if isinstance(body, dict) else None
        results = await service.track_batch(
            codes,
            carrier=request.app.state.carrier,
            client=request.app.state.http_client,
        )
        return BatchResult(resultados=results).to_json_dict()

    return app


def run(settings: Optional[Settings] = None, *, host: str = "0.0.0.0", port: Optional[int] = None) -> None:
    import uvicorn

    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)
    logger.info("serving on port %s (env: %s)", port or settings.port, settings.app_env)
    uvicorn.run(create_app(settings), host=host, port=port or settings.port, log_config=None)
