"""
CarbonWise – Request Logging Middleware
========================================
Every request gets a correlation id (taken from ``X-Correlation-ID`` when
the caller sends one) that is bound to the Loguru context together with
the caller's ``X-User-Id``, so log lines written while serving the request
can be traced back to it.

Response headers added:
    X-Correlation-ID    → the id used in the logs
    X-Response-Time-Ms  → wall time spent in the app
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from carbonwise.config import settings

# Liveness and readiness pings would drown everything else
QUIET_PREFIXES = ("/api/v1/health",)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Correlation id, access log line, slow-request warning, JSON 500 on crashes."""

    def __init__(self, app, slow_request_ms: float | None = None) -> None:
        super().__init__(app)
        self.slow_request_ms = slow_request_ms or settings.slow_request_ms

    async def dispatch(self, request: Request, call_next) -> Response:
        corr_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex[:12]
        user_id = request.headers.get("X-User-Id", "-")

        with logger.contextualize(request_id=corr_id, user_id=user_id):
            t0 = time.perf_counter()
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.exception("Unhandled exception in request {}: {}", corr_id, exc)
                response = JSONResponse(
                    status_code=500,
                    content={"detail": "Internal Server Error", "request_id": corr_id},
                )
            elapsed_ms = round((time.perf_counter() - t0) * 1000, 2)

            path = request.url.path
            if not path.startswith(QUIET_PREFIXES):
                logger.info(
                    "{} {} → {} ({}ms) user={} [{}]",
                    request.method, path, response.status_code, elapsed_ms, user_id, corr_id,
                )
            if elapsed_ms > self.slow_request_ms:
                logger.warning("🐢 Slow request {} {} took {}ms", request.method, path, elapsed_ms)

        response.headers["X-Correlation-ID"] = corr_id
        response.headers["X-Response-Time-Ms"] = str(elapsed_ms)
        return response
