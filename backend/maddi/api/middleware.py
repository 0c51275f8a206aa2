"""
Per-request correlation, access logging and latency metrics.
"""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from maddi.core.logging import get_logger
from maddi.core.metrics import observe_request

logger = get_logger(__name__)

# Probes hit these constantly; keep them out of the info log
QUIET_PATHS = frozenset({"/health", "/metrics"})


def _route_template(request: Request) -> str:
    # "/api/v1/bookings/{booking_id}" rather than one label per id
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Reuses the caller's X-Request-ID (or assigns one), binds it with method
    and path to structlog's contextvars so service logs carry it, logs one
    access entry per request and records latency per route template.
    SSE responses are timed until their headers are sent.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - started
            observe_request(request.method, _route_template(request), 500, elapsed)
            logger.error("request_failed", error=str(e), duration_ms=round(elapsed * 1000, 2))
            raise

        elapsed = time.perf_counter() - started
        duration_ms = round(elapsed * 1000, 2)
        observe_request(request.method, _route_template(request), response.status_code, elapsed)

        log = logger.debug if request.url.path in QUIET_PATHS else logger.info
        log("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
