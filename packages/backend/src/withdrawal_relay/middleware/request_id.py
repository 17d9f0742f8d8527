"""Request ID + access log middleware.

Learn: Every request gets an ID, taken from an incoming X-Request-ID
header (the worker forwards its own) or generated here. It is bound to
structlog's contextvars, so the service-layer log lines for a withdrawal
carry the same request_id as the access line written when it finishes.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from withdrawal_relay.api import unversioned

logger = structlog.get_logger()

# Polled constantly by dashboards and load balancers
QUIET_PATHS = frozenset({"/api/health", "/api/dashboard/stats"})


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        if unversioned(request.url.path) not in QUIET_PATHS:
            logger.info(
                "wrelay.request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return response
