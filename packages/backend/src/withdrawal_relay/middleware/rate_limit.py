"""Rate limiting middleware — per-IP request budget per minute, counted in Redis.

Learn: One counter key per client IP per clock minute
("wrelay:rl:{ip}:{minute}"), INCR'd on every request and left to expire.
Redis being off (WRELAY_REDIS_URL="", tests) or erroring means no limit:
the relay must keep taking worker callbacks even when Redis is down.

The worker's ingest callback and the health check are never limited, under
either the /api/v1 or the unversioned /api prefix.
WebSocket upgrades don't pass through HTTP middleware at all.
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from withdrawal_relay.api import unversioned

logger = structlog.get_logger()

EXEMPT_PATHS = frozenset({"/api/health", "/api/withdrawals/new"})


def bucket_key(client_ip: str, now: float | None = None) -> str:
    minute = int((time.time() if now is None else now) // 60)
    return f"wrelay:rl:{client_ip}:{minute}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, rpm: int = 600):
        super().__init__(app)
        self.rpm = rpm

    async def _hits(self, client_ip: str) -> int | None:
        """Count this request. None when there is nothing to count against."""
        from withdrawal_relay.realtime.pubsub import get_redis

        try:
            redis = get_redis()
        except RuntimeError:
            return None

        key = bucket_key(client_ip)
        try:
            hits = await redis.incr(key)
            if hits == 1:
                await redis.expire(key, 120)
        except Exception as e:
            logger.warning("wrelay.rate_limit_unavailable", error=str(e))
            return None
        return hits

    async def dispatch(self, request: Request, call_next) -> Response:
        if self.rpm <= 0 or unversioned(request.url.path) in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        hits = await self._hits(client_ip)
        if hits is None:
            return await call_next(request)

        if hits > self.rpm:
            logger.warning("wrelay.rate_limited", client_ip=client_ip, hits=hits)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.rpm - hits))
        return response
