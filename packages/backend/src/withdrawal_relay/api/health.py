"""Health check endpoint.

Learn: Verifies the server is running and its dependencies are reachable.
Redis is optional; with WRELAY_REDIS_URL empty it reports "disabled",
which doesn't count against overall health.
"""

from fastapi import APIRouter
from sqlalchemy import text

from withdrawal_relay import __version__
from withdrawal_relay.config import settings
from withdrawal_relay.db.engine import engine
from withdrawal_relay.realtime.hub import hub

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["postgres"] = "ok"
    except Exception as e:
        checks["postgres"] = f"error: {e}"

    if not settings.redis_url:
        checks["redis"] = "disabled"
    else:
        try:
            from redis.asyncio import from_url

            r = from_url(settings.redis_url)
            await r.ping()
            await r.aclose()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {e}"

    status = "healthy" if all(
        v in ("ok", "disabled") for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {"status": status, "clients": len(hub), **checks}
