"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis relay, stats seeding,
database engine). Middleware, CORS, routers and the WebSocket endpoint
are all registered here.
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from withdrawal_relay import __version__
from withdrawal_relay.api import api_router, legacy_router
from withdrawal_relay.config import settings

logger = structlog.get_logger()


async def _seed_stats() -> None:
    """Load the dashboard counters from the withdrawals table."""
    from withdrawal_relay.db.engine import async_session_factory
    from withdrawal_relay.services.stats import stats
    from withdrawal_relay.services.withdrawal_service import count_by_status

    async with async_session_factory() as session:
        total, pending, completed = await count_by_status(session)
    stats.seed(total=total, pending=pending, successful=completed)
    logger.info("wrelay.stats_seeded", total=total, pending=pending, completed=completed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    Redis and the database are both allowed to be down at startup: the relay
    then serves single-process fan-out and the counters start at zero.
    """
    logger.info(
        "wrelay.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from withdrawal_relay.realtime.hub import hub
    from withdrawal_relay.realtime.pubsub import close_redis, init_redis, run_relay

    relay_task = None
    try:
        if await init_redis():
            relay_task = asyncio.create_task(run_relay(hub))
            logger.info("wrelay.redis_connected", url=settings.redis_url)
        else:
            logger.info("wrelay.redis_disabled")
    except Exception as e:
        logger.warning("wrelay.redis_unavailable", error=str(e))

    try:
        await _seed_stats()
    except Exception as e:
        logger.warning("wrelay.stats_seed_failed", error=str(e))

    yield

    logger.info("wrelay.shutdown", clients=len(hub))

    if relay_task:
        relay_task.cancel()
        try:
            await relay_task
        except asyncio.CancelledError:
            pass

    await close_redis()

    from withdrawal_relay.db.engine import engine
    await engine.dispose()


async def _storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "wrelay.storage_error",
        path=request.url.path,
        error=str(exc),
    )
    return JSONResponse(status_code=500, content={"detail": "Storage error"})


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Withdrawal Relay",
        description="Real-time relay for withdrawal requests: dashboard + mobile fan-out, push notifications",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RequestId → Security → RateLimit → handler

    from withdrawal_relay.middleware.rate_limit import RateLimitMiddleware
    from withdrawal_relay.middleware.request_id import RequestIdMiddleware
    from withdrawal_relay.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RateLimitMiddleware, rpm=settings.rate_limit_rpm)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SQLAlchemyError, _storage_error_handler)

    app.include_router(api_router)
    app.include_router(legacy_router)

    from withdrawal_relay.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    static_dir = Path(settings.static_dir)

    @app.get("/", include_in_schema=False)
    async def root():
        return {"message": "Hello World!"}

    @app.get("/dashboard", include_in_schema=False)
    async def dashboard():
        page = static_dir / "dashboard.html"
        if not page.is_file():
            raise HTTPException(status_code=404, detail="Dashboard not installed")
        return FileResponse(page)

    # Mounted last so it never shadows API or WebSocket routes
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir), name="static")

    return app


# Default app instance (used by uvicorn: withdrawal_relay.main:app)
app = create_app()
