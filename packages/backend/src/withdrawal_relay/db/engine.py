"""Async SQLAlchemy engine and session factory.

Learn: One engine per process. PostgreSQL goes through a small asyncpg pool;
SQLite (dev, tests) opens a connection per session, since aiosqlite connections
cannot be shared across event loops.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from withdrawal_relay.config import settings


def _pool_options(url: str) -> dict:
    # SQLite (local dev, tests): one short-lived connection per session.
    if url.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {"pool_size": 5, "max_overflow": 15, "pool_pre_ping": True}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_pool_options(settings.database_url),
)

# Each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
