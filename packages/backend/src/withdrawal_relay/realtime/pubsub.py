"""Redis pub/sub — event broadcasting between app processes and WebSockets.

Learn: Redis pub/sub is fire-and-forget. If no one is listening, the message
is lost. That's fine for real-time UI updates (the dashboard can always
query the API to catch up). Withdrawals themselves are stored in the
database before anything is published.

With several app processes behind a load balancer, a withdrawal recorded on
process A must reach sockets held by process B. Every process therefore
publishes to one channel and runs run_relay(), which feeds whatever arrives
on the channel into its local hub. With WRELAY_REDIS_URL empty there is only
one process, and publish_event goes straight to the hub.
"""

import asyncio
import json
from typing import Any, Optional

import redis.asyncio as aioredis
import structlog

from withdrawal_relay.config import settings
from withdrawal_relay.realtime.hub import ConnectionHub, hub

logger = structlog.get_logger()

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> Optional[aioredis.Redis]:
    """Initialize the Redis connection pool. Returns None when disabled."""
    global _redis
    if not settings.redis_url:
        return None
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def encode_event(event_type: str, data: dict[str, Any]) -> str:
    return json.dumps({"type": event_type, **data}, default=str)


async def publish_event(event_type: str, data: dict[str, Any]) -> None:
    """Fan an event out to every connected client, on every process.

    Learn: Called by services after their database commit. Never raises:
    a broadcast hiccup must not turn a recorded withdrawal into a 500.
    """
    payload = encode_event(event_type, data)

    if _redis is not None:
        try:
            await _redis.publish(settings.redis_channel, payload)
            return
        except Exception as e:
            logger.warning(
                "wrelay.publish_failed",
                event_type=event_type,
                error=str(e),
            )
            # fall through to local delivery

    delivered = await hub.broadcast(payload)
    logger.debug("wrelay.broadcast_local", event_type=event_type, delivered=delivered)


async def run_relay(target: ConnectionHub = hub) -> None:
    """Forward every message on the Redis channel to the local hub.

    Runs until cancelled (lifespan shutdown).
    """
    r = get_redis()
    pubsub = r.pubsub()
    await pubsub.subscribe(settings.redis_channel)
    logger.info("wrelay.relay_started", channel=settings.redis_channel)
    try:
        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            delivered = await target.broadcast(message["data"])
            logger.debug("wrelay.relay_delivered", delivered=delivered)
    except asyncio.CancelledError:
        pass
    finally:
        await pubsub.unsubscribe(settings.redis_channel)
        await pubsub.aclose()
        logger.info("wrelay.relay_stopped")
