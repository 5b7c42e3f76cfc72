# config/cache.py
import logging
from typing import Optional
from redis.asyncio import Redis, from_url
from config.settings import settings

logger = logging.getLogger(__name__)

_redis: Optional[Redis] = None


def _connect() -> Redis:
    # Store envelopes and limiter counters are both plain text.
    return from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_keepalive=True,
        health_check_interval=30,
    )


async def get_redis() -> Redis:
    """Process-wide Redis: rate limiter state and the redis store backend."""
    global _redis
    if _redis is None:
        client = _connect()
        # Unreachable Redis fails the boot, not the first request.
        await client.ping()
        _redis = client
        logger.info("redis.connected key_root=%s", settings.REDIS_KEY_ROOT)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is None:
        return
    client, _redis = _redis, None
    await client.aclose()
