"""
Redis connection for the recommendation cache.

The cache is optional at runtime: when redis is down, recommendations are
recomputed and /health reports the cache as down.
"""

import logging
import redis.asyncio as redis
from redis.exceptions import RedisError
from taxibook.app.core.config import settings

logger = logging.getLogger(__name__)

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
    socket_connect_timeout=settings.redis_connect_timeout_seconds,
)


async def get_redis():
    """FastAPI dependency returning the shared client."""
    return redis_client


async def ping_redis() -> bool:
    try:
        return bool(await redis_client.ping())
    except (RedisError, OSError) as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False


async def close_redis():
    await redis_client.aclose()
