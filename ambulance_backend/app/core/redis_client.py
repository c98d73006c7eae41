"""
Redis connection for the cross-worker change relay.

The client connects lazily; nothing talks to Redis
unless CHANGE_FEED_USE_REDIS is set.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from ambulance_backend.app.core.config import settings

logger = logging.getLogger(__name__)

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
    health_check_interval=30,
)


async def ping_redis() -> bool:
    """Report whether the relay's Redis answers, for the health endpoint."""
    try:
        return bool(await redis_client.ping())
    except (RedisError, OSError) as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False
