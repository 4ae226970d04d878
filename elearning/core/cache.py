import logging

import redis

from elearning.core.config import settings

logger = logging.getLogger(__name__)

_redis_client = None


def get_redis_client() -> redis.Redis:
    """Lazily build the shared synchronous Redis client used for token revocation."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(
            settings.redis_url, socket_connect_timeout=2, decode_responses=True
        )
        logger.info("Redis client initialised")
    return _redis_client


def ping_redis() -> bool:
    if not settings.redis_enabled:
        return False
    try:
        return bool(get_redis_client().ping())
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return False
