"""Redis clients.

Two pools share one server: an asyncio pool serves login sessions and the
health check from request handlers, and a blocking pool serves the billing
locks taken inside synchronous service code.
"""
import redis.asyncio as aioredis
import redis as sync_redis

from rentalhub.core.config import settings
from rentalhub.core.logging import get_logger

logger = get_logger(__name__)

redis_pool = aioredis.ConnectionPool.from_url(
    settings.REDIS_URL,
    max_connections=settings.REDIS_MAX_CONNECTIONS,
    decode_responses=True,
)

lock_redis_pool = sync_redis.ConnectionPool.from_url(
    settings.REDIS_URL,
    max_connections=settings.REDIS_LOCK_MAX_CONNECTIONS,
    decode_responses=True,
)


async def get_redis() -> aioredis.Redis:
    """FastAPI dependency for session storage"""
    return aioredis.Redis(connection_pool=redis_pool)


def get_lock_redis() -> sync_redis.Redis:
    return sync_redis.Redis(connection_pool=lock_redis_pool)


async def check_redis_connection() -> bool:
    try:
        r = await get_redis()
        await r.ping()
        return True
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        return False
