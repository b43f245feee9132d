"""Redis connection pool — shared by rate limiting and health checks.

Learn: Redis is optional. If LIVECAST_REDIS_URL is empty or the server is
unreachable at startup, the pool stays uninitialized and everything that
uses it degrades gracefully (rate limiting is skipped).
"""

from typing import Optional

import redis.asyncio as aioredis

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis(url: str) -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    client = aioredis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
