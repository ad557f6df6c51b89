"""Redis connection — backing store for per-IP rate limiting.

Learn: Redis is optional. If it can't be reached at startup the app
still serves requests; RateLimitMiddleware simply lets everything
through. No auth or session state ever lives in Redis — tokens are
in the database and access tokens are stateless.
"""

from typing import Optional

import redis.asyncio as aioredis

from pocketbook.config import settings

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection
    await client.ping()
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
