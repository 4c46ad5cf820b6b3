"""
Redis Configuration

Optional backend for the sliding-window rate limiter. When the client is
None, core.rate_limit keeps its windows in process memory.
"""

from redis.asyncio import Redis, from_url

from voucher_portal.core.config import settings

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """Connect and ping. Call this on application startup."""
    global redis_client
    redis_client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await redis_client.ping()
    return redis_client


async def close_redis() -> None:
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
