"""
Rate Limiting Module

Sliding-window rate limiting for API endpoints.
Uses the shared Redis client when it is connected and falls back to an
in-memory window otherwise.

Limited endpoints:
- Admin decisions (approve/reject/cancel) to stop mass operations
- Voucher verification and vendor submissions to stop code enumeration
"""

import logging
import time
from collections.abc import Callable
from functools import wraps
from typing import Any

from fastapi import HTTPException, Request, status
from redis.asyncio import Redis
from redis.exceptions import RedisError

from voucher_portal.core import redis as redis_state

logger = logging.getLogger(__name__)

# In-memory fallback: {key: [timestamp, ...]}
_memory_store: dict[str, list[float]] = {}


class RateLimitExceeded(HTTPException):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _check_rate_limit_redis(
    client: Redis,
    key: str,
    limit: int,
    window_seconds: int,
) -> bool:
    """
    Check rate limit using Redis sorted sets.

    Args:
        client: Redis client
        key: Rate limit key (e.g., "admin_action:<user_id>:/path")
        limit: Maximum requests allowed
        window_seconds: Time window in seconds

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    now = time.time()
    window_start = now - window_seconds

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, window_start)
    pipe.zcard(key)
    pipe.zadd(key, {str(now): now})
    pipe.expire(key, window_seconds)

    results = await pipe.execute()
    current_count = results[1]

    return current_count < limit


def _check_rate_limit_memory(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check rate limit using process memory.

    Only correct for a single server instance.
    """
    now = time.time()
    window_start = now - window_seconds

    hits = [ts for ts in _memory_store.get(key, []) if ts > window_start]
    if len(hits) >= limit:
        _memory_store[key] = hits
        return False

    hits.append(now)
    _memory_store[key] = hits
    return True


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check if a request is within rate limits.

    Tries Redis first, falls back to in-memory storage.

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    client = redis_state.redis_client

    if client is not None:
        try:
            return await _check_rate_limit_redis(client, key, limit, window_seconds)
        except RedisError as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_rate_limit_memory(key, limit, window_seconds)


def reset_memory_store() -> None:
    """Clear the in-memory windows."""
    _memory_store.clear()


def rate_limit(
    limit: int = 10,
    window_seconds: int = 60,
    key_func: Callable[[Request], str] | None = None,
):
    """
    Rate limiting decorator for FastAPI endpoints.

    The endpoint must accept a `request: Request` parameter.

    Usage:
        @router.post("/{id}/approve")
        @rate_limit(limit=30, window_seconds=60, key_func=user_action_key)
        async def approve(request: Request, ...):
            ...

    Raises:
        RateLimitExceeded: When rate limit is exceeded (HTTP 429)
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            request: Request | None = kwargs.get("request")
            if request is None:
                request = next((a for a in args if isinstance(a, Request)), None)

            if request is None:
                logger.warning(
                    f"Rate limit decorator on {func.__name__} couldn't find Request object"
                )
                return await func(*args, **kwargs)

            if key_func:
                key = key_func(request)
            else:
                client_ip = request.client.host if request.client else "unknown"
                key = f"rate_limit:{client_ip}:{request.url.path}"

            if not await check_rate_limit(key, limit, window_seconds):
                logger.warning(f"Rate limit exceeded for {key}: {limit}/{window_seconds}s")
                raise RateLimitExceeded(limit, window_seconds)

            return await func(*args, **kwargs)

        return wrapper

    return decorator


def user_action_key(request: Request) -> str:
    """
    Rate limit key for authenticated actions.

    Uses the caller ID stored on request.state by the auth dependency,
    falling back to the client IP.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user_action:{user_id}:{request.url.path}"

    client_ip = request.client.host if request.client else "unknown"
    return f"user_action:{client_ip}:{request.url.path}"


def verification_key(request: Request) -> str:
    """Rate limit key shared by every verification-style endpoint for one caller."""
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"verify:{user_id}"
    client_ip = request.client.host if request.client else "unknown"
    return f"verify:{client_ip}"


__all__ = [
    "rate_limit",
    "check_rate_limit",
    "reset_memory_store",
    "user_action_key",
    "verification_key",
    "RateLimitExceeded",
]
