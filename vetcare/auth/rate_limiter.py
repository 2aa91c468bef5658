"""Redis-backed fixed-window rate limiting for FastAPI routes.

Each limited route gets a counter per client IP that expires with its window.
When Redis cannot be reached the request is refused with 503 rather than let
through unthrottled.
"""

import logging

import redis
from fastapi import HTTPException, Request, status

from vetcare.core import config

logger = logging.getLogger(__name__)

redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    global redis_client

    if redis_client is None:
        redis_client = redis.from_url(
            config.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
    return redis_client


def check_rate_limit(key: str, limit: int, window_seconds: int, client: redis.Redis) -> tuple[bool, int, int]:
    """Count one request against ``key``.

    Returns whether the request is allowed, the count in the current window
    and the seconds until the window resets.
    """
    pipe = client.pipeline()
    pipe.incr(key)
    pipe.ttl(key)
    count, ttl = pipe.execute()

    # A fresh key has no expiry yet; the first request of a window starts it.
    if ttl < 0:
        client.expire(key, window_seconds)
        ttl = window_seconds
    return count <= limit, count, ttl


def client_ip(request: Request) -> str:
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.client.host if request.client else 'unknown'


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str, detail: str):
    """Build a dependency allowing ``limit`` requests per ``window_seconds`` per client IP."""

    def rate_limiter(request: Request) -> None:
        key = f'rate_limit:{key_prefix}:{client_ip(request)}'
        try:
            allowed, count, retry_after = check_rate_limit(key, limit, window_seconds, get_redis_client())
        except redis.RedisError as exc:
            logger.exception('Rate limit check failed for %s', key)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail='Rate limiting service temporarily unavailable.',
            ) from exc

        if not allowed:
            logger.warning('Rate limit exceeded for %s (%s/%s)', key, count, limit)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=detail.format(seconds=retry_after),
                headers={'Retry-After': str(retry_after)},
            )

    return rate_limiter


login_rate_limit = create_rate_limiter(
    limit=config.LOGIN_RATE_LIMIT,
    window_seconds=config.LOGIN_RATE_WINDOW_SECONDS,
    key_prefix='login',
    detail='Too many login attempts. Please try again in {seconds} seconds.',
)
