"""Redis connection utilities."""

from functools import lru_cache

from redis import ConnectionPool, Redis

from api.config import get_settings


@lru_cache
def get_redis_pool() -> ConnectionPool:
    """Get a cached Redis connection pool."""
    settings = get_settings()
    return ConnectionPool.from_url(
        str(settings.redis_url),
        decode_responses=True,
        max_connections=10,
    )


def get_redis_connection() -> Redis:
    """Get a Redis connection from the pool."""
    pool = get_redis_pool()
    return Redis(connection_pool=pool)


@lru_cache
def _get_redis_pool_bytes() -> ConnectionPool:
    """Get a cached Redis connection pool for byte-mode (RQ)."""
    settings = get_settings()
    return ConnectionPool.from_url(
        str(settings.redis_url),
        decode_responses=False,
        max_connections=10,
    )


def get_redis_connection_bytes() -> Redis:
    """Get a Redis connection without decode_responses for RQ and rq-scheduler."""
    pool = _get_redis_pool_bytes()
    return Redis(connection_pool=pool)


# Key prefixes for the repositories
JOB_KEY_PREFIX = "seo:job:"
REPORT_KEY_PREFIX = "seo:report:"
HISTORY_KEY_PREFIX = "seo:history:"
