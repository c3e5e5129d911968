"""Shared Redis connection for rate limiting and email cooldowns."""

from functools import lru_cache

import redis

from .config import settings


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


__all__ = ["get_redis"]
