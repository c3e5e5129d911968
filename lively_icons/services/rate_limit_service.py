"""
Per-plan hourly rate limiting.

Sliding window over a Redis sorted set: each allowed request adds one member
scored by its timestamp, members older than the window are trimmed before
counting. Keys are ``ratelimit:{plan}:{identifier}``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import math
import time
from typing import Optional, Sequence
import uuid

import redis

from ..core.constants import UNLIMITED_RATE_LIMIT_PER_HOUR, get_plan_config
from ..core.exceptions import RateLimitException
from ..core.redis_client import get_redis

logger = logging.getLogger(__name__)

WINDOW_MS = 60 * 60 * 1000

# KEYS[1] = sorted set key
# ARGV[1] = now_ms, ARGV[2] = window_ms, ARGV[3] = limit, ARGV[4] = member
# Returns: {allowed, remaining, reset_ms}
SLIDING_WINDOW_LUA = r"""
local key = KEYS[1]
local now_ms = tonumber(ARGV[1])
local window_ms = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])

redis.call('ZREMRANGEBYSCORE', key, 0, now_ms - window_ms)
local count = redis.call('ZCARD', key)

local reset_ms = now_ms + window_ms
local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
if oldest[2] then
  reset_ms = tonumber(oldest[2]) + window_ms
end

if count < limit then
  redis.call('ZADD', key, now_ms, ARGV[4])
  redis.call('PEXPIRE', key, window_ms)
  return {1, limit - count - 1, reset_ms}
end
return {0, 0, reset_ms}
"""


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: datetime
    retry_after: int  # seconds

    @property
    def reset_epoch(self) -> int:
        return int(self.reset_at.timestamp())

    def to_exception(self) -> RateLimitException:
        return RateLimitException(
            f"Rate limit exceeded. Try again in {self.retry_after} seconds.",
            retry_after=self.retry_after,
            remaining=self.remaining,
            reset_epoch=self.reset_epoch,
        )


def limit_for_plan(plan_type: str) -> int:
    per_hour = get_plan_config(plan_type).rate_limit_per_hour
    if math.isinf(per_hour):
        return UNLIMITED_RATE_LIMIT_PER_HOUR
    return int(per_hour)


def rate_limit_key(plan_type: str, identifier: str) -> str:
    return f"ratelimit:{plan_type}:{identifier}"


def decide(raw: Sequence[int | str], now_ms: int) -> RateLimitResult:
    """Convert the Lua reply into a result; pure so it can be tested without Redis."""
    allowed = bool(int(raw[0]))
    remaining = max(0, int(raw[1]))
    reset_ms = int(float(raw[2]))
    retry_after = 0 if allowed else max(1, math.ceil((reset_ms - now_ms) / 1000))
    return RateLimitResult(
        allowed=allowed,
        remaining=remaining,
        reset_at=datetime.fromtimestamp(reset_ms / 1000, tz=timezone.utc),
        retry_after=retry_after,
    )


def check_rate_limit(
    identifier: str,
    plan_type: str,
    client: Optional[redis.Redis] = None,
    now_ms: Optional[int] = None,
) -> RateLimitResult:
    """
    Record one request for ``identifier`` and report whether it is allowed.

    Redis outages fail open: the request is allowed and a warning logged.
    """
    limit = limit_for_plan(plan_type)
    now = now_ms if now_ms is not None else int(time.time() * 1000)
    key = rate_limit_key(plan_type, identifier)
    try:
        r = client or get_redis()
        raw = r.eval(SLIDING_WINDOW_LUA, 1, key, now, WINDOW_MS, limit, f"{now}:{uuid.uuid4().hex}")
    except redis.RedisError as exc:
        logger.warning("Rate limiter unavailable for %s, allowing request: %s", key, exc)
        return RateLimitResult(
            allowed=True,
            remaining=limit,
            reset_at=datetime.fromtimestamp((now + WINDOW_MS) / 1000, tz=timezone.utc),
            retry_after=0,
        )
    return decide(raw, now)


def enforce_rate_limit(identifier: str, plan_type: str) -> RateLimitResult:
    """Like ``check_rate_limit`` but raises ``RateLimitException`` when blocked."""
    result = check_rate_limit(identifier, plan_type)
    if not result.allowed:
        logger.info("Rate limit exceeded for %s on plan %s", identifier, plan_type)
        raise result.to_exception()
    return result
