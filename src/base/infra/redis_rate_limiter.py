"""Fixed-window rate limiter on top of redis.asyncio.Redis.

Keys: ``rate_limit:{name}:{identifier}:{window_id}`` holding the request
count for the current window. Check and increment run as one Lua script so
concurrent workers never both take the last slot.
"""

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Called with (limit name, identifier) whenever a request is refused.
ExceededHook = Callable[[str, str], Awaitable[None]]

KEY_PREFIX = "rate_limit:"

_CONSUME_SCRIPT = """
local counter_key = KEYS[1]
local limit = tonumber(ARGV[1])
local window_seconds = tonumber(ARGV[2])

local current = tonumber(redis.call('GET', counter_key) or '0')
if current >= limit then
    return {0, current, 0}
end

local new_count = redis.call('INCR', counter_key)
if new_count == 1 then
    redis.call('EXPIRE', counter_key, window_seconds)
end
return {1, new_count, limit - new_count}
"""


@dataclass(frozen=True)
class RateLimitConfig:
    name: str
    limit: int
    window_seconds: int = 60


@dataclass(frozen=True)
class RateLimitStatus:
    limit: int
    remaining: int
    reset_at: int
    retry_after: int
    is_allowed: bool


class RedisRateLimiter:
    """Counts requests per (limit name, identifier) in fixed windows.

    Without Redis, or when Redis fails, ``check_and_consume`` returns None
    and callers let the request through.
    """

    def __init__(
        self,
        redis_client: Redis | None = None,
        on_exceeded: ExceededHook | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._redis = redis_client
        self._on_exceeded = on_exceeded
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    def _counter_key(
        self, config: RateLimitConfig, identifier: str, window_id: int
    ) -> str:
        return f"{KEY_PREFIX}{config.name}:{identifier}:{window_id}"

    async def check_and_consume(
        self, config: RateLimitConfig, identifier: str
    ) -> RateLimitStatus | None:
        if not self._redis:
            return None

        now = int(self._clock())
        window_id = now // config.window_seconds
        reset_at = (window_id + 1) * config.window_seconds

        try:
            is_allowed, current, remaining = await self._redis.eval(
                _CONSUME_SCRIPT,
                1,
                self._counter_key(config, identifier, window_id),
                config.limit,
                config.window_seconds,
            )
        except Exception:
            logger.warning("Rate limit check failed for %s", config.name, exc_info=True)
            return None

        status = RateLimitStatus(
            limit=config.limit,
            remaining=max(int(remaining), 0),
            reset_at=reset_at,
            retry_after=max(reset_at - now, 1),
            is_allowed=bool(is_allowed),
        )
        if not status.is_allowed:
            logger.warning(
                "Rate limit exceeded for %s current=%s limit=%s",
                config.name,
                current,
                config.limit,
                extra={"rate_limit": config.name, "reset_at": reset_at},
            )
            if self._on_exceeded is not None:
                await self._on_exceeded(config.name, identifier)
        return status
