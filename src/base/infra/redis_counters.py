import logging

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RedisCounters:
    """Windowed counters on top of redis.asyncio.Redis.

    All methods are no-ops when Redis is None (graceful degradation) and
    catch Redis errors, logging a warning instead of failing the request.
    """

    def __init__(self, redis_client: Redis | None = None):
        self._redis = redis_client

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    async def increment(self, key: str, window_seconds: int) -> int:
        """Increment a counter and (re)arm its expiry. Returns the new value, 0 if disabled."""
        if not self._redis:
            return 0
        try:
            value = await self._redis.incr(key)
            await self._redis.expire(key, window_seconds)
            return int(value)
        except Exception:
            logger.warning("Redis counter increment failed for %s", key, exc_info=True)
            return 0

    async def get(self, key: str) -> int:
        if not self._redis:
            return 0
        try:
            value = await self._redis.get(key)
            return int(value) if value is not None else 0
        except Exception:
            logger.warning("Redis counter read failed for %s", key, exc_info=True)
            return 0

    async def reset(self, key: str) -> None:
        if not self._redis:
            return
        try:
            await self._redis.delete(key)
        except Exception:
            logger.warning("Redis counter reset failed for %s", key, exc_info=True)

    async def add_member(self, key: str, member: str, window_seconds: int) -> int:
        """Add a member to a windowed set. Returns the set cardinality, 0 if disabled."""
        if not self._redis:
            return 0
        try:
            await self._redis.sadd(key, member)
            await self._redis.expire(key, window_seconds)
            return int(await self._redis.scard(key))
        except Exception:
            logger.warning("Redis set update failed for %s", key, exc_info=True)
            return 0
