import redis.asyncio as aioredis
from redis.exceptions import RedisError
import logging
import time
import uuid
from typing import Optional
from examguard.core.config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Redis access for request throttling.

    Sliding windows are kept as sorted sets of request timestamps. Every
    operation fails open: a Redis error is logged and reported as "unknown"
    (None), so the API keeps serving when Redis is down.
    """

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or settings.redis_url
        self._async_client: Optional[aioredis.Redis] = None

    async def get_async_client(self) -> aioredis.Redis:
        if self._async_client is None:
            client = aioredis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
                health_check_interval=30,
            )
            try:
                await client.ping()
            except (RedisError, OSError):
                await client.close()
                raise
            self._async_client = client
        return self._async_client

    async def record_hit(self, key: str, window_seconds: float, now: Optional[float] = None) -> Optional[int]:
        """
        Add one hit to the window at ``key`` and return how many hits it now
        holds, including this one. None when Redis is unavailable.
        """
        now = now if now is not None else time.time()
        member = f"{now:.6f}:{uuid.uuid4().hex[:8]}"
        try:
            client = await self.get_async_client()
            async with client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, now - window_seconds)
                pipe.zadd(key, {member: now})
                pipe.zcard(key)
                pipe.expire(key, max(int(window_seconds * 2), 1))
                _, _, count, _ = await pipe.execute()
            return int(count)
        except (RedisError, OSError) as e:
            logger.warning(f"Rate window update failed for '{key}': {e}")
            self._async_client = None
            return None

    async def ahealth_check(self) -> bool:
        try:
            client = await self.get_async_client()
            return bool(await client.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Cache health check failed: {e}")
            return False

    async def aclose(self):
        if self._async_client is not None:
            await self._async_client.close()
            self._async_client = None


cache = CacheManager()
