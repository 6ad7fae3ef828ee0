import redis.asyncio as redis
from typing import Optional
import structlog

from salon_booking.core.config import settings

logger = structlog.get_logger(__name__)


class RedisClient:
    """Redis client used for cross-worker booking locks."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis_pool = None

    async def init_redis(self):
        """Initialize Redis connection pool."""
        try:
            self.redis_pool = redis.ConnectionPool.from_url(
                self.url,
                decode_responses=True,
                retry_on_timeout=True,
                socket_keepalive=True,
                socket_keepalive_options={}
            )

            # Test connection
            async with redis.Redis(connection_pool=self.redis_pool) as r:
                await r.ping()
                logger.info("Redis connection established")

        except Exception as e:
            logger.error("Failed to connect to Redis", exc_info=e)
            raise

    async def get_redis(self) -> redis.Redis:
        """Get Redis client instance."""
        if not self.redis_pool:
            await self.init_redis()
        return redis.Redis(connection_pool=self.redis_pool)

    async def employee_lock(self, employee_id: int, timeout: int):
        """Build (but do not acquire) the booking lock of an employee."""
        client = await self.get_redis()
        return client.lock(
            f"booking_lock:employee:{employee_id}",
            timeout=timeout,
            blocking_timeout=timeout,
        )

    async def close(self):
        if self.redis_pool:
            await self.redis_pool.disconnect()
            self.redis_pool = None


# Global Redis client instance
redis_client = RedisClient()
