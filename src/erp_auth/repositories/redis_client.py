import redis.asyncio as redis

from erp_auth.configs.logging_config import get_logger

log = get_logger(__name__)


class RedisClient:
    """
    Holds the shared asyncio Redis connection used by the session cache.
    """

    client: redis.Redis = None

    async def connect(self, url: str) -> redis.Redis:
        try:
            log.info("redis.connect")
            self.client = redis.from_url(url, decode_responses=True)
            await self.client.ping()
            log.info("redis.connected")
        except Exception as e:
            log.error("redis.connect_failed error=%s", e)
            raise
        return self.client

    async def close(self) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None


redis_client = RedisClient()
