import json
from typing import Any, Dict, Optional
import redis.asyncio as redis
from redis.asyncio import ConnectionPool
import logging

from ftrmsg.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Redis client for the job event log and health checks.
    """

    def __init__(self):
        self.pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True
        )
        self.client: Optional[redis.Redis] = None

    async def connect(self):
        """Initialize Redis connection."""
        try:
            self.client = redis.Redis(connection_pool=self.pool)
            # Test connection
            await self.client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    async def disconnect(self):
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info("Redis connection closed")

    async def ping(self) -> bool:
        if not self.client:
            await self.connect()
        return bool(await self.client.ping())

    async def push_event(self, list_name: str, event: Dict[str, Any], max_length: int = 10000):
        """Prepend an event to a capped list."""
        if not self.client:
            await self.connect()
        await self.client.lpush(list_name, json.dumps(event, default=str))
        await self.client.ltrim(list_name, 0, max_length - 1)


# Global Redis client instance
redis_client = RedisClient()
