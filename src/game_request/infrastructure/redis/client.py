"""Redis Client for the GameRequest service

Provides async Redis client management for the networked cache backend.
"""

import logging
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RedisClient:
    """Async Redis client wrapper"""

    def __init__(self, url: str):
        """Initialize Redis client

        Args:
            url: Redis connection URL (redis://[:password@]host:port/db)
        """
        self.url = url
        self._client: Optional[redis.Redis] = None

    async def connect(self):
        """Establish Redis connection and verify it with a PING.

        Raises:
            redis.RedisError: If the server cannot be reached
        """
        if not self._client:
            client = redis.from_url(self.url, decode_responses=True)
            try:
                await client.ping()
            except Exception:
                await client.aclose()
                raise
            self._client = client
            logger.info(f"Connected to Redis: {self._safe_url()}")

    async def disconnect(self):
        """Close Redis connection"""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from Redis")

    def get_client(self) -> redis.Redis:
        """Get the underlying Redis client

        Returns:
            Redis client instance

        Raises:
            RuntimeError: If client not connected
        """
        if not self._client:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    def _safe_url(self) -> str:
        """Connection URL with any password masked for logging"""
        if "@" not in self.url:
            return self.url
        scheme, rest = self.url.split("://", 1)
        return f"{scheme}://***@{rest.split('@', 1)[1]}"
