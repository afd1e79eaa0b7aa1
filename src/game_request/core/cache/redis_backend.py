"""Redis cache backend.

Values are stored as JSON under a key prefix so that clear() never touches
keys owned by other applications sharing the same database.

Storage Schema:
- {prefix}{key} -> {value_json} (with EX ttl)
"""

import json
import logging
from typing import Any, Optional

from redis.asyncio import Redis

from .backend import CacheBackend

logger = logging.getLogger(__name__)

_SCAN_BATCH = 500


class RedisCacheBackend(CacheBackend):
    """Networked cache shared by every app instance."""

    name = "redis"

    def __init__(self, redis_client: Redis, key_prefix: str = "gamerequest:", owner=None):
        """Initialize Redis backend

        Args:
            redis_client: Connected redis.asyncio client (decode_responses=True)
            key_prefix: Namespace prepended to every key
            owner: Object with an async disconnect(), closed with the backend
        """
        self.redis = redis_client
        self.key_prefix = key_prefix
        self._owner = owner

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.redis.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int]) -> None:
        payload = json.dumps(value, default=str)
        if ttl_seconds is not None:
            await self.redis.setex(self._key(key), ttl_seconds, payload)
        else:
            await self.redis.set(self._key(key), payload)

    async def delete(self, keys: list[str]) -> int:
        if not keys:
            return 0
        return await self.redis.delete(*[self._key(key) for key in keys])

    async def delete_pattern(self, pattern: str) -> int:
        return await self._delete_matching(self._key(pattern))

    async def clear(self) -> None:
        removed = await self._delete_matching(f"{self.key_prefix}*")
        logger.debug(f"Cleared {removed} Redis cache keys under {self.key_prefix}")

    async def size(self) -> int:
        count = 0
        async for _ in self.redis.scan_iter(match=f"{self.key_prefix}*", count=_SCAN_BATCH):
            count += 1
        return count

    async def ping(self) -> None:
        await self.redis.ping()

    async def close(self) -> None:
        if self._owner is not None:
            await self._owner.disconnect()

    async def _delete_matching(self, match: str) -> int:
        removed = 0
        batch: list[str] = []
        async for key in self.redis.scan_iter(match=match, count=_SCAN_BATCH):
            batch.append(key)
            if len(batch) >= _SCAN_BATCH:
                removed += await self.redis.delete(*batch)
                batch = []
        if batch:
            removed += await self.redis.delete(*batch)
        return removed
