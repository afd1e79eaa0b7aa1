"""Cache facade used by route handlers.

Wraps exactly one backend and applies the fail-open policy: any backend
error is logged and reported to the caller as a cache miss (or a no-op for
writes). A broken cache therefore degrades to always recomputing instead of
breaking requests.

There is no request coalescing. Concurrent misses on the same key each run
their compute function and the last write wins.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Union

from .backend import CacheBackend

logger = logging.getLogger(__name__)

KeyOrKeys = Union[str, list[str], tuple[str, ...]]


def _as_key_list(keys: KeyOrKeys) -> list[str]:
    if isinstance(keys, str):
        return [keys]
    return list(keys)


class CacheFacade:
    """Get/set/delete/clear/invalidate over a configured backend."""

    def __init__(self, backend: CacheBackend, default_ttl: int = 300):
        """Initialize cache facade

        Args:
            backend: Storage backend (memory or Redis)
            default_ttl: TTL in seconds used when set() gets none
        """
        self.backend = backend
        self.default_ttl = default_ttl

    @property
    def backend_name(self) -> str:
        return self.backend.name

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on miss or backend failure."""
        try:
            return await self.backend.get(key)
        except Exception as e:
            logger.warning(f"Cache get failed for key {key} ({self.backend.name}): {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a value. Returns False when the TTL is not positive or the backend rejected the write."""
        ttl = ttl if ttl is not None else self.default_ttl
        if ttl <= 0:
            logger.warning(f"Cache set skipped for key {key}: non-positive ttl {ttl}")
            return False
        try:
            await self.backend.set(key, value, ttl)
            return True
        except Exception as e:
            logger.warning(f"Cache set failed for key {key} ({self.backend.name}): {e}")
            return False

    async def delete(self, keys: KeyOrKeys) -> int:
        """Remove one key or a list of keys. Returns the number removed."""
        key_list = _as_key_list(keys)
        if not key_list:
            return 0
        try:
            return await self.backend.delete(key_list)
        except Exception as e:
            logger.warning(f"Cache delete failed for keys {key_list} ({self.backend.name}): {e}")
            return 0

    async def invalidate(self, keys: KeyOrKeys) -> int:
        """Drop entries made stale by a write."""
        removed = await self.delete(keys)
        logger.debug(f"Invalidated cache keys {_as_key_list(keys)} (removed={removed})")
        return removed

    async def invalidate_pattern(self, pattern: str) -> int:
        """Drop every entry whose key matches a glob pattern."""
        try:
            return await self.backend.delete_pattern(pattern)
        except Exception as e:
            logger.warning(f"Cache pattern invalidation failed for {pattern} ({self.backend.name}): {e}")
            return 0

    async def clear(self) -> bool:
        """Remove every entry owned by this cache."""
        try:
            await self.backend.clear()
            logger.info(f"Cache cleared ({self.backend.name})")
            return True
        except Exception as e:
            logger.warning(f"Cache clear failed ({self.backend.name}): {e}")
            return False

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """Return the cached value, computing and storing it on miss.

        Errors raised by compute() propagate and nothing is cached. A None
        result is returned but not stored, since None already means miss.

        Args:
            key: Cache key
            compute: Coroutine function producing the value
            ttl: Lifetime in seconds (defaults to the facade default)

        Returns:
            Cached or freshly computed value
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        value = await compute()
        if value is not None:
            await self.set(key, value, ttl)
        return value

    async def cleanup_expired(self) -> int:
        """Evict expired entries of backends without native expiry."""
        try:
            removed = await self.backend.cleanup_expired()
            if removed:
                logger.debug(f"Evicted {removed} expired cache entries")
            return removed
        except Exception as e:
            logger.warning(f"Cache cleanup failed ({self.backend.name}): {e}")
            return 0

    async def stats(self) -> dict:
        """Backend name, connection state and entry count."""
        stats = {"backend": self.backend.name, "connected": self.backend.connected, "size": 0, "keys": []}
        try:
            stats["size"] = await self.backend.size()
            stats["keys"] = await self.backend.keys()
        except Exception as e:
            logger.warning(f"Cache stats failed ({self.backend.name}): {e}")
            stats["connected"] = False
        return stats

    async def health_check(self) -> bool:
        """True if the backend answers a round trip."""
        try:
            await self.backend.ping()
            return True
        except Exception as e:
            logger.error(f"Cache health check failed ({self.backend.name}): {e}")
            return False

    async def close(self) -> None:
        try:
            await self.backend.close()
        except Exception as e:
            logger.warning(f"Cache close failed ({self.backend.name}): {e}")
