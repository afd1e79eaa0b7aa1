"""In-process cache backend.

Single-instance only: every worker process keeps its own copy.
"""

import fnmatch
import time
from typing import Any, Callable, Optional

from .backend import CacheBackend


class MemoryCacheBackend(CacheBackend):
    """Dictionary-backed cache with lazy and periodic expiry."""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[str, tuple[Any, Optional[float]]] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and self._clock() > expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int]) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._entries[key] = (value, expires_at)

    async def delete(self, keys: list[str]) -> int:
        removed = 0
        for key in keys:
            if self._entries.pop(key, None) is not None:
                removed += 1
        return removed

    async def delete_pattern(self, pattern: str) -> int:
        matching = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        return await self.delete(matching)

    async def clear(self) -> None:
        self._entries.clear()

    async def size(self) -> int:
        return len(self._entries)

    async def keys(self) -> list[str]:
        return list(self._entries)

    async def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [
            key
            for key, (_, expires_at) in self._entries.items()
            if expires_at is not None and now > expires_at
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)
