"""Abstract cache backend interface.

Backends own storage and expiry. They are allowed to raise on failure;
the facade decides what a failure means for the caller.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class CacheBackend(ABC):
    """Contract every cache backend implements."""

    name: str = "abstract"

    @property
    def connected(self) -> bool:
        """Whether the backend can currently serve requests."""
        return True

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: Optional[int]) -> None:
        """Store a value. A ttl of None means no expiry."""
        pass

    @abstractmethod
    async def delete(self, keys: list[str]) -> int:
        """Remove keys and return how many existed."""
        pass

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching a glob pattern."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key owned by this backend."""
        pass

    @abstractmethod
    async def size(self) -> int:
        """Number of keys currently stored."""
        pass

    async def keys(self) -> list[str]:
        """Stored keys, when cheap to enumerate."""
        return []

    async def cleanup_expired(self) -> int:
        """Evict expired entries. Backends with native expiry do nothing."""
        return 0

    async def ping(self) -> None:
        """Round trip to the storage. Raises when it is unreachable."""
        return None

    async def close(self) -> None:
        """Release backend resources."""
        return None
