"""Cache facade over pluggable backends.

Supports two backends selected by CACHE_BACKEND:
- memory: in-process dictionary (single instance)
- redis: shared networked cache
"""

from .backend import CacheBackend
from .facade import CacheFacade
from .factory import create_cache
from .memory import MemoryCacheBackend
from .redis_backend import RedisCacheBackend

__all__ = [
    "CacheBackend",
    "CacheFacade",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "create_cache",
]
