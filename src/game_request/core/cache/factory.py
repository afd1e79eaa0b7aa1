"""Cache facade factory.

Selects the cache backend from configuration. Redis is used only when it is
configured and reachable at startup; otherwise the in-memory backend serves.
"""

import logging

from game_request.config.settings import Settings
from game_request.infrastructure.redis.client import RedisClient

from .facade import CacheFacade
from .memory import MemoryCacheBackend
from .redis_backend import RedisCacheBackend

logger = logging.getLogger(__name__)

VALID_BACKENDS = ("memory", "redis")


async def create_cache(settings: Settings) -> CacheFacade:
    """Build the cache facade described by settings.

    Args:
        settings: Application settings (CACHE_BACKEND, REDIS_URL, ...)

    Returns:
        CacheFacade over Redis or memory

    Raises:
        ValueError: If CACHE_BACKEND is not a known backend
    """
    mode = settings.cache_backend.lower()
    logger.info(f"Initializing cache backend: {mode}")

    if mode not in VALID_BACKENDS:
        raise ValueError(
            f"Unknown CACHE_BACKEND: {mode}. "
            f"Valid options: {', '.join(VALID_BACKENDS)}"
        )

    if mode == "redis":
        redis_client = RedisClient(settings.resolved_redis_url)
        try:
            await redis_client.connect()
        except Exception as e:
            logger.warning(f"Redis unavailable, falling back to in-memory cache: {e}")
        else:
            backend = RedisCacheBackend(
                redis_client.get_client(),
                key_prefix=settings.cache_key_prefix,
                owner=redis_client,
            )
            return CacheFacade(backend, default_ttl=settings.cache_default_ttl_seconds)

    return CacheFacade(MemoryCacheBackend(), default_ttl=settings.cache_default_ttl_seconds)
