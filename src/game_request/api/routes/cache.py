"""Cache Admin Routes

Purpose: Inspect and flush the shared cache (admin only)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from game_request.api.dependencies import get_cache, require_admin
from game_request.core.auth.provider import UserIdentity
from game_request.core.cache.facade import CacheFacade
from game_request.domain.models.api import CacheInvalidateRequest

router = APIRouter(prefix="/api/cache", tags=["cache"])
logger = logging.getLogger(__name__)


@router.get("/stats")
async def cache_stats(
    cache: CacheFacade = Depends(get_cache),
    admin: UserIdentity = Depends(require_admin),
):
    return {"success": True, "stats": await cache.stats()}


@router.post("/clear")
async def clear_cache(
    cache: CacheFacade = Depends(get_cache),
    admin: UserIdentity = Depends(require_admin),
):
    cleared = await cache.clear()
    if not cleared:
        raise HTTPException(status_code=500, detail="Cache clear failed")
    logger.info(f"Cache cleared by admin {admin.user_id}")
    return {"success": True, "message": "Cache cleared"}


@router.post("/cleanup")
async def cleanup_cache(
    cache: CacheFacade = Depends(get_cache),
    admin: UserIdentity = Depends(require_admin),
):
    """Evict expired entries now instead of waiting for the periodic sweep"""
    removed = await cache.cleanup_expired()
    return {"success": True, "removed": removed}


@router.post("/invalidate")
async def invalidate_cache(
    request: CacheInvalidateRequest,
    cache: CacheFacade = Depends(get_cache),
    admin: UserIdentity = Depends(require_admin),
):
    if not request.keys and not request.pattern:
        raise HTTPException(status_code=400, detail="Provide keys or a pattern")

    removed = 0
    if request.keys:
        removed += await cache.invalidate(request.keys)
    if request.pattern:
        removed += await cache.invalidate_pattern(request.pattern)
    return {"success": True, "removed": removed}
