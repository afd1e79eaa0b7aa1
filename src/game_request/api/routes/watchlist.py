"""Watchlist Routes

Purpose: Per-user watchlist of games

The list itself is served through the per-user cache entry and invalidated on
every add/remove.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from game_request.api.dependencies import get_cache, get_session_factory, require_user
from game_request.core.auth.provider import UserIdentity
from game_request.core.cache.facade import CacheFacade
from game_request.core.cache.helpers import cache_user_data, invalidate_user_data
from game_request.domain.models.api import WatchlistBatchRequest, WatchlistRequest
from game_request.infrastructure.database.connection import get_db
from game_request.infrastructure.database.repositories import WatchlistRepository

router = APIRouter(prefix="/api/watchlist", tags=["watchlist"])
logger = logging.getLogger(__name__)


def _local_user_id(user: UserIdentity) -> int:
    if not user.user_id.isdigit():
        raise HTTPException(status_code=400, detail="Watchlist requires a local user account")
    return int(user.user_id)


@router.get("")
async def list_watchlist(
    user: UserIdentity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheFacade = Depends(get_cache),
):
    user_id = _local_user_id(user)

    async def load():
        items = await WatchlistRepository(db).list_for_user(user_id)
        return [item.to_dict() for item in items]

    items = await cache_user_data(cache, str(user_id), "watchlist", load)
    return {"success": True, "items": items, "count": len(items)}


@router.post("/add")
async def add_to_watchlist(
    request: WatchlistRequest,
    user: UserIdentity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheFacade = Depends(get_cache),
):
    user_id = _local_user_id(user)
    item, created = await WatchlistRepository(db).add(user_id, request.game_id)
    await db.commit()
    await invalidate_user_data(cache, str(user_id))

    message = "Added to watchlist" if created else "Already in watchlist"
    return {"success": True, "added": created, "message": message, "item": item.to_dict()}


@router.post("/remove")
async def remove_from_watchlist(
    request: WatchlistRequest,
    user: UserIdentity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheFacade = Depends(get_cache),
):
    user_id = _local_user_id(user)
    removed = await WatchlistRepository(db).remove(user_id, request.game_id)
    await db.commit()
    await invalidate_user_data(cache, str(user_id))

    if not removed:
        raise HTTPException(status_code=404, detail="Game not in watchlist")
    return {"success": True, "removed": True, "message": "Removed from watchlist"}


@router.get("/status/{game_id}")
async def watchlist_status(
    game_id: str,
    user: UserIdentity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = _local_user_id(user)
    in_watchlist = await WatchlistRepository(db).contains(user_id, game_id)
    return {"success": True, "game_id": game_id, "in_watchlist": in_watchlist}


@router.post("/batch")
async def batch_watchlist_status(
    request: WatchlistBatchRequest,
    user: UserIdentity = Depends(require_user),
    session_factory=Depends(get_session_factory),
):
    """Watchlist status for up to 100 games

    Checks run concurrently, each on its own session. A failed check reports
    null for that game instead of failing the whole batch.
    """
    user_id = _local_user_id(user)

    async def check(game_id: str) -> bool:
        async with session_factory() as session:
            return await WatchlistRepository(session).contains(user_id, game_id)

    game_ids = list(dict.fromkeys(request.game_ids))
    results = await asyncio.gather(*(check(game_id) for game_id in game_ids), return_exceptions=True)

    statuses = {}
    errors = []
    for game_id, result in zip(game_ids, results):
        if isinstance(result, Exception):
            logger.warning(f"Watchlist status check failed for game {game_id}: {result}")
            statuses[game_id] = None
            errors.append({"game_id": game_id, "error": str(result)})
        else:
            statuses[game_id] = result

    return {"success": True, "statuses": statuses, "errors": errors}
