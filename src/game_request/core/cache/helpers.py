"""Named cache entries shared by catalog and user routes.

Each helper is a get_or_compute with a fixed key and lifetime. Data that
changes often gets a short TTL, catalog metadata a long one.
"""

from typing import Any, Awaitable, Callable

from .facade import CacheFacade

POPULAR_GAMES_TTL = 10 * 60
RECENT_GAMES_TTL = 5 * 60
GAME_REQUESTS_TTL = 2 * 60
USER_DATA_TTL = 3 * 60
GAME_DETAILS_TTL = 15 * 60

Compute = Callable[[], Awaitable[Any]]


def user_data_key(user_id: str, data_type: str) -> str:
    return f"user-{user_id}-{data_type}"


def game_details_key(game_id: str) -> str:
    return f"game-details-{game_id}"


async def cache_popular_games(cache: CacheFacade, compute: Compute) -> Any:
    return await cache.get_or_compute("popular-games", compute, POPULAR_GAMES_TTL)


async def cache_recent_games(cache: CacheFacade, compute: Compute) -> Any:
    return await cache.get_or_compute("recent-games", compute, RECENT_GAMES_TTL)


async def cache_game_requests(cache: CacheFacade, compute: Compute) -> Any:
    return await cache.get_or_compute("game-requests", compute, GAME_REQUESTS_TTL)


async def cache_user_data(cache: CacheFacade, user_id: str, data_type: str, compute: Compute) -> Any:
    """Per-user data such as a watchlist or request list."""
    return await cache.get_or_compute(user_data_key(user_id, data_type), compute, USER_DATA_TTL)


async def cache_game_details(cache: CacheFacade, game_id: str, compute: Compute) -> Any:
    return await cache.get_or_compute(game_details_key(game_id), compute, GAME_DETAILS_TTL)


async def invalidate_user_data(cache: CacheFacade, user_id: str) -> int:
    """Drop every cached entry belonging to one user."""
    return await cache.invalidate_pattern(user_data_key(user_id, "*"))
