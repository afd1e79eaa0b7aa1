"""Request dependencies.

Shared services live on app.state (created in the lifespan); these helpers
expose them to route handlers through Depends.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from game_request.config.settings import Settings
from game_request.core.auth.manager import AuthManager
from game_request.core.auth.provider import UserIdentity
from game_request.core.cache.facade import CacheFacade

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> CacheFacade:
    return request.app.state.cache


def get_auth_manager(request: Request) -> AuthManager:
    return request.app.state.auth_manager


def get_session_factory(request: Request):
    return request.app.state.database.session_factory


async def get_optional_user(
    request: Request,
    manager: AuthManager = Depends(get_auth_manager),
    settings: Settings = Depends(get_app_settings)
) -> Optional[UserIdentity]:
    """Authenticate the request from its session cookies; None when anonymous."""
    result = await manager.authenticate_request(
        request.cookies.get(settings.session_cookie_name),
        request.cookies.get(settings.fallback_cookie_name),
    )
    if not result.authenticated:
        logger.debug(f"Anonymous request to {request.url.path}: {result.error}")
        return None
    return result.user


async def require_user(user: Optional[UserIdentity] = Depends(get_optional_user)) -> UserIdentity:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return user


async def require_admin(user: UserIdentity = Depends(require_user)) -> UserIdentity:
    if not user.is_admin:
        logger.warning(f"Admin access denied for user {user.user_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user
