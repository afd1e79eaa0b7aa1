"""Setup Routes

Purpose: Connectivity checks for the first-run setup wizard

Open to anonymous callers only while no admin account exists; after that
an admin session is required.

Key Endpoints:
- POST /api/setup/check: Test the database connection or the cache backend
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from game_request.api.dependencies import get_auth_manager, get_optional_user
from game_request.core.auth.manager import AuthManager
from game_request.core.auth.provider import UserIdentity
from game_request.domain.models.api import SetupCheckRequest

router = APIRouter(prefix="/api/setup", tags=["setup"])
logger = logging.getLogger(__name__)


async def require_setup_access(
    user: Optional[UserIdentity] = Depends(get_optional_user),
    manager: AuthManager = Depends(get_auth_manager),
) -> Optional[UserIdentity]:
    local = manager.local_provider
    if local is not None and await local.needs_initial_setup():
        return user
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


@router.post("/check", dependencies=[Depends(require_setup_access)])
async def check_service(check: SetupCheckRequest, request: Request):
    """Test one dependency and report the result

    The cache check never fails hard: the in-memory backend needs no
    connection and an unreachable Redis only degrades caching.
    """
    state = request.app.state

    if check.service == "database_connection":
        try:
            await state.database.ping()
        except Exception as e:
            logger.error(f"Setup database check failed: {e}")
            return {"success": False, "service": check.service, "error": f"Database connection failed: {e}"}
        return {"success": True, "service": check.service, "message": "Database connection successful"}

    cache = state.cache
    if cache.backend_name == "memory":
        return {
            "success": True,
            "service": check.service,
            "warning": "Redis is not configured, using the in-memory cache",
        }
    if not await cache.health_check():
        return {
            "success": True,
            "service": check.service,
            "warning": "Redis is unreachable, caching is degraded",
        }
    return {"success": True, "service": check.service, "message": "Redis connection successful"}
