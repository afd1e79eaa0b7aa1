"""Health Routes

Purpose: Liveness and dependency status for load balancers and operators
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from game_request.api.dependencies import get_app_settings
from game_request.config.settings import Settings

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def root_health_check(settings: Settings = Depends(get_app_settings)):
    """Root health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment
    }


@router.get("/api/health")
async def health_check(request: Request, settings: Settings = Depends(get_app_settings)):
    """Detailed health: database, cache backend and auth provider

    Returns 200 with status "degraded" when a dependency is down; the cache
    degrading never makes the service unhealthy.
    """
    state = request.app.state
    services = {}

    try:
        await state.database.ping()
        services["database"] = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        services["database"] = "unhealthy"

    services["cache"] = {
        "backend": state.cache.backend_name,
        "status": "healthy" if await state.cache.health_check() else "degraded",
    }

    manager = state.auth_manager
    services["auth"] = {
        "provider": manager.active_kind.value,
        "valid": manager.validate_configuration().valid,
        "auto_sync": manager.sync_running,
    }

    healthy = services["database"] == "healthy"
    return {
        "success": True,
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.service_name,
        "version": settings.service_version,
        "services": services,
    }
