"""Integration Admin Routes

Purpose: Inspect and switch the authentication provider, trigger user sync,
and receive webhooks from an external user system.

Key Endpoints:
- GET/POST /api/integrations/config: Provider info / switch provider (admin)
- GET/POST /api/integrations/sync: Sync status / trigger sync (admin)
- GET /api/integrations/webhook: Subscription handshake
- POST /api/integrations/webhook: User events (signature checked)
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from game_request.api.dependencies import get_app_settings, get_auth_manager, require_admin
from game_request.config.settings import Settings
from game_request.core.auth.manager import AuthManager
from game_request.core.auth.provider import (
    ProviderCapabilityError,
    UserIdentity,
    UserSyncError,
    WebhookSignatureError,
)
from game_request.domain.models.api import ProviderSwitchRequest, SyncRequest

router = APIRouter(prefix="/api/integrations", tags=["integrations"])
logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("x-hub-signature-256", "x-signature", "signature")


@router.get("/config")
async def get_config(
    manager: AuthManager = Depends(get_auth_manager),
    admin: UserIdentity = Depends(require_admin),
):
    """Active provider, its validation state and every available provider"""
    return {
        "success": True,
        "current": manager.provider_info(),
        "validation": manager.validate_configuration().to_dict(),
        "providers": manager.available_providers(),
    }


@router.post("/config")
async def switch_provider(
    request: ProviderSwitchRequest,
    manager: AuthManager = Depends(get_auth_manager),
    settings: Settings = Depends(get_app_settings),
    admin: UserIdentity = Depends(require_admin),
):
    """Switch the active provider. Invalid configurations are rejected with the issues found."""
    result = await manager.switch_provider(request.provider, request.config)
    if not result.valid:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": result.message, "validation": result.to_dict()},
        )

    logger.info(f"Admin {admin.user_id} switched auth provider to {manager.active_kind.value}")
    if settings.enable_auto_sync:
        manager.start_user_sync(settings.sync_interval_seconds)
    return {
        "success": True,
        "message": result.message,
        "current": manager.provider_info(),
        "validation": result.to_dict(),
    }


@router.get("/sync")
async def sync_status(
    manager: AuthManager = Depends(get_auth_manager),
    admin: UserIdentity = Depends(require_admin),
):
    capabilities = manager.config.capabilities
    return {
        "success": True,
        "provider": manager.active_kind.value,
        "supports_sync": capabilities.supports_sync,
        "auto_sync": manager.sync_running,
    }


@router.post("/sync")
async def trigger_sync(
    request: SyncRequest,
    manager: AuthManager = Depends(get_auth_manager),
    admin: UserIdentity = Depends(require_admin),
):
    """Pull one user or every user from the external system"""
    try:
        if request.action == "sync_user":
            if not request.user_id:
                raise HTTPException(status_code=400, detail="user_id is required for sync_user")
            user = await manager.sync_user(request.user_id)
            return {
                "success": True,
                "action": request.action,
                "user": user.model_dump(exclude={"metadata"}) if user else None,
            }

        result = await manager.sync_all_users()
        return {
            "success": True,
            "action": request.action,
            "result": result.to_dict() if result else None,
        }
    except ProviderCapabilityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UserSyncError as e:
        logger.error(f"User sync ({request.action}) failed: {e}")
        raise HTTPException(status_code=500, detail=f"User sync failed: {e}")


@router.get("/webhook")
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    manager: AuthManager = Depends(get_auth_manager),
):
    """Subscription handshake: echo the challenge when the verify token matches"""
    answer = manager.verify_webhook_subscription(mode, token, challenge)
    if answer is None:
        raise HTTPException(status_code=403, detail="Webhook verification failed")
    return PlainTextResponse(answer)


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    manager: AuthManager = Depends(get_auth_manager),
):
    """Apply a user event pushed by the external system"""
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Webhook body must be JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook body must be a JSON object")

    signature = next(
        (request.headers[name] for name in SIGNATURE_HEADERS if name in request.headers),
        None,
    )

    try:
        result = await manager.handle_webhook(payload, signature, raw_body)
    except ProviderCapabilityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except WebhookSignatureError as e:
        raise HTTPException(status_code=401, detail=str(e))

    if not result.get("success"):
        return JSONResponse(status_code=400, content=result)
    return result
