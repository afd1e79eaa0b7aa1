"""Authentication Routes

Purpose: Login, callback, logout and current-user endpoints

All flows go through the AuthManager, so the same endpoints serve every
provider kind. Successful logins set a session cookie: the primary cookie for
the active provider, the fallback cookie for local logins next to an external
provider.

Key Endpoints:
- GET /api/auth/login: Authorization URL (IdP redirect or local login page)
- POST /api/auth/login: Credential login
- GET /api/auth/callback: Authorization code callback
- POST /api/auth/logout: End the session
- GET /api/auth/me: Current user
- POST /api/auth/basic/login: Local account login next to any provider
- POST /api/auth/basic/register: Self-service signup (REGISTRATION_ENABLED)
- GET|POST /api/auth/basic/setup: First admin account
- POST /api/auth/basic/change-password, /api/auth/basic/reset-password
"""

import logging
import secrets
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from game_request.api.dependencies import (
    get_app_settings,
    get_auth_manager,
    get_cache,
    require_admin,
    require_user,
)
from game_request.config.settings import Settings
from game_request.core.auth.local import LocalAuthProvider
from game_request.core.auth.manager import AuthManager
from game_request.core.auth.provider import (
    AccountExistsError,
    AuthenticationError,
    ProviderCapabilityError,
    ProviderKind,
    UserIdentity,
)
from game_request.core.cache.facade import CacheFacade
from game_request.domain.models.api import (
    ChangePasswordRequest,
    InitialAdminRequest,
    LoginRequest,
    PasswordResetRequest,
    RegisterRequest,
)

router = APIRouter(prefix="/api/auth", tags=["authentication"])
logger = logging.getLogger(__name__)

LOGIN_STATE_TTL = 300
LOGIN_STATE_PREFIX = "oidc-state:"


def user_payload(user: UserIdentity) -> dict:
    """Public view of a user (no provider metadata)"""
    return user.model_dump(exclude={"metadata"})


def _cookie_name_for(user: UserIdentity, manager: AuthManager, settings: Settings) -> str:
    if user.provider == ProviderKind.LOCAL_AUTH.value and manager.active_kind != ProviderKind.LOCAL_AUTH:
        return settings.fallback_cookie_name
    return settings.session_cookie_name


def _set_session_cookie(response: Response, name: str, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=name,
        value=token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


@router.get("/login")
async def login_url(
    redirect_uri: Optional[str] = Query(None, description="Callback URL after authentication"),
    manager: AuthManager = Depends(get_auth_manager),
    cache: CacheFacade = Depends(get_cache),
):
    """Where the browser should go to log in

    For OIDC providers the state parameter is stored for 5 minutes and checked
    by the callback.
    """
    state = None
    if manager.config.capabilities.supports_callback:
        state = secrets.token_urlsafe(32)
        await cache.set(f"{LOGIN_STATE_PREFIX}{state}", redirect_uri or "", LOGIN_STATE_TTL)

    try:
        url = await manager.get_authorization_url(redirect_uri or "", state)
    except ProviderCapabilityError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "provider": manager.active_kind.value,
        "authorization_url": url,
        "state": state,
    }


@router.post("/login")
async def login(
    request: LoginRequest,
    response: Response,
    manager: AuthManager = Depends(get_auth_manager),
    settings: Settings = Depends(get_app_settings),
):
    """Credential login with the active provider or the local fallback"""
    correlation_id = str(uuid.uuid4())
    response.headers["X-Correlation-Id"] = correlation_id

    try:
        user, token = await manager.authenticate(request.model_dump())
    except ProviderCapabilityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AuthenticationError as e:
        logger.warning(
            f"Login failed for {request.username}: {e}",
            extra={"username": request.username, "correlation_id": correlation_id},
        )
        raise HTTPException(status_code=401, detail=str(e))

    _set_session_cookie(response, _cookie_name_for(user, manager, settings), token, settings)
    logger.info(
        f"Login successful for user {user.user_id} via {user.provider}",
        extra={"user_id": user.user_id, "correlation_id": correlation_id},
    )
    return {"success": True, "user": user_payload(user)}


@router.get("/callback")
async def callback(
    response: Response,
    code: str = Query(..., description="Authorization code from provider"),
    state: str = Query(..., description="CSRF protection state"),
    manager: AuthManager = Depends(get_auth_manager),
    cache: CacheFacade = Depends(get_cache),
    settings: Settings = Depends(get_app_settings),
):
    """Finish an OIDC login and set the session cookie"""
    state_key = f"{LOGIN_STATE_PREFIX}{state}"
    redirect_uri = await cache.get(state_key)
    if redirect_uri is None:
        logger.error(f"Callback failed: invalid or expired state={state[:8]}...")
        raise HTTPException(status_code=400, detail="Invalid or expired state parameter. Please restart login flow.")
    # One use per state
    await cache.delete(state_key)

    try:
        user, token = await manager.handle_callback(code, redirect_uri)
    except ProviderCapabilityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AuthenticationError as e:
        logger.error(f"Callback failed: {e}")
        raise HTTPException(status_code=401, detail=f"Authentication failed: {e}")

    _set_session_cookie(response, settings.session_cookie_name, token, settings)
    return {"success": True, "user": user_payload(user)}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    manager: AuthManager = Depends(get_auth_manager),
    settings: Settings = Depends(get_app_settings),
):
    """End the session. Always succeeds; both cookies are cleared."""
    for cookie_name in (settings.session_cookie_name, settings.fallback_cookie_name):
        token = request.cookies.get(cookie_name)
        if token:
            await manager.logout(token)
        response.delete_cookie(cookie_name, path="/")
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
async def me(user: UserIdentity = Depends(require_user)):
    return {"success": True, "user": user_payload(user)}


# Local accounts, available next to any provider while the local fallback is on
def _local_accounts(manager: AuthManager) -> LocalAuthProvider:
    provider = manager.local_provider
    if provider is None:
        raise HTTPException(status_code=400, detail="Local accounts are not enabled")
    return provider


@router.post("/basic/login")
async def basic_login(
    request: LoginRequest,
    response: Response,
    manager: AuthManager = Depends(get_auth_manager),
    settings: Settings = Depends(get_app_settings),
):
    """Local account login, whatever the active provider is

    Sets the fallback cookie when an external provider is active, so local
    admins can still sign in while that provider is unreachable.
    """
    try:
        user, token = await manager.authenticate_local(request.model_dump())
    except ProviderCapabilityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AuthenticationError as e:
        logger.warning(f"Local login failed for {request.username}: {e}")
        raise HTTPException(status_code=401, detail=str(e))

    _set_session_cookie(response, _cookie_name_for(user, manager, settings), token, settings)
    return {"success": True, "user": user_payload(user)}


@router.post("/basic/register", status_code=201)
async def register(
    request: RegisterRequest,
    manager: AuthManager = Depends(get_auth_manager),
    settings: Settings = Depends(get_app_settings),
):
    if not settings.registration_enabled:
        raise HTTPException(status_code=403, detail="User registration is currently disabled")
    local = _local_accounts(manager)

    try:
        user = await local.create_user(
            email=request.email,
            password=request.password,
            username=request.username,
        )
    except AccountExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"User registered: {user.user_id}")
    return {"success": True, "message": "Account created successfully", "user": user_payload(user)}


@router.get("/basic/setup")
async def setup_status(manager: AuthManager = Depends(get_auth_manager)):
    """Whether the first admin account still has to be created"""
    local = _local_accounts(manager)
    return {"success": True, "needs_setup": await local.needs_initial_setup()}


@router.post("/basic/setup")
async def create_initial_admin(
    request: InitialAdminRequest,
    manager: AuthManager = Depends(get_auth_manager),
):
    """Create the first admin. Refused once any admin exists."""
    local = _local_accounts(manager)
    if not await local.needs_initial_setup():
        raise HTTPException(status_code=400, detail="Initial setup has already been completed")

    try:
        admin = await local.create_initial_admin(request.username, request.email, request.password)
    except AccountExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {"success": True, "message": "Initial admin account created successfully", "user": user_payload(admin)}


@router.post("/basic/change-password")
async def change_password(
    request: ChangePasswordRequest,
    user: UserIdentity = Depends(require_user),
    manager: AuthManager = Depends(get_auth_manager),
):
    if user.provider != ProviderKind.LOCAL_AUTH.value:
        raise HTTPException(status_code=400, detail="Password changes are only available for local accounts")
    local = _local_accounts(manager)

    try:
        await local.change_password(int(user.user_id), request.current_password, request.new_password)
    except AuthenticationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "Password changed"}


@router.post("/basic/reset-password")
async def reset_password(
    request: PasswordResetRequest,
    admin: UserIdentity = Depends(require_admin),
    manager: AuthManager = Depends(get_auth_manager),
):
    """Admin sets a new password for a local account"""
    local = _local_accounts(manager)
    try:
        await local.reset_password(request.email, request.new_password)
    except AuthenticationError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info(f"Password of {request.email} reset by admin {admin.user_id}")
    return {"success": True, "message": "Password reset"}
