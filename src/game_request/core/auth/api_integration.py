"""API integration provider.

Delegates credential checks to an external REST API and pulls user records
from it into the local user table.

Expected external API:
    POST /api/auth/login           -> {"user": {...}, "access_token": "..."}
    GET  {user_endpoint}/{id}      -> {...user...}
    GET  {sync_endpoint}           -> {"users": [...]}
    GET  {verify_endpoint}         optional session liveness check
    POST {logout_endpoint}         optional logout notification
"""

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from game_request.domain.services.user_sync import UserSyncService, user_to_identity
from game_request.infrastructure.http.client import ApiClient, ApiRequestError

from .provider import (
    AuthenticationError,
    AuthProvider,
    ProviderKind,
    SyncResult,
    UserIdentity,
    UserSyncError,
)

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "/api/auth/login"
BULK_TIMEOUT_FACTOR = 5


class ApiIntegrationProvider(AuthProvider):
    """Authenticate and sync users through an external REST API."""

    kind = ProviderKind.API_INTEGRATION

    def __init__(
        self,
        config: Mapping[str, Any],
        user_sync: UserSyncService,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize API integration provider.

        Args:
            config: base_url, api_key and optional endpoints / timeout_seconds
            user_sync: Stores pulled users locally
            transport: Custom httpx transport (tests)
        """
        self.user_endpoint = config.get("user_endpoint") or "/api/users"
        self.sync_endpoint = config.get("sync_endpoint") or "/api/users/sync"
        self.verify_endpoint = config.get("verify_endpoint")
        self.logout_endpoint = config.get("logout_endpoint")
        self.timeout = float(config.get("timeout_seconds") or 5.0)
        self.user_sync = user_sync
        self.client = ApiClient(
            config["base_url"],
            api_key=config.get("api_key"),
            timeout=self.timeout,
            transport=transport,
        )

    async def authenticate(self, credentials: Dict[str, Any]) -> tuple[UserIdentity, Optional[str]]:
        """Check credentials with the external API and store the returned user.

        Returns:
            Tuple of (UserIdentity, external access token)

        Raises:
            AuthenticationError: If the API rejects the credentials or is unreachable
        """
        try:
            response = await self.client.post(LOGIN_ENDPOINT, json=dict(credentials))
        except ApiRequestError as e:
            logger.error(f"API authentication request failed: {e}")
            raise AuthenticationError("Authentication service unavailable")

        if not response.success:
            raise AuthenticationError(response.error_message("Authentication failed"))

        body = response.data if isinstance(response.data, dict) else {}
        external_user = body.get("user")
        if not external_user:
            raise AuthenticationError("Authentication response did not include a user")

        try:
            user, _ = await self.user_sync.sync_user(external_user, self.kind.value)
        except UserSyncError as e:
            raise AuthenticationError(f"Invalid user data from API: {e}")

        if not user.is_active:
            raise AuthenticationError("User account is inactive")
        return user_to_identity(user, self.kind.value), body.get("access_token")

    async def verify_session(self, user: UserIdentity) -> bool:
        """Local user row must be active; then ask the external API, when configured."""
        if not await self.user_sync.is_active(user.user_id):
            return False
        if not self.verify_endpoint:
            return True
        external_token = user.metadata.get("external_token")
        headers = {"Authorization": f"Bearer {external_token}"} if external_token else None
        try:
            response = await self.client.get(self.verify_endpoint, headers=headers)
        except ApiRequestError as e:
            logger.warning(f"API session verification failed: {e}")
            return False
        return response.success

    async def sync_user(self, external_id: str) -> Optional[UserIdentity]:
        """Pull one user by external id.

        Raises:
            UserSyncError: If the API call fails or the record is invalid
        """
        endpoint = f"{self.user_endpoint.rstrip('/')}/{external_id}"
        try:
            response = await self.client.get(endpoint)
        except ApiRequestError as e:
            raise UserSyncError(f"Failed to fetch user {external_id}: {e}")

        if not response.success:
            raise UserSyncError(f"Failed to fetch user {external_id}: {response.status_code}")

        user, _ = await self.user_sync.sync_user(response.data, self.kind.value)
        return user_to_identity(user, self.kind.value)

    async def sync_all_users(self) -> SyncResult:
        """Pull every user from the sync endpoint.

        Raises:
            UserSyncError: If the user list cannot be fetched; per-user failures
                are counted in the result instead
        """
        try:
            response = await self.client.get(self.sync_endpoint, timeout=self.timeout * BULK_TIMEOUT_FACTOR)
        except ApiRequestError as e:
            raise UserSyncError(f"Failed to sync users: {e}")

        if not response.success:
            raise UserSyncError(f"Failed to sync users: {response.status_code}")

        users = response.data.get("users") if isinstance(response.data, dict) else None
        if not isinstance(users, list):
            raise UserSyncError("Sync response did not include a users list")

        return await self.user_sync.batch_sync_users(users, self.kind.value)

    async def logout(self, user: Optional[UserIdentity], upstream_token: Optional[str] = None) -> None:
        if not self.logout_endpoint or not upstream_token:
            return
        await self.client.post(self.logout_endpoint, headers={"Authorization": f"Bearer {upstream_token}"})

    async def close(self) -> None:
        await self.client.close()
