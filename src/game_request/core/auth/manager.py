"""Authentication provider manager.

Single entry point for route handlers. Holds the active provider, an optional
local fallback provider, and the immutable AuthConfig they were built from.

Request authentication walks:
    unauthenticated -> checking-primary -> authenticated
                                        -> checking-fallback -> authenticated
                                                             -> unauthenticated
"""

import asyncio
import logging
import secrets
from typing import Any, Callable, Dict, Mapping, Optional

from game_request.core.cache.facade import CacheFacade

from .provider import (
    AuthenticationError,
    AuthProvider,
    AuthResult,
    ProviderCapabilityError,
    ProviderKind,
    SyncResult,
    UserIdentity,
    ValidationResult,
)
from .registry import PROVIDER_DEFINITIONS, AuthConfig, parse_provider_kind
from .session import SessionTokenService, token_fingerprint
from .validation import validate_provider_config

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[AuthConfig], AuthProvider]

SESSION_CACHE_PREFIX = "session:"
REVOKED_SESSION_PREFIX = "revoked-session:"


class AuthManager:
    """Delegates authentication to the configured provider."""

    def __init__(
        self,
        config: AuthConfig,
        provider_factory: ProviderFactory,
        session_tokens: SessionTokenService,
        cache: CacheFacade,
        session_cache_ttl: int = 60
    ):
        """Initialize auth manager

        Args:
            config: Startup configuration snapshot
            provider_factory: Builds a provider from a snapshot
            session_tokens: Signs and verifies session JWTs
            cache: Cache for verified sessions and revocations
            session_cache_ttl: Seconds a verified session stays cached
        """
        self._config = config
        self._provider_factory = provider_factory
        self.session_tokens = session_tokens
        self.cache = cache
        self.session_cache_ttl = session_cache_ttl

        self._provider: Optional[AuthProvider] = None
        self._local: Optional[AuthProvider] = None
        self._sync_task: Optional[asyncio.Task] = None

    @property
    def config(self) -> AuthConfig:
        return self._config

    @property
    def active_kind(self) -> ProviderKind:
        return self._config.kind

    @property
    def provider(self) -> AuthProvider:
        if self._provider is None:
            raise RuntimeError("AuthManager not initialized. Call initialize() first.")
        return self._provider

    @property
    def local_provider(self) -> Optional[AuthProvider]:
        """Provider serving local logins: the primary when it is local, else the fallback."""
        if self._config.kind == ProviderKind.LOCAL_AUTH:
            return self._provider
        return self._local

    async def initialize(self) -> None:
        """Build the configured provider and the local fallback.

        Raises:
            ProviderConfigurationError: If the configured provider is invalid
        """
        self._provider = self._provider_factory(self._config)
        await self._ensure_local_fallback()
        logger.info(
            f"Auth manager ready: provider={self._config.kind.value}, "
            f"local_fallback={self.local_provider is not None}"
        )

    async def _ensure_local_fallback(self) -> None:
        wanted = self._config.local_fallback and self._config.kind != ProviderKind.LOCAL_AUTH
        if wanted and self._local is None:
            self._local = self._provider_factory(AuthConfig(kind=ProviderKind.LOCAL_AUTH))
        elif not wanted and self._local is not None:
            await self._local.close()
            self._local = None

    # Request authentication

    async def authenticate_request(
        self,
        session_token: Optional[str],
        fallback_token: Optional[str] = None
    ) -> AuthResult:
        """Authenticate one request from its cookies. Never raises.

        Args:
            session_token: Value of the primary session cookie
            fallback_token: Value of the local fallback session cookie

        Returns:
            AuthResult (authenticated with a user, or an error reason)
        """
        try:
            if session_token:
                user = await self.get_session(session_token)
                if user is not None:
                    return AuthResult.success(user)

            if fallback_token and self.local_provider is not None:
                user = await self.get_session(fallback_token)
                if user is not None and user.provider == ProviderKind.LOCAL_AUTH.value:
                    return AuthResult.success(user)

            if session_token or fallback_token:
                return AuthResult.failure("Invalid or expired session")
            return AuthResult.failure("Not authenticated")
        except Exception as e:
            logger.error(f"Request authentication failed: {e}", exc_info=True)
            return AuthResult.failure("Authentication check failed")

    async def get_session(self, token: str) -> Optional[UserIdentity]:
        """Resolve a session token to a user, or None.

        Verified sessions are cached for session_cache_ttl seconds under a
        digest of the token. Revoked tokens are rejected before the cache.
        """
        if not token:
            return None
        fingerprint = token_fingerprint(token)

        if await self.cache.get(f"{REVOKED_SESSION_PREFIX}{fingerprint}"):
            return None

        cached = await self.cache.get(f"{SESSION_CACHE_PREFIX}{fingerprint}")
        if isinstance(cached, dict):
            return UserIdentity(**cached)

        payload = self.session_tokens.verify(token)
        if payload is None:
            return None

        user = self.session_tokens.user_from_payload(payload)
        provider = self._provider_for(user.provider)
        if provider is None:
            logger.debug(f"Session issued by inactive provider {user.provider} rejected")
            return None

        if not await provider.verify_session(user):
            return None

        await self.cache.set(f"{SESSION_CACHE_PREFIX}{fingerprint}", user.model_dump(), self.session_cache_ttl)
        return user

    def _provider_for(self, provider_name: Optional[str]) -> Optional[AuthProvider]:
        if provider_name == self._config.kind.value:
            return self._provider
        if provider_name == ProviderKind.LOCAL_AUTH.value:
            return self.local_provider
        return None

    # Login flows

    async def get_authorization_url(self, redirect_uri: str, state: Optional[str] = None) -> str:
        """URL that starts a login.

        Raises:
            ProviderCapabilityError: If the provider has no browser login
        """
        capabilities = self._config.capabilities
        if not capabilities.supports_callback and self._config.kind != ProviderKind.LOCAL_AUTH:
            if self.local_provider is None:
                raise ProviderCapabilityError(
                    f"Provider {self._config.kind.value} does not support authorization redirects"
                )
            return await self.local_provider.get_login_url(state or "", redirect_uri)
        return await self.provider.get_login_url(state or secrets.token_urlsafe(16), redirect_uri)

    async def handle_callback(self, code: str, redirect_uri: str) -> tuple[UserIdentity, str]:
        """Finish an authorization-code login.

        Returns:
            Tuple of (UserIdentity, session token)

        Raises:
            ProviderCapabilityError: If the provider has no callback flow
            AuthenticationError: If the code exchange fails
        """
        if not self._config.capabilities.supports_callback:
            raise ProviderCapabilityError(f"Provider {self._config.kind.value} does not support callbacks")
        if not code:
            raise AuthenticationError("Missing authorization code")

        user, upstream_token = await self.provider.exchange_code(code, redirect_uri)
        logger.info(f"Callback login for {user.email} via {self._config.kind.value}")
        return user, self.session_tokens.create(user, upstream_token)

    async def authenticate(self, credentials: Dict[str, Any]) -> tuple[UserIdentity, str]:
        """Credential login with the primary provider, or the local fallback.

        Returns:
            Tuple of (UserIdentity, session token)

        Raises:
            ProviderCapabilityError: If no provider accepts credentials
            AuthenticationError: If the credentials are rejected
        """
        if self._config.capabilities.supports_credentials:
            provider = self.provider
        elif self.local_provider is not None:
            provider = self.local_provider
        else:
            raise ProviderCapabilityError(f"Provider {self._config.kind.value} does not support credential login")

        user, upstream_token = await provider.authenticate(credentials)
        logger.info(f"Credential login for {user.email} via {provider.kind.value}")
        return user, self.session_tokens.create(user, upstream_token)

    async def authenticate_local(self, credentials: Dict[str, Any]) -> tuple[UserIdentity, str]:
        """Credential login against local accounts only.

        Works whatever the primary provider is, so local admins can still log in
        when an external provider is down.

        Raises:
            ProviderCapabilityError: If local accounts are disabled
            AuthenticationError: If the credentials are rejected
        """
        provider = self.local_provider
        if provider is None:
            raise ProviderCapabilityError("Local accounts are not enabled")

        user, _ = await provider.authenticate(credentials)
        logger.info(f"Local login for {user.email} (primary provider {self._config.kind.value})")
        return user, self.session_tokens.create(user)

    async def logout(self, token: Optional[str]) -> bool:
        """End a session. Best effort: failures are logged and reported as success."""
        if not token:
            return True
        try:
            payload = self.session_tokens.verify(token)
            fingerprint = token_fingerprint(token)
            await self.cache.delete(f"{SESSION_CACHE_PREFIX}{fingerprint}")
            if payload is None:
                return True

            ttl = self.session_tokens.remaining_seconds(payload)
            if ttl > 0:
                await self.cache.set(f"{REVOKED_SESSION_PREFIX}{fingerprint}", True, ttl)

            user = self.session_tokens.user_from_payload(payload)
            provider = self._provider_for(user.provider)
            if provider is not None:
                await provider.logout(user, payload.get("external_token"))
            logger.info(f"User logged out: {user.user_id} ({user.provider})")
        except Exception as e:
            logger.warning(f"Logout error ignored: {e}")
        return True

    # Sync and webhooks

    def _require_sync(self) -> None:
        if not self._config.capabilities.supports_sync:
            raise ProviderCapabilityError(f"Provider {self._config.kind.value} does not support user sync")

    async def sync_user(self, external_id: str) -> Optional[UserIdentity]:
        """Pull one user. Push-only providers (webhooks) return None.

        Raises:
            ProviderCapabilityError: If the provider cannot sync users
        """
        self._require_sync()
        if self._config.kind == ProviderKind.WEBHOOK_INTEGRATION:
            return None
        return await self.provider.sync_user(external_id)

    async def sync_all_users(self) -> Optional[SyncResult]:
        """Pull every user. Push-only providers (webhooks) return None.

        Raises:
            ProviderCapabilityError: If the provider cannot sync users
        """
        self._require_sync()
        if self._config.kind != ProviderKind.API_INTEGRATION:
            return None
        result = await self.provider.sync_all_users()
        # Cached sessions may carry stale roles
        await self.cache.invalidate_pattern(f"{SESSION_CACHE_PREFIX}*")
        return result

    async def handle_webhook(
        self,
        payload: Dict[str, Any],
        signature: Optional[str] = None,
        raw_body: Optional[bytes] = None
    ) -> Dict[str, Any]:
        """
        Raises:
            ProviderCapabilityError: If the active provider is not the webhook integration
            WebhookSignatureError: If the signature check fails
        """
        if self._config.kind != ProviderKind.WEBHOOK_INTEGRATION:
            raise ProviderCapabilityError("Webhooks are only accepted by the webhook integration provider")
        result = await self.provider.handle_webhook(payload, signature, raw_body)
        if result.get("success"):
            await self.cache.invalidate_pattern(f"{SESSION_CACHE_PREFIX}*")
        return result

    def verify_webhook_subscription(
        self,
        mode: Optional[str],
        token: Optional[str],
        challenge: Optional[str]
    ) -> Optional[str]:
        if self._config.kind != ProviderKind.WEBHOOK_INTEGRATION:
            return None
        return self.provider.verify_subscription(mode, token, challenge)

    # Periodic sync

    @property
    def sync_running(self) -> bool:
        return self._sync_task is not None and not self._sync_task.done()

    def start_user_sync(self, interval_seconds: int) -> bool:
        """Start periodic bulk sync. Returns False when the provider cannot pull users."""
        if self._config.kind != ProviderKind.API_INTEGRATION:
            logger.info(f"Periodic user sync not available for {self._config.kind.value}")
            return False
        if self.sync_running:
            return True
        self._sync_task = asyncio.create_task(self._sync_loop(interval_seconds))
        logger.info(f"Periodic user sync started (every {interval_seconds}s)")
        return True

    async def _sync_loop(self, interval_seconds: int) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                result = await self.sync_all_users()
                if result is not None:
                    logger.info(f"Periodic user sync: {result.synced}/{result.total} synced, {result.errors} errors")
            except Exception as e:
                logger.error(f"Periodic user sync failed: {e}")

    async def stop_user_sync(self) -> None:
        task, self._sync_task = self._sync_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Periodic user sync stopped")

    # Configuration

    def validate_configuration(self) -> ValidationResult:
        return validate_provider_config(
            self._config.kind.value,
            self._config.provider_config,
            production=self._config.production,
        )

    async def switch_provider(self, name: str, provider_config: Optional[Mapping[str, Any]] = None) -> ValidationResult:
        """Replace the active provider.

        Invalid names or configurations leave the current provider in place.

        Returns:
            ValidationResult; valid=True when the switch happened
        """
        provider_config = dict(provider_config or {})
        result = validate_provider_config(name, provider_config, production=self._config.production)
        if not result.valid:
            logger.warning(f"Provider switch to {name} rejected: {result.message}")
            return result

        new_config = AuthConfig(
            kind=parse_provider_kind(name),
            provider_config=provider_config,
            local_fallback=self._config.local_fallback,
            production=self._config.production,
        )
        try:
            new_provider = self._provider_factory(new_config)
        except Exception as e:
            message = f"Failed to initialize provider {name}: {e}"
            logger.error(message)
            return ValidationResult(valid=False, message=message, issues=[message], capabilities=result.capabilities)

        await self.stop_user_sync()
        old_provider = self._provider
        self._provider = new_provider
        self._config = new_config
        await self._ensure_local_fallback()
        await self.cache.invalidate_pattern(f"{SESSION_CACHE_PREFIX}*")

        if old_provider is not None and old_provider is not self._local:
            await old_provider.close()

        logger.info(f"Switched authentication provider to {new_config.kind.value}")
        result.message = f"Switched to {new_config.definition.name}"
        return result

    def provider_info(self) -> dict:
        definition = self._config.definition
        return {
            "provider": self._config.kind.value,
            "name": definition.name,
            "description": definition.description,
            "capabilities": definition.capabilities.to_dict(),
            "config": self._config.redacted(),
            "local_fallback": self.local_provider is not None,
            "auto_sync": self.sync_running,
        }

    def available_providers(self) -> list[dict]:
        return [
            {**definition.to_dict(), "active": kind == self._config.kind}
            for kind, definition in PROVIDER_DEFINITIONS.items()
        ]

    async def close(self) -> None:
        await self.stop_user_sync()
        for provider in (self._provider, self._local):
            if provider is not None:
                await provider.close()
