"""Abstract authentication provider interface.

This module defines the contract that all authentication providers must implement,
the normalized user shape they return, and the result types the manager hands to
route handlers. Providers are selected at runtime by AUTH_PROVIDER.
"""

from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ProviderKind(str, Enum):
    """Closed set of supported identity backends."""

    AUTHENTIK = "authentik"
    OIDC_GENERIC = "oidc_generic"
    API_INTEGRATION = "api_integration"
    WEBHOOK_INTEGRATION = "webhook_integration"
    LOCAL_AUTH = "local_auth"


@dataclass(frozen=True)
class ProviderCapabilities:
    """What a provider kind can do."""

    supports_callback: bool = False
    supports_credentials: bool = False
    supports_sync: bool = False
    requires_redirect: bool = False

    def to_dict(self) -> dict:
        return {
            "supports_callback": self.supports_callback,
            "supports_credentials": self.supports_credentials,
            "supports_sync": self.supports_sync,
            "requires_redirect": self.requires_redirect,
        }


class UserIdentity(BaseModel):
    """User identity returned from authentication providers.

    Attributes:
        user_id: Unique user identifier (local database id when known)
        email: User email address
        username: Username for display
        display_name: Full name for UI
        roles: List of user roles (e.g., ['admin', 'user'])
        is_admin: Whether the user may use admin endpoints
        provider: Provider kind that authenticated the user
        external_id: Subject in the external identity system, if any
        metadata: Provider-specific metadata (optional)
    """
    user_id: str
    email: str
    username: str
    display_name: str
    roles: list[str] = Field(default_factory=list)
    is_admin: bool = False
    provider: str
    external_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


@dataclass
class AuthResult:
    """Outcome of authenticating one request.

    Either authenticated with a user, or unauthenticated with an error reason.
    """

    user: Optional[UserIdentity] = None
    error: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    @classmethod
    def success(cls, user: UserIdentity) -> "AuthResult":
        return cls(user=user)

    @classmethod
    def failure(cls, error: str) -> "AuthResult":
        return cls(error=error)


@dataclass
class ValidationResult:
    """Outcome of validating a provider configuration."""

    valid: bool
    message: str = ""
    issues: list[str] = field(default_factory=list)
    capabilities: Optional[ProviderCapabilities] = None

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "message": self.message,
            "issues": list(self.issues),
            "capabilities": self.capabilities.to_dict() if self.capabilities else None,
        }


@dataclass
class SyncResult:
    """Counts from a bulk user sync. Failures never abort the run."""

    total: int = 0
    synced: int = 0
    errors: int = 0
    error_details: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "synced": self.synced,
            "errors": self.errors,
            "error_details": list(self.error_details),
        }


class AuthenticationError(Exception):
    """Authentication failed."""
    pass


class AccountExistsError(Exception):
    """A local account with this username or email already exists."""
    pass


class ProviderCapabilityError(Exception):
    """The active provider does not support the requested operation."""
    pass


class ProviderConfigurationError(Exception):
    """Provider configuration is missing or invalid."""

    def __init__(self, message: str, issues: Optional[list[str]] = None):
        super().__init__(message)
        self.issues = issues or []


class WebhookSignatureError(AuthenticationError):
    """Webhook payload signature is missing or does not match."""
    pass


class UserSyncError(Exception):
    """An external user record could not be synchronized."""
    pass


class AuthProvider(ABC):
    """Base class for authentication providers.

    Implementation is chosen at startup via the AUTH_PROVIDER environment variable
    and can be replaced at runtime through the integrations admin endpoint.
    A provider implements only the operations its capabilities allow; the rest
    raise ProviderCapabilityError.

    Example:
        # Self-Hosted
        AUTH_PROVIDER=local_auth  # Username/password stored locally

        # Single sign-on
        AUTH_PROVIDER=oidc_generic
        OIDC_ISSUER=https://accounts.example.com
        OIDC_CLIENT_ID=xxx
        OIDC_CLIENT_SECRET=xxx
    """

    kind: ProviderKind

    def _unsupported(self, operation: str) -> ProviderCapabilityError:
        return ProviderCapabilityError(f"Provider {self.kind.value} does not support {operation}")

    async def get_login_url(self, state: str, redirect_uri: str) -> str:
        """Generate the login URL for the authentication flow.

        Args:
            state: CSRF protection state parameter
            redirect_uri: URL to redirect back to after authentication

        Returns:
            URL to initiate authentication flow
        """
        raise self._unsupported("authorization redirects")

    async def exchange_code(self, code: str, redirect_uri: str) -> tuple[UserIdentity, Optional[str]]:
        """Exchange an authorization code for user identity.

        Args:
            code: Authorization code from provider callback
            redirect_uri: Same redirect_uri used in get_login_url

        Returns:
            Tuple of (UserIdentity, upstream access token)

        Raises:
            AuthenticationError: If code exchange fails
        """
        raise self._unsupported("authorization callbacks")

    async def authenticate(self, credentials: Dict[str, Any]) -> tuple[UserIdentity, Optional[str]]:
        """Authenticate with credentials.

        Args:
            credentials: Provider specific fields (username, password, ...)

        Returns:
            Tuple of (UserIdentity, upstream token if the provider issued one)

        Raises:
            AuthenticationError: If credentials are invalid
        """
        raise self._unsupported("credential login")

    async def sync_user(self, external_id: str) -> Optional[UserIdentity]:
        """Pull one user from the external system into the local store."""
        raise self._unsupported("user sync")

    async def sync_all_users(self) -> SyncResult:
        """Pull every user from the external system into the local store."""
        raise self._unsupported("user sync")

    async def handle_webhook(
        self,
        payload: Dict[str, Any],
        signature: Optional[str] = None,
        raw_body: Optional[bytes] = None,
    ) -> Dict[str, Any]:
        """Process a pushed user event."""
        raise self._unsupported("webhooks")

    async def verify_session(self, user: UserIdentity) -> bool:
        """Confirm with the external system that a session is still live.

        Called after the session token itself verified. Default: always live.
        """
        return True

    async def logout(self, user: Optional[UserIdentity], upstream_token: Optional[str] = None) -> None:
        """Tell the external system the session ended. Best effort."""
        return None

    async def close(self) -> None:
        """Release network resources held by the provider."""
        return None
