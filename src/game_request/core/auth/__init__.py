"""Authentication provider abstraction layer.

Supports multiple authentication methods via pluggable providers:
- authentik / oidc_generic: OpenID Connect login redirect
- api_integration: credentials checked by an external REST API, pull sync
- webhook_integration: users pushed by an external system
- local_auth: username/password (self-hosted default, and fallback)

Import AuthManager from .manager and create_provider from .factory; they pull
in the persistence layer and are kept out of this package namespace.
"""

from .provider import (
    AccountExistsError,
    AuthenticationError,
    AuthProvider,
    AuthResult,
    ProviderCapabilities,
    ProviderCapabilityError,
    ProviderConfigurationError,
    ProviderKind,
    SyncResult,
    UserIdentity,
    UserSyncError,
    ValidationResult,
    WebhookSignatureError,
)
from .registry import PROVIDER_DEFINITIONS, AuthConfig

__all__ = [
    "AccountExistsError",
    "AuthConfig",
    "AuthenticationError",
    "AuthProvider",
    "AuthResult",
    "PROVIDER_DEFINITIONS",
    "ProviderCapabilities",
    "ProviderCapabilityError",
    "ProviderConfigurationError",
    "ProviderKind",
    "SyncResult",
    "UserIdentity",
    "UserSyncError",
    "ValidationResult",
    "WebhookSignatureError",
]
