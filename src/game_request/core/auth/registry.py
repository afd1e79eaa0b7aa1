"""Provider registry.

Static metadata for every provider kind (display name, capabilities, required
configuration fields, environment prefix) and the immutable AuthConfig snapshot
the manager works from.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from game_request.config.settings import Settings

from .provider import ProviderCapabilities, ProviderConfigurationError, ProviderKind


@dataclass(frozen=True)
class ProviderDefinition:
    kind: ProviderKind
    name: str
    description: str
    category: str
    capabilities: ProviderCapabilities
    required_fields: tuple[str, ...] = ()
    env_prefix: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.kind.value,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "capabilities": self.capabilities.to_dict(),
            "required_fields": list(self.required_fields),
            "env_prefix": self.env_prefix,
        }


_OIDC_CAPABILITIES = ProviderCapabilities(supports_callback=True, requires_redirect=True)

PROVIDER_DEFINITIONS: dict[ProviderKind, ProviderDefinition] = {
    ProviderKind.AUTHENTIK: ProviderDefinition(
        kind=ProviderKind.AUTHENTIK,
        name="Authentik OIDC",
        description="Direct integration with the Authentik identity provider",
        category="oidc",
        capabilities=_OIDC_CAPABILITIES,
        required_fields=("client_id", "client_secret", "issuer"),
        env_prefix="AUTHENTIK_",
    ),
    ProviderKind.OIDC_GENERIC: ProviderDefinition(
        kind=ProviderKind.OIDC_GENERIC,
        name="Generic OIDC",
        description="Any OIDC-compliant provider (Keycloak, Auth0, ...)",
        category="oidc",
        capabilities=_OIDC_CAPABILITIES,
        required_fields=("client_id", "client_secret", "issuer"),
        env_prefix="OIDC_",
    ),
    ProviderKind.API_INTEGRATION: ProviderDefinition(
        kind=ProviderKind.API_INTEGRATION,
        name="API Integration",
        description="Authenticate and sync users through a REST API",
        category="api",
        capabilities=ProviderCapabilities(supports_credentials=True, supports_sync=True),
        required_fields=("base_url", "api_key"),
        env_prefix="API_",
    ),
    ProviderKind.WEBHOOK_INTEGRATION: ProviderDefinition(
        kind=ProviderKind.WEBHOOK_INTEGRATION,
        name="Webhook Integration",
        description="Receive user updates pushed by an external system",
        category="webhook",
        capabilities=ProviderCapabilities(supports_sync=True),
        required_fields=("secret",),
        env_prefix="WEBHOOK_",
    ),
    ProviderKind.LOCAL_AUTH: ProviderDefinition(
        kind=ProviderKind.LOCAL_AUTH,
        name="Local Authentication",
        description="Username/password accounts stored in the local database",
        category="local",
        capabilities=ProviderCapabilities(supports_credentials=True),
    ),
}


def parse_provider_kind(name: Optional[str]) -> Optional[ProviderKind]:
    """Return the ProviderKind for a name, or None when it is not one."""
    if not name:
        return None
    try:
        return ProviderKind(name.strip().lower())
    except ValueError:
        return None


def provider_config_from_settings(kind: ProviderKind, settings: Settings) -> dict[str, Any]:
    """Collect the configuration fields a provider kind reads from the environment."""
    if kind == ProviderKind.AUTHENTIK:
        config = {
            "client_id": settings.authentik_client_id,
            "client_secret": settings.authentik_client_secret,
            "issuer": settings.authentik_issuer,
            "redirect_uri": settings.authentik_redirect_uri,
            "scope": settings.oidc_scope,
        }
    elif kind == ProviderKind.OIDC_GENERIC:
        config = {
            "client_id": settings.oidc_client_id,
            "client_secret": settings.oidc_client_secret,
            "issuer": settings.oidc_issuer,
            "redirect_uri": settings.oidc_redirect_uri,
            "scope": settings.oidc_scope,
        }
    elif kind == ProviderKind.API_INTEGRATION:
        config = {
            "base_url": settings.api_base_url,
            "api_key": settings.api_key,
            "user_endpoint": settings.api_user_endpoint,
            "sync_endpoint": settings.api_sync_endpoint,
            "verify_endpoint": settings.api_verify_endpoint,
            "logout_endpoint": settings.api_logout_endpoint,
            "timeout_seconds": settings.api_timeout_seconds,
        }
    elif kind == ProviderKind.WEBHOOK_INTEGRATION:
        config = {
            "secret": settings.webhook_secret,
            "validate_signature": settings.webhook_validate_signature,
            "verify_token": settings.webhook_verify_token,
        }
    else:
        config = {}
    return {key: value for key, value in config.items() if value is not None}


@dataclass(frozen=True)
class AuthConfig:
    """Immutable snapshot of the active authentication configuration.

    Replaced as a whole by AuthManager.switch_provider; never mutated in place.
    """

    kind: ProviderKind
    provider_config: Mapping[str, Any] = field(default_factory=dict)
    local_fallback: bool = True
    production: bool = False

    def __post_init__(self):
        object.__setattr__(self, "provider_config", MappingProxyType(dict(self.provider_config)))

    @property
    def definition(self) -> ProviderDefinition:
        return PROVIDER_DEFINITIONS[self.kind]

    @property
    def capabilities(self) -> ProviderCapabilities:
        return self.definition.capabilities

    def redacted(self) -> dict[str, Any]:
        """Configuration with secrets masked, for admin responses and logs."""
        return {
            key: ("***" if any(part in key for part in ("secret", "key", "token")) and value else value)
            for key, value in self.provider_config.items()
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        """
        Build the startup snapshot.

        Raises:
            ProviderConfigurationError: If AUTH_PROVIDER names no known provider
        """
        kind = parse_provider_kind(settings.auth_provider)
        if kind is None:
            valid = ", ".join(k.value for k in ProviderKind)
            raise ProviderConfigurationError(
                f"Unknown AUTH_PROVIDER: {settings.auth_provider}. Valid options: {valid}"
            )
        return cls(
            kind=kind,
            provider_config=provider_config_from_settings(kind, settings),
            local_fallback=settings.auth_local_fallback,
            production=settings.is_production,
        )
