"""Authentication provider factory.

Instantiates the provider for an AuthConfig snapshot. Dispatch is over the
closed ProviderKind enum; configuration is validated before anything is built.
"""

import logging
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker

from game_request.domain.services.user_sync import UserSyncService

from .api_integration import ApiIntegrationProvider
from .local import LocalAuthProvider
from .oidc import AuthentikAuthProvider, OIDCAuthProvider
from .provider import AuthProvider, ProviderConfigurationError, ProviderKind
from .registry import AuthConfig
from .validation import validate_provider_config
from .webhook import WebhookIntegrationProvider

logger = logging.getLogger(__name__)


def create_provider(
    config: AuthConfig,
    session_factory: async_sessionmaker,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> AuthProvider:
    """Build the provider described by config.

    Args:
        config: Immutable auth configuration snapshot
        session_factory: Database session factory for user storage
        transport: Custom httpx transport for outbound calls (tests)

    Returns:
        Configured AuthProvider instance

    Raises:
        ProviderConfigurationError: If the configuration does not validate
    """
    result = validate_provider_config(config.kind.value, config.provider_config, production=config.production)
    if not result.valid:
        raise ProviderConfigurationError(result.message, result.issues)

    logger.info(f"Initializing authentication provider: {config.kind.value}")
    user_sync = UserSyncService(session_factory)
    settings = config.provider_config

    if config.kind == ProviderKind.LOCAL_AUTH:
        provider = LocalAuthProvider(session_factory)
    elif config.kind == ProviderKind.AUTHENTIK:
        provider = AuthentikAuthProvider(settings, user_sync, transport=transport)
    elif config.kind == ProviderKind.OIDC_GENERIC:
        provider = OIDCAuthProvider(settings, user_sync, transport=transport)
    elif config.kind == ProviderKind.API_INTEGRATION:
        provider = ApiIntegrationProvider(settings, user_sync, transport=transport)
    elif config.kind == ProviderKind.WEBHOOK_INTEGRATION:
        provider = WebhookIntegrationProvider(settings, user_sync)
    else:
        raise ProviderConfigurationError(f"Unsupported provider: {config.kind}")

    logger.info(f"Auth provider initialized: {provider.__class__.__name__}")
    return provider
