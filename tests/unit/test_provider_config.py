"""Unit tests for provider registry and configuration validation

Pure functions; no database or network.
"""

import pytest

from game_request.config.settings import Settings
from game_request.core.auth.provider import ProviderConfigurationError, ProviderKind
from game_request.core.auth.registry import (
    PROVIDER_DEFINITIONS,
    AuthConfig,
    parse_provider_kind,
    provider_config_from_settings,
)
from game_request.core.auth.validation import (
    is_valid_url,
    validate_api_config,
    validate_oidc_config,
    validate_provider_config,
    validate_webhook_config,
)

OIDC_CONFIG = {
    "client_id": "gamerequest",
    "client_secret": "s3cret",
    "issuer": "https://auth.example.com/realms/games",
}


@pytest.mark.unit
class TestUrlValidation:
    """Test URL checks"""

    def test_valid_urls(self):
        """Happy path: absolute http(s) URLs pass"""
        assert is_valid_url("https://auth.example.com") is True
        assert is_valid_url("http://localhost:9000/path") is True

    def test_invalid_urls(self):
        """Bad input: relative, schemeless or non-http URLs fail"""
        assert is_valid_url("auth.example.com") is False
        assert is_valid_url("ftp://files.example.com") is False
        assert is_valid_url("") is False
        assert is_valid_url(None) is False

    def test_https_required(self):
        """Edge case: plain http rejected when HTTPS is required"""
        assert is_valid_url("http://auth.example.com", require_https=True) is False
        assert is_valid_url("https://auth.example.com", require_https=True) is True

    def test_localhost_rejected_when_disallowed(self):
        assert is_valid_url("http://localhost:8000", allow_localhost=False) is False


@pytest.mark.unit
class TestOIDCValidation:
    """Test OIDC configuration validation"""

    def test_complete_config_valid(self):
        """Happy path: all required fields present"""
        result = validate_oidc_config(OIDC_CONFIG)

        assert result.valid is True
        assert result.issues == []

    def test_reports_every_missing_field(self):
        """Bad input: all problems are listed, not just the first"""
        result = validate_oidc_config({})

        assert result.valid is False
        assert len(result.issues) == 3
        assert any("client_id" in issue for issue in result.issues)
        assert any("client_secret" in issue for issue in result.issues)
        assert any("issuer" in issue for issue in result.issues)
        assert result.message == result.issues[0]

    def test_production_requires_https_issuer(self):
        """Edge case: http issuer valid in development, rejected in production"""
        config = {**OIDC_CONFIG, "issuer": "http://auth.example.com"}

        assert validate_oidc_config(config).valid is True
        assert validate_oidc_config(config, production=True).valid is False


@pytest.mark.unit
class TestApiValidation:
    """Test API integration configuration validation"""

    def test_valid(self):
        result = validate_api_config({"base_url": "https://users.example.com", "api_key": "k"})

        assert result.valid is True

    def test_timeout_bounds(self):
        """Edge case: timeout must be between 1 and 120 seconds"""
        base = {"base_url": "https://users.example.com", "api_key": "k"}

        assert validate_api_config({**base, "timeout_seconds": 1}).valid is True
        assert validate_api_config({**base, "timeout_seconds": 120}).valid is True
        assert validate_api_config({**base, "timeout_seconds": 0.5}).valid is False
        assert validate_api_config({**base, "timeout_seconds": 121}).valid is False
        assert validate_api_config({**base, "timeout_seconds": "soon"}).valid is False

    def test_invalid_base_url(self):
        """Bad input: base_url must be a URL"""
        result = validate_api_config({"base_url": "users", "api_key": "k"})

        assert result.valid is False
        assert "base URL" in result.message


@pytest.mark.unit
class TestWebhookValidation:
    """Test webhook configuration validation"""

    def test_secret_required_with_signature_validation(self):
        """Bad input: signature validation (default) needs a secret"""
        result = validate_webhook_config({})

        assert result.valid is False
        assert "secret required" in result.message

    def test_short_secret_rejected(self):
        """Bad input: secret shorter than 16 characters"""
        result = validate_webhook_config({"secret": "short"})

        assert result.valid is False
        assert "at least 16" in result.message

    def test_no_secret_needed_without_signature_validation(self):
        """Edge case: validation disabled and no secret is accepted"""
        result = validate_webhook_config({"validate_signature": False})

        assert result.valid is True

    def test_valid_secret(self):
        assert validate_webhook_config({"secret": "x" * 16}).valid is True


@pytest.mark.unit
class TestValidateProviderConfig:
    """Test validation dispatch by provider name"""

    def test_unknown_provider_is_invalid_result(self):
        """Bad input: unknown name returns a failed result instead of raising"""
        result = validate_provider_config("ldap", {})

        assert result.valid is False
        assert result.message.startswith("Unknown provider: ldap")
        assert result.capabilities is None

    def test_capabilities_attached(self):
        """Happy path: result carries the provider's capabilities"""
        result = validate_provider_config("oidc_generic", OIDC_CONFIG)

        assert result.valid is True
        assert result.capabilities.supports_callback is True
        assert result.capabilities.supports_credentials is False

    def test_local_auth_needs_no_config(self):
        result = validate_provider_config("local_auth", None)

        assert result.valid is True
        assert result.capabilities.supports_credentials is True

    def test_to_dict(self):
        data = validate_provider_config("webhook_integration", {}).to_dict()

        assert data["valid"] is False
        assert data["capabilities"]["supports_sync"] is True
        assert isinstance(data["issues"], list)


@pytest.mark.unit
class TestRegistry:
    """Test provider registry and AuthConfig"""

    def test_every_kind_has_definition(self):
        assert set(PROVIDER_DEFINITIONS) == set(ProviderKind)

    def test_capability_table(self):
        """Happy path: capabilities per provider kind"""
        api = PROVIDER_DEFINITIONS[ProviderKind.API_INTEGRATION].capabilities
        webhook = PROVIDER_DEFINITIONS[ProviderKind.WEBHOOK_INTEGRATION].capabilities
        authentik = PROVIDER_DEFINITIONS[ProviderKind.AUTHENTIK].capabilities

        assert api.supports_credentials and api.supports_sync and not api.supports_callback
        assert webhook.supports_sync and not webhook.supports_credentials
        assert authentik.supports_callback and authentik.requires_redirect

    def test_parse_provider_kind(self):
        assert parse_provider_kind(" OIDC_Generic ") == ProviderKind.OIDC_GENERIC
        assert parse_provider_kind("ldap") is None
        assert parse_provider_kind(None) is None

    def test_from_settings(self):
        """Happy path: snapshot built from environment settings"""
        settings = Settings(
            _env_file=None,
            auth_provider="oidc_generic",
            oidc_client_id="gamerequest",
            oidc_client_secret="s3cret",
            oidc_issuer="https://auth.example.com",
        )

        config = AuthConfig.from_settings(settings)

        assert config.kind == ProviderKind.OIDC_GENERIC
        assert config.provider_config["client_id"] == "gamerequest"
        assert "redirect_uri" not in config.provider_config

    def test_from_settings_unknown_provider(self):
        """Bad input: unknown AUTH_PROVIDER raises"""
        settings = Settings(_env_file=None, auth_provider="ldap")

        with pytest.raises(ProviderConfigurationError, match="Unknown AUTH_PROVIDER"):
            AuthConfig.from_settings(settings)

    def test_config_is_immutable(self):
        """Edge case: snapshot cannot be changed in place"""
        config = AuthConfig(kind=ProviderKind.LOCAL_AUTH, provider_config={"a": 1})

        with pytest.raises(TypeError):
            config.provider_config["a"] = 2
        with pytest.raises(AttributeError):
            config.kind = ProviderKind.OIDC_GENERIC

    def test_redacted_masks_secrets(self):
        config = AuthConfig(
            kind=ProviderKind.API_INTEGRATION,
            provider_config={"base_url": "https://users.example.com", "api_key": "abc"},
        )

        redacted = config.redacted()

        assert redacted["api_key"] == "***"
        assert redacted["base_url"] == "https://users.example.com"

    def test_webhook_settings_keep_disabled_validation(self):
        """Edge case: False values survive the None filter"""
        settings = Settings(_env_file=None, webhook_validate_signature=False)

        config = provider_config_from_settings(ProviderKind.WEBHOOK_INTEGRATION, settings)

        assert config == {"validate_signature": False}
