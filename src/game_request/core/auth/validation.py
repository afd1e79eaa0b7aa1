"""Provider configuration validation.

Each validator returns a ValidationResult listing every problem found rather
than stopping at the first one.
"""

from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlparse

from .provider import ProviderKind, ValidationResult
from .registry import PROVIDER_DEFINITIONS, parse_provider_kind

MIN_WEBHOOK_SECRET_LENGTH = 16
MIN_API_TIMEOUT_SECONDS = 1
MAX_API_TIMEOUT_SECONDS = 120


def is_valid_url(url: Any, require_https: bool = False, allow_localhost: bool = True) -> bool:
    """Check that url is an absolute http(s) URL."""
    if not isinstance(url, str) or not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    if require_https and parsed.scheme != "https":
        return False
    if not allow_localhost and parsed.hostname in ("localhost", "127.0.0.1"):
        return False
    return True


def _missing_fields(config: Mapping[str, Any], required: tuple[str, ...], context: str) -> list[str]:
    return [f"Missing {context} configuration: {name}" for name in required if not config.get(name)]


def _result(issues: list[str], context: str) -> ValidationResult:
    if issues:
        return ValidationResult(valid=False, message=issues[0], issues=issues)
    return ValidationResult(valid=True, message=f"{context} configuration valid")


def validate_oidc_config(config: Mapping[str, Any], production: bool = False) -> ValidationResult:
    issues = _missing_fields(config, ("client_id", "client_secret", "issuer"), "OIDC")
    issuer = config.get("issuer")
    if issuer and not is_valid_url(issuer, require_https=production):
        issues.append("OIDC issuer must be a valid HTTPS URL" if production else "OIDC issuer must be a valid URL")
    redirect_uri = config.get("redirect_uri")
    if redirect_uri and not is_valid_url(redirect_uri):
        issues.append("OIDC redirect URI must be a valid URL")
    return _result(issues, "OIDC")


def validate_api_config(config: Mapping[str, Any], production: bool = False) -> ValidationResult:
    issues = _missing_fields(config, ("base_url", "api_key"), "API")
    base_url = config.get("base_url")
    if base_url and not is_valid_url(base_url, require_https=production):
        issues.append("API base URL must be a valid URL")
    timeout = config.get("timeout_seconds")
    if timeout is not None:
        try:
            timeout = float(timeout)
        except (TypeError, ValueError):
            issues.append("API timeout must be a number of seconds")
        else:
            if not MIN_API_TIMEOUT_SECONDS <= timeout <= MAX_API_TIMEOUT_SECONDS:
                issues.append(
                    f"API timeout must be between {MIN_API_TIMEOUT_SECONDS}s and {MAX_API_TIMEOUT_SECONDS}s"
                )
    return _result(issues, "API")


def validate_webhook_config(config: Mapping[str, Any], production: bool = False) -> ValidationResult:
    issues = []
    secret = config.get("secret")
    if config.get("validate_signature", True) and not secret:
        issues.append("Webhook secret required when signature validation is enabled")
    if secret and len(secret) < MIN_WEBHOOK_SECRET_LENGTH:
        issues.append(f"Webhook secret must be at least {MIN_WEBHOOK_SECRET_LENGTH} characters long")
    return _result(issues, "Webhook")


def validate_local_config(config: Mapping[str, Any], production: bool = False) -> ValidationResult:
    return _result([], "Local authentication")


_VALIDATORS: dict[ProviderKind, Callable[..., ValidationResult]] = {
    ProviderKind.AUTHENTIK: validate_oidc_config,
    ProviderKind.OIDC_GENERIC: validate_oidc_config,
    ProviderKind.API_INTEGRATION: validate_api_config,
    ProviderKind.WEBHOOK_INTEGRATION: validate_webhook_config,
    ProviderKind.LOCAL_AUTH: validate_local_config,
}


def validate_provider_config(
    name: Optional[str],
    config: Optional[Mapping[str, Any]],
    production: bool = False,
) -> ValidationResult:
    """Validate configuration for a provider given by name.

    Unknown provider names are reported as a failed validation, not raised.
    """
    kind = parse_provider_kind(name)
    if kind is None:
        valid = ", ".join(k.value for k in ProviderKind)
        message = f"Unknown provider: {name}. Valid options: {valid}"
        return ValidationResult(valid=False, message=message, issues=[message])

    result = _VALIDATORS[kind](config or {}, production=production)
    result.capabilities = PROVIDER_DEFINITIONS[kind].capabilities
    return result
