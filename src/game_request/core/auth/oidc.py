"""OpenID Connect (OIDC) authentication providers.

Two flavors share one authorization-code flow:
- OIDCAuthProvider: any standard issuer (Keycloak, Auth0, Okta, ...), endpoints
  from the discovery document
- AuthentikAuthProvider: Authentik, endpoints derived from the issuer host

After the code exchange the userinfo claims are upserted into the local user
table, so the session carries a local user id next to the external subject.
"""

import logging
from typing import Any, Mapping, Optional
from urllib.parse import urlencode, urlparse

import httpx

from game_request.domain.services.user_sync import UserSyncService, user_to_identity

from .provider import AuthenticationError, AuthProvider, ProviderKind, UserIdentity

logger = logging.getLogger(__name__)


class OIDCAuthProvider(AuthProvider):
    """OpenID Connect authentication provider.

    Example Configuration:
        AUTH_PROVIDER=oidc_generic
        OIDC_ISSUER=https://keycloak.example.com/realms/games
        OIDC_CLIENT_ID=gamerequest
        OIDC_CLIENT_SECRET=xxx
        OIDC_SCOPE="openid profile email"
    """

    kind = ProviderKind.OIDC_GENERIC

    def __init__(
        self,
        config: Mapping[str, Any],
        user_sync: UserSyncService,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize OIDC provider.

        Args:
            config: client_id, client_secret, issuer, optional redirect_uri and scope
            user_sync: Upserts the authenticated user locally
            transport: Custom httpx transport (tests)
        """
        self.issuer = config["issuer"].rstrip("/")
        self.client_id = config["client_id"]
        self.client_secret = config["client_secret"]
        self.default_redirect_uri = config.get("redirect_uri")
        self.scope = config.get("scope") or "openid profile email"
        self.user_sync = user_sync
        self._transport = transport

        # Discovery document (lazy-loaded)
        self._discovery: Optional[dict] = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=10.0, transport=self._transport)

    async def _get_endpoints(self) -> dict:
        """Fetch OIDC discovery document (.well-known/openid-configuration)."""
        if self._discovery is None:
            discovery_url = f"{self.issuer}/.well-known/openid-configuration"
            async with self._client() as client:
                response = await client.get(discovery_url)
                response.raise_for_status()
                self._discovery = response.json()
                logger.info(f"OIDC discovery loaded from {discovery_url}")
        return self._discovery

    async def get_login_url(self, state: str, redirect_uri: str) -> str:
        """Generate OIDC authorization URL.

        Args:
            state: CSRF protection state
            redirect_uri: Callback URL

        Returns:
            Authorization URL to redirect user to
        """
        endpoints = await self._get_endpoints()
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "scope": self.scope,
            "redirect_uri": redirect_uri or self.default_redirect_uri,
            "state": state,
        }
        return f"{endpoints['authorization_endpoint']}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> tuple[UserIdentity, Optional[str]]:
        """Exchange authorization code for user identity.

        Args:
            code: Authorization code from OIDC callback
            redirect_uri: Same redirect_uri used in get_login_url

        Returns:
            Tuple of (UserIdentity, upstream access token)

        Raises:
            AuthenticationError: If code exchange or userinfo lookup fails
        """
        endpoints = await self._get_endpoints()
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri or self.default_redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }

        async with self._client() as client:
            response = await client.post(
                endpoints["token_endpoint"],
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"}
            )
            if response.status_code != 200:
                logger.error(f"OIDC token exchange failed: {response.text}")
                raise AuthenticationError(f"Token exchange failed: {response.status_code}")
            tokens = response.json()

            access_token = tokens.get("access_token")
            if not access_token:
                raise AuthenticationError("Token response did not include an access token")

            response = await client.get(
                endpoints["userinfo_endpoint"],
                headers={"Authorization": f"Bearer {access_token}"}
            )
            if response.status_code != 200:
                logger.error(f"OIDC userinfo request failed: {response.status_code}")
                raise AuthenticationError(f"Failed to get user info: {response.status_code}")
            claims = response.json()

        return await self._identity_from_claims(claims), access_token

    async def _identity_from_claims(self, claims: dict) -> UserIdentity:
        record = dict(claims)
        # Most issuers expose roles as group membership
        if not record.get("roles") and record.get("groups"):
            record["roles"] = record["groups"]
        try:
            user, created = await self.user_sync.sync_user(record, self.kind.value)
        except Exception as e:
            logger.error(f"Could not store OIDC user {claims.get('sub')}: {e}")
            raise AuthenticationError(f"Could not store user: {e}")

        if not user.is_active:
            raise AuthenticationError("User account is inactive")
        if created:
            logger.info(f"Created local user for OIDC subject {claims.get('sub')}")
        return user_to_identity(user, self.kind.value)


class AuthentikAuthProvider(OIDCAuthProvider):
    """Authentik provider.

    AUTHENTIK_ISSUER usually points at an application slug, e.g.
    https://auth.example.com/application/o/gamerequest/. Authorization, token
    and userinfo endpoints live at fixed paths on the same host.
    """

    kind = ProviderKind.AUTHENTIK

    async def _get_endpoints(self) -> dict:
        if self._discovery is None:
            parsed = urlparse(self.issuer)
            base = f"{parsed.scheme}://{parsed.netloc}"
            self._discovery = {
                "authorization_endpoint": f"{base}/application/o/authorize/",
                "token_endpoint": f"{base}/application/o/token/",
                "userinfo_endpoint": f"{base}/application/o/userinfo/",
            }
        return self._discovery
