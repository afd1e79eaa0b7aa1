"""Session tokens.

Every provider ends in the same place: a signed HS256 JWT carried in the
session cookie. The payload keeps the external subject in sub and the local
database id in user_id, so both survive a round trip.
"""

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from .provider import UserIdentity

logger = logging.getLogger(__name__)

SESSION_ISSUER = "gamerequest"
SESSION_ALGORITHM = "HS256"


def token_fingerprint(token: str) -> str:
    """Short stable digest used as a cache key for a token."""
    return hashlib.sha256(token.encode()).hexdigest()[:16]


class SessionTokenService:
    """Creates and verifies session JWTs."""

    def __init__(
        self,
        secret_key: str,
        ttl_seconds: int = 24 * 60 * 60,
        issuer: str = SESSION_ISSUER,
        algorithm: str = SESSION_ALGORITHM
    ):
        """Initialize session token service.

        Args:
            secret_key: Secret key for JWT signing
            ttl_seconds: Session lifetime
            issuer: iss claim written and required on verify
            algorithm: JWT signing algorithm
        """
        self.secret_key = secret_key
        self.ttl = timedelta(seconds=ttl_seconds)
        self.issuer = issuer
        self.algorithm = algorithm

        if secret_key == "dev-secret-change-in-production":
            logger.warning(
                "Using default SESSION_SECRET! "
                "Set SESSION_SECRET environment variable in production!"
            )

    def create(self, user: UserIdentity, external_token: Optional[str] = None) -> str:
        """Create a session token for a user.

        Args:
            user: Normalized user identity
            external_token: Upstream access token to carry (API integrations)

        Returns:
            Encoded JWT
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.external_id or user.user_id,
            "user_id": user.user_id,
            "email": user.email,
            "name": user.display_name,
            "username": user.username,
            "roles": list(user.roles),
            "provider": user.provider,
            "is_admin": user.is_admin,
            "iss": self.issuer,
            "iat": now,
            "exp": now + self.ttl,
            "jti": str(uuid.uuid4()),
        }
        if external_token:
            payload["external_token"] = external_token

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Optional[dict[str, Any]]:
        """Decode a session token. Returns None when invalid or expired."""
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
            )
        except JWTError as e:
            logger.debug(f"Session token verification failed: {e}")
            return None

    def remaining_seconds(self, payload: dict[str, Any]) -> int:
        exp = payload.get("exp")
        if not exp:
            return 0
        return max(0, int(exp - datetime.now(timezone.utc).timestamp()))

    @staticmethod
    def user_from_payload(payload: dict[str, Any]) -> UserIdentity:
        """Rebuild the user identity a token was issued for."""
        user_id = str(payload.get("user_id") or payload.get("sub"))
        subject = payload.get("sub")
        email = payload.get("email") or ""
        name = payload.get("name") or payload.get("username") or email
        metadata = {}
        if payload.get("external_token"):
            metadata["external_token"] = payload["external_token"]

        return UserIdentity(
            user_id=user_id,
            email=email,
            username=payload.get("username") or name,
            display_name=name,
            roles=list(payload.get("roles") or []),
            is_admin=bool(payload.get("is_admin", False)),
            provider=payload.get("provider") or "unknown",
            external_id=str(subject) if subject is not None and str(subject) != user_id else None,
            metadata=metadata,
        )
