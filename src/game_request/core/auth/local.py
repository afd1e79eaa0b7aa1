"""Local authentication provider (username/password).

Default provider for self-hosted deployments, and the fallback next to an
external provider when AUTH_LOCAL_FALLBACK is enabled. Accounts live in
ggr_users with a bcrypt password hash.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import bcrypt
from sqlalchemy.ext.asyncio import async_sessionmaker

from game_request.domain.services.user_sync import user_to_identity
from game_request.infrastructure.database.repositories import UserRepository

from .provider import AccountExistsError, AuthenticationError, AuthProvider, ProviderKind, UserIdentity

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
DEFAULT_ROLE = "user"


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def check_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed hash in the database
        return False


class LocalAuthProvider(AuthProvider):
    """Local username/password authentication.

    Features:
    - Login with username or email and password
    - Account creation, password change and admin password reset
    - Session liveness check against the user row (deactivated users are out)

    Configuration:
        AUTH_PROVIDER=local_auth (default)
    """

    kind = ProviderKind.LOCAL_AUTH

    def __init__(self, session_factory: async_sessionmaker, bcrypt_rounds: int = BCRYPT_ROUNDS):
        """Initialize local auth provider.

        Args:
            session_factory: Database session factory
            bcrypt_rounds: bcrypt cost factor for new hashes
        """
        self.session_factory = session_factory
        self.bcrypt_rounds = bcrypt_rounds

    async def get_login_url(self, state: str, redirect_uri: str) -> str:
        """Local auth has no IdP; send the browser to the login form."""
        query = {"redirect": redirect_uri} if redirect_uri else {}
        return f"/login?{urlencode(query)}" if query else "/login"

    async def authenticate(self, credentials: Dict[str, Any]) -> tuple[UserIdentity, Optional[str]]:
        """Authenticate user with username (or email) and password.

        Args:
            credentials: {"username": ..., "password": ...}; "email" is accepted for username

        Returns:
            Tuple of (UserIdentity, None)

        Raises:
            AuthenticationError: If credentials are invalid
        """
        login = (credentials.get("username") or credentials.get("email") or "").strip()
        password = credentials.get("password") or ""
        if not login or not password:
            raise AuthenticationError("Username and password are required")

        async with self.session_factory() as session:
            users = UserRepository(session)
            user = await users.get_by_login(login)
            if not user:
                logger.warning(f"Login failed: User not found ({login})")
                raise AuthenticationError("Invalid username or password")

            if not check_password(password, user.password_hash):
                logger.warning(f"Login failed: Invalid password ({login})")
                raise AuthenticationError("Invalid username or password")

            if not user.is_active:
                logger.warning(f"Login failed: User inactive ({login})")
                raise AuthenticationError("User account is inactive")

            await users.touch_last_login(user)
            await session.commit()

        logger.info(f"User authenticated successfully: {user.email} ({user.id})")
        return user_to_identity(user, self.kind.value), None

    async def verify_session(self, user: UserIdentity) -> bool:
        """A local session is live while its user row is active."""
        if not user.user_id.isdigit():
            return False
        async with self.session_factory() as session:
            stored = await UserRepository(session).get_by_id(int(user.user_id))
        return stored is not None and stored.is_active

    async def create_user(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
        username: Optional[str] = None,
        is_admin: bool = False
    ) -> UserIdentity:
        """Create a local account with the default role.

        Raises:
            AuthenticationError: If email or password is missing
            AccountExistsError: If the username or email is taken
        """
        if not email or not password:
            raise AuthenticationError("Email and password are required")

        async with self.session_factory() as session:
            users = UserRepository(session)
            if username and await users.get_by_username(username):
                raise AccountExistsError("Username is already taken")
            if await users.get_by_email(email):
                raise AccountExistsError("User already exists")

            user = await users.create(
                email=email.strip().lower(),
                username=username,
                name=name or username or "",
                password_hash=hash_password(password, self.bcrypt_rounds),
                is_admin=is_admin,
                provider=self.kind.value,
            )
            await users.sync_roles(user, [DEFAULT_ROLE])
            await session.commit()

        logger.info(f"Local user created: {user.email} ({user.id})")
        return user_to_identity(user, self.kind.value)

    async def needs_initial_setup(self) -> bool:
        """True until the first admin account exists."""
        async with self.session_factory() as session:
            return not await UserRepository(session).admin_exists()

    async def create_initial_admin(self, username: str, email: str, password: str) -> UserIdentity:
        """Create the first admin of a fresh deployment.

        Raises:
            AccountExistsError: If an admin already exists, or the username or email is taken
        """
        if not await self.needs_initial_setup():
            raise AccountExistsError("Initial setup has already been completed")
        admin = await self.create_user(email=email, password=password, username=username, is_admin=True)
        logger.info(f"Initial admin created: {admin.email}")
        return admin

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        """
        Raises:
            AuthenticationError: If the user is unknown or current_password is wrong
        """
        async with self.session_factory() as session:
            users = UserRepository(session)
            user = await users.get_by_id(user_id)
            if user is None:
                raise AuthenticationError("User not found")
            if not check_password(current_password, user.password_hash):
                raise AuthenticationError("Current password is incorrect")
            await users.set_password_hash(user, hash_password(new_password, self.bcrypt_rounds))
            await session.commit()
        logger.info(f"Password changed for user {user_id}")

    async def reset_password(self, email: str, new_password: str) -> None:
        """Admin or forgot-password reset.

        Raises:
            AuthenticationError: If no user has this email
        """
        async with self.session_factory() as session:
            users = UserRepository(session)
            user = await users.get_by_email(email)
            if user is None:
                raise AuthenticationError("User not found")
            await users.set_password_hash(user, hash_password(new_password, self.bcrypt_rounds))
            await session.commit()
        logger.info(f"Password reset for user {user.id}")
