"""User Synchronization Service

Purpose: Bring user records from external identity systems into ggr_users

Records are normalized first (field names differ per system), then upserted by
external id or email, then their external roles are synced. Every user is
committed in its own transaction so one bad record cannot undo the others.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from game_request.core.auth.provider import SyncResult, UserIdentity, UserSyncError
from game_request.domain.models.users import ExternalUserData, NormalizedUser
from game_request.infrastructure.database.models import User
from game_request.infrastructure.database.repositories import ActivityLogRepository, UserRepository

logger = logging.getLogger(__name__)


def _first(data: dict, *names: str) -> Any:
    for name in names:
        value = data.get(name)
        if value not in (None, ""):
            return value
    return None


def _string_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def normalize_user_data(data: dict[str, Any], provider: str) -> NormalizedUser:
    """Map a raw external user record onto NormalizedUser.

    Args:
        data: Record as returned by the external system
        provider: Provider kind the record came from

    Returns:
        NormalizedUser

    Raises:
        UserSyncError: If the record has no id or no email
    """
    if not isinstance(data, dict):
        raise UserSyncError("User data must be an object")

    external_id = _first(data, "id", "user_id", "external_id", "sub")
    if external_id is None:
        raise UserSyncError("User data missing required ID field")

    email = data.get("email")
    if not email:
        raise UserSyncError("User data missing required email field")

    return NormalizedUser(
        external_id=str(external_id),
        email=str(email).strip().lower(),
        name=_first(data, "name", "display_name", "preferred_username", "username") or "",
        avatar=_first(data, "avatar", "profile_picture", "picture"),
        is_active=data.get("is_active") is not False and data.get("active") is not False,
        provider=provider,
        external_data=ExternalUserData(
            username=data.get("username") or data.get("preferred_username"),
            roles=_string_list(data.get("roles")),
            permissions=_string_list(data.get("permissions")),
            groups=_string_list(data.get("groups")),
            metadata=data.get("metadata") or {},
            created_at=str(data["created_at"]) if data.get("created_at") else None,
            updated_at=str(data["updated_at"]) if data.get("updated_at") else None,
        ),
    )


def user_to_identity(user: User, provider: Optional[str] = None) -> UserIdentity:
    """Build the normalized identity for a stored user."""
    roles = user.role_names
    display_name = user.name or user.username or user.email
    return UserIdentity(
        user_id=str(user.id),
        email=user.email,
        username=user.username or user.email,
        display_name=display_name,
        roles=roles,
        is_admin=user.is_admin or "admin" in roles,
        provider=provider or user.provider,
        external_id=user.external_id,
        metadata={"avatar_url": user.avatar_url} if user.avatar_url else {},
    )


async def sync_user_to_database(session: AsyncSession, normalized: NormalizedUser) -> tuple[User, bool]:
    """Upsert one normalized user and sync its roles. Does not commit.

    Returns:
        Tuple of (user row, created)
    """
    users = UserRepository(session)
    now = datetime.now(timezone.utc)
    user = await users.find_for_sync(normalized.external_id, normalized.email)
    created = user is None

    fields = dict(
        external_id=normalized.external_id,
        email=normalized.email,
        name=normalized.name,
        avatar_url=normalized.avatar,
        is_active=normalized.is_active,
        provider=normalized.provider,
        external_data=normalized.external_data.model_dump(),
        last_synced_at=now,
    )
    if created:
        user = await users.create(username=normalized.external_data.username, **fields)
    else:
        for name, value in fields.items():
            setattr(user, name, value)
        if normalized.is_active:
            user.deleted_at = None

    if normalized.roles:
        await users.sync_roles(user, normalized.roles)
    await session.flush()
    return user, created


class UserSyncService:
    """Transactional user sync operations used by providers."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def sync_user(self, data: dict[str, Any], provider: str) -> tuple[User, bool]:
        """Normalize and upsert one record in its own transaction.

        Raises:
            UserSyncError: If the record cannot be normalized
        """
        normalized = normalize_user_data(data, provider)
        async with self.session_factory() as session:
            try:
                user, created = await sync_user_to_database(session, normalized)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        logger.debug(f"Synced user {normalized.external_id} ({'created' if created else 'updated'})")
        return user, created

    async def batch_sync_users(self, users_data: Iterable[dict[str, Any]], provider: str) -> SyncResult:
        """Sync many records. Failures are counted, never raised.

        Returns:
            SyncResult with one error_details entry per failed record
        """
        result = SyncResult()
        for data in users_data:
            result.total += 1
            try:
                await self.sync_user(data, provider)
                result.synced += 1
            except Exception as e:
                ref = _first(data, "id", "user_id", "email") if isinstance(data, dict) else None
                logger.error(f"Failed to sync user {ref}: {e}")
                result.errors += 1
                result.error_details.append({"user": ref, "error": str(e)})

        logger.info(
            f"Batch sync for {provider} finished: "
            f"{result.synced}/{result.total} synced, {result.errors} errors"
        )
        details = {"total": result.total, "synced": result.synced, "errors": result.errors}
        if result.errors:
            details["error_details"] = result.error_details
        await self.record_activity("sync_batch_sync", "user_sync", provider, details)
        return result

    async def is_active(self, user_id: str) -> bool:
        """Whether the stored user behind a session still exists and is active."""
        if not user_id or not user_id.isdigit():
            return False
        async with self.session_factory() as session:
            user = await UserRepository(session).get_by_id(int(user_id))
        return user is not None and user.is_active

    async def deactivate(self, external_id: str) -> Optional[User]:
        async with self.session_factory() as session:
            user = await UserRepository(session).deactivate_by_external_id(external_id)
            await session.commit()
        return user

    async def set_roles(self, external_id: str, roles: list[str]) -> Optional[list[str]]:
        """Replace external roles of a user. Returns None when the user is unknown."""
        async with self.session_factory() as session:
            users = UserRepository(session)
            user = await users.get_by_external_id(external_id)
            if user is None:
                return None
            assigned = await users.sync_roles(user, roles)
            await session.commit()
        return assigned

    async def record_activity(
        self,
        action: str,
        entity_type: Optional[str],
        entity_id: Optional[str],
        details: Optional[dict] = None,
    ) -> None:
        """Append to the activity log. Logging failures never fail the caller."""
        try:
            async with self.session_factory() as session:
                await ActivityLogRepository(session).record(action, entity_type, entity_id, details)
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to record activity {action}: {e}")
