"""
Repositories over the GameRequest tables.

Repositories flush but never commit: the caller owns the transaction so that
a bulk sync can commit or roll back each user on its own.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from game_request.infrastructure.database.models import ActivityLog, Role, User, UserRole, WatchlistItem

logger = logging.getLogger(__name__)


class UserRepository:
    """Lookups and writes for ggr_users and role assignments."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_by_external_id(self, external_id: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.external_id == external_id))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def admin_exists(self) -> bool:
        """Whether any active admin account exists."""
        result = await self.session.execute(
            select(User.id).where(User.is_admin.is_(True), User.is_active.is_(True)).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_by_login(self, login: str) -> Optional[User]:
        """Find a local account by username or email."""
        result = await self.session.execute(
            select(User).where(
                User.password_hash.is_not(None),
                or_(User.username == login, func.lower(User.email) == login.lower()),
            )
        )
        return result.scalars().first()

    async def find_for_sync(self, external_id: str, email: str) -> Optional[User]:
        """Match an external record by external id first, then email."""
        result = await self.session.execute(
            select(User).where(or_(User.external_id == external_id, func.lower(User.email) == email.lower()))
        )
        candidates = list(result.scalars().all())
        for candidate in candidates:
            if candidate.external_id == external_id:
                return candidate
        return candidates[0] if candidates else None

    async def create(self, **fields: Any) -> User:
        # An initialized collection keeps role sync from lazy loading under asyncio
        fields.setdefault("roles", [])
        user = User(**fields)
        self.session.add(user)
        await self.session.flush()
        return user

    async def touch_last_login(self, user: User) -> None:
        user.last_login_at = datetime.now(timezone.utc)
        await self.session.flush()

    async def set_password_hash(self, user: User, password_hash: str) -> None:
        user.password_hash = password_hash
        await self.session.flush()

    async def sync_roles(self, user: User, role_names: list[str]) -> list[str]:
        """
        Replace the user's externally managed roles.

        System role assignments are kept. Unknown role names are created as
        non-system roles.

        Returns:
            Role names assigned to the user after the sync
        """
        wanted = []
        for name in role_names:
            normalized = str(name).strip().lower()
            if normalized and normalized not in wanted:
                wanted.append(normalized)

        for assignment in list(user.roles):
            if not assignment.role.is_system and assignment.role.name not in wanted:
                user.roles.remove(assignment)

        assigned = {assignment.role.name for assignment in user.roles}
        for name in wanted:
            if name in assigned:
                continue
            role = await self._get_or_create_role(name)
            user.roles.append(UserRole(role=role))

        await self.session.flush()
        return user.role_names

    async def _get_or_create_role(self, name: str) -> Role:
        result = await self.session.execute(select(Role).where(Role.name == name))
        role = result.scalar_one_or_none()
        if role is None:
            display_name = name[:1].upper() + name[1:]
            role = Role(
                name=name,
                display_name=display_name,
                description=f"External role: {display_name}",
                is_system=False,
            )
            self.session.add(role)
            await self.session.flush()
            logger.info(f"Created external role: {name}")
        return role

    async def deactivate_by_external_id(self, external_id: str) -> Optional[User]:
        user = await self.get_by_external_id(external_id)
        if user is None:
            return None
        user.soft_delete()
        await self.session.flush()
        return user


class WatchlistRepository:
    """Per-user watchlist rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: int, game_id: str) -> Optional[WatchlistItem]:
        result = await self.session.execute(
            select(WatchlistItem).where(
                WatchlistItem.user_id == user_id,
                WatchlistItem.game_id == game_id,
            )
        )
        return result.scalar_one_or_none()

    async def contains(self, user_id: int, game_id: str) -> bool:
        return await self.get(user_id, game_id) is not None

    async def add(self, user_id: int, game_id: str) -> tuple[WatchlistItem, bool]:
        """Add a game. Returns (item, created); adding twice is a no-op."""
        existing = await self.get(user_id, game_id)
        if existing is not None:
            return existing, False
        item = WatchlistItem(user_id=user_id, game_id=game_id)
        self.session.add(item)
        await self.session.flush()
        return item, True

    async def remove(self, user_id: int, game_id: str) -> bool:
        result = await self.session.execute(
            delete(WatchlistItem).where(
                WatchlistItem.user_id == user_id,
                WatchlistItem.game_id == game_id,
            )
        )
        return result.rowcount > 0

    async def list_for_user(self, user_id: int) -> list[WatchlistItem]:
        result = await self.session.execute(
            select(WatchlistItem)
            .where(WatchlistItem.user_id == user_id)
            .order_by(WatchlistItem.added_at.desc())
        )
        return list(result.scalars().all())


class ActivityLogRepository:
    """Append-only audit trail."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict] = None,
        user_id: Optional[int] = None,
    ) -> ActivityLog:
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry
