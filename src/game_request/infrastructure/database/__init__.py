"""Async SQLAlchemy persistence for users, roles, watchlists and activity."""

from .connection import Database, get_db
from .models import ActivityLog, Base, Role, User, UserRole, WatchlistItem
from .repositories import ActivityLogRepository, UserRepository, WatchlistRepository

__all__ = [
    "ActivityLog",
    "ActivityLogRepository",
    "Base",
    "Database",
    "Role",
    "User",
    "UserRepository",
    "UserRole",
    "WatchlistItem",
    "WatchlistRepository",
    "get_db",
]
