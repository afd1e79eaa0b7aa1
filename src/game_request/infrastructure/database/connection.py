"""
Database session management.

Provides the async SQLAlchemy engine, session factory and FastAPI dependency.
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from game_request.infrastructure.database.models import Base

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Convert postgresql:// to postgresql+asyncpg:// if needed."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


class Database:
    """Owns the engine and hands out sessions."""

    def __init__(self, url: str, echo: bool = False, pooled: Optional[bool] = None):
        """Initialize engine

        Args:
            url: SQLAlchemy async database URL
            echo: Log every SQL statement
            pooled: Connection pooling; defaults to off for SQLite (tests)
        """
        self.url = normalize_database_url(url)
        if pooled is None:
            pooled = not self.url.startswith("sqlite")
        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        if not pooled:
            engine_kwargs["poolclass"] = NullPool
        self.engine = create_async_engine(self.url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def init_schema(self) -> None:
        """
        Create all tables.

        Development and tests only; production schemas are migrated separately.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        """Run SELECT 1. Raises when the database is unreachable."""
        async with self.session_factory() as session:
            await session.execute(text("SELECT 1"))

    async def drop_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Usage in FastAPI:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...

    Yields:
        AsyncSession: Database session
    """
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
