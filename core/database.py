"""Async SQLAlchemy database engine and session management.

Provides the persistence handle used by every BookSwap operation:
- Connection pooling (configurable pool_size/max_overflow) for server databases
- A ``Database`` object passed explicitly to services (no module-level engine)
- Automatic session lifecycle (commit on success, rollback on error)
- PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for dev and tests
"""

import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.models.base import Base

# ---------------------------------------------------------------------------
# Configuration from environment
# ---------------------------------------------------------------------------

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./bookswap.db"


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings, usually built with ``from_env()``."""

    url: str = DEFAULT_DATABASE_URL
    pool_size: int = 20
    max_overflow: int = 10
    echo: bool = False

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        return cls(
            url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            pool_size=int(os.getenv("DB_POOL_SIZE", "20")),
            max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "10")),
            echo=os.getenv("DB_ECHO", "false").lower() == "true",
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


# ---------------------------------------------------------------------------
# Engine & session factory
# ---------------------------------------------------------------------------

class Database:
    """Owns one engine and its session factory.

    Usage::

        db = Database(DatabaseSettings.from_env())
        await db.create_all()
        async with db.session() as session:
            session.add(item)
        await db.dispose()
    """

    def __init__(self, settings: DatabaseSettings | None = None):
        self.settings = settings or DatabaseSettings.from_env()
        self.engine: AsyncEngine = self._create_engine(self.settings)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @staticmethod
    def _create_engine(settings: DatabaseSettings) -> AsyncEngine:
        # SQLite dialects pick their own pool class and reject sizing arguments
        if settings.is_sqlite:
            return create_async_engine(settings.url, echo=settings.echo)
        return create_async_engine(
            settings.url,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            echo=settings.echo,
            pool_pre_ping=True,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a unit-of-work session: commit on success, rollback on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # -- Lifecycle hooks --

    async def create_all(self) -> None:
        """Create tables from models (dev/test only)."""
        # Registers the BookSwap tables on Base.metadata
        import verticals.bookswap.models.db_models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Dispose of the connection pool on shutdown."""
        await self.engine.dispose()
