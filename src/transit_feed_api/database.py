"""Store handle owning the async engine and its connection pool."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from transit_feed_api.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from transit_feed_api.config import Settings

logger = get_logger(__name__)


class StoreUnavailableError(Exception):
    """Raised when the store cannot be reached or a query against it fails."""


class FeedStore:
    """Explicit handle to the feed database.

    One instance is created per application and handed to every component
    that reads or writes feed tables.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> FeedStore:
        engine = create_async_engine(
            str(settings.database_url),
            echo=settings.debug,
            pool_pre_ping=True,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )
        return cls(engine)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session bound to this store's pool."""
        async with self._session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    async def check_connection(self) -> bool:
        """Check if the database is reachable."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Database health check failed", error=str(exc))
            return False
        return True

    async def close(self) -> None:
        """Dispose of pooled connections."""
        await self._engine.dispose()
