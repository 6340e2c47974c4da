"""Async PostgreSQL connection management.

Provides an owner-controlled engine + session factory. Uses SQLAlchemy 2.0
async patterns with SQLModel.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from docsift.config import Settings

log = structlog.get_logger()


class Database:
    """Async engine and session factory with explicit init/teardown.

    Usage:
        db = Database.from_settings(settings)
        async with db.session() as session:
            result = await session.execute(select(Model))
        await db.close()
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
    def from_settings(cls, settings: Settings) -> "Database":
        """Create a pooled asyncpg engine from settings."""
        engine = create_async_engine(
            settings.postgres_url,
            echo=settings.log_level == "DEBUG",
            pool_size=settings.postgres_pool_size,
            max_overflow=settings.postgres_max_overflow,
            pool_pre_ping=True,  # Verify connections before use
            pool_recycle=3600,  # Recycle connections after 1 hour
        )
        return cls(engine)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def init_schema(self) -> None:
        """Enable pgvector and create all tables if they don't exist."""
        async with self._engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            log.info("Enabled pgvector extension")

            await conn.run_sync(SQLModel.metadata.create_all)
            log.info("Database tables initialized")

    async def close(self) -> None:
        """Dispose of pooled connections."""
        await self._engine.dispose()
        log.info("Database connections closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an async database session.

        Yields:
            AsyncSession: Database session that auto-commits on success,
                rolls back on exception.
        """
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
