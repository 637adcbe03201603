"""Database configuration and connection management."""

from collections.abc import AsyncGenerator
from typing import Any

import structlog
from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from petcare.models import metadata

logger = structlog.get_logger()


class Database:
    """
    Owns the async engine and session factory.

    Created once per process and opened/closed explicitly by the application
    lifespan; request handlers reach it through ``get_db``.
    """

    def __init__(self, url: str, *, echo: bool = False, application_name: str | None = None):
        """Store connection options; nothing is opened until ``connect``."""
        self.url = url
        self.echo = echo
        self.application_name = application_name
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    def _engine_options(self) -> dict[str, Any]:
        if self.url.startswith("sqlite"):
            # Writers wait on the file lock instead of failing fast
            return {"connect_args": {"timeout": 30}}

        options: dict[str, Any] = {
            "pool_pre_ping": True,
            "pool_size": 10,
            "max_overflow": 20,
            "pool_recycle": 3600,
        }
        if self.application_name:
            options["connect_args"] = {
                "server_settings": {"application_name": self.application_name},
            }
        return options

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected")
        return self._engine

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    def connect(self) -> None:
        """Create the engine and session factory."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, echo=self.echo, **self._engine_options())
        self._sessionmaker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("database_engine_created", dialect=self._engine.dialect.name)

    async def dispose(self) -> None:
        """Close all pooled connections."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    def session(self) -> AsyncSession:
        """Open a new session; the caller owns closing it."""
        if self._sessionmaker is None:
            raise RuntimeError("Database is not connected")
        return self._sessionmaker()

    async def create_all(self) -> None:
        """Create every table on the connected engine."""
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def drop_all(self) -> None:
        """Drop every table on the connected engine."""
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.drop_all)

    async def check_connection(self) -> bool:
        """Check if database connection is healthy."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("database_health_check_failed", error=str(e))
            return False


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    database: Database = request.app.state.db
    async with database.session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
