"""
Engine and session handling for the durable audit store.
"""
from __future__ import annotations
import logging
from typing import AsyncGenerator, Dict, Any
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from ..core.exceptions import CollaboratorError, ConfigurationError
from .base import Base


def engine_options(database_url: str, echo_sql: bool = False) -> Dict[str, Any]:
    """Pool settings for the given backend."""
    url = make_url(database_url)
    options: Dict[str, Any] = {"echo": echo_sql}
    if url.get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
        # An in-memory database only lives as long as its single connection
        memory = url.database in (None, "", ":memory:")
        options["poolclass"] = StaticPool if memory else NullPool
    else:
        options["pool_pre_ping"] = True
        options["pool_recycle"] = 300
    return options


class Database:
    """Async engine plus session factory for the audit tables."""

    def __init__(self, database_url: str, echo_sql: bool = False, **kwargs: Any) -> None:
        if not database_url:
            raise ConfigurationError("Database URL is required")
        try:
            options = {**engine_options(database_url, echo_sql), **kwargs}
            self.engine: AsyncEngine = create_async_engine(database_url, **options)
        except ArgumentError as e:
            raise ConfigurationError(f"Invalid database URL: {e}", original_exception=e)
        self.display_url = self.engine.url.render_as_string(hide_password=True)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
        )
        self._logger = logging.getLogger(__name__)
        self._logger.info("Audit database engine created for %s", self.display_url)

    async def create_all(self) -> None:
        """Create the audit tables if they do not exist."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise CollaboratorError(
                f"Could not create audit tables: {e}",
                context={"database_url": self.display_url},
                original_exception=e
            )

    async def health_check(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            self._logger.error(f"Audit database health check failed: {e}")
            return False
        return True

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise CollaboratorError(f"Audit database operation failed: {e}", original_exception=e)

    async def close(self) -> None:
        await self.engine.dispose()
        self._logger.info("Audit database connections closed")
