"""Async SQLAlchemy engine handle with an explicit, typed initialization result.

Provides:
- Base: Declarative base for all live-session tables
- Database: Owns one AsyncEngine; yields AsyncSession instances via session()
- DatabaseReady / DatabaseUnavailable: result of Database.connect(), so the
  caller decides what an unavailable database means (the app lifespan keeps
  serving with 503s from the repository dependency)

There is no module-level engine. The lifespan constructs the Database once and
stores it on app.state; everything else receives it explicitly.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for live-session models."""


@dataclass(frozen=True)
class DatabaseReady:
    """Successful connection: carries the usable handle."""

    handle: Database
    ok: bool = True


@dataclass(frozen=True)
class DatabaseUnavailable:
    """Failed connection: carries the error, no handle."""

    error: Exception
    ok: bool = False


DatabaseInitResult = DatabaseReady | DatabaseUnavailable


class Database:
    """Connection handle wrapping a single AsyncEngine.

    Args:
        engine: Configured AsyncEngine. Use Database.connect() to build one
            from a URL and verify connectivity.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @classmethod
    async def connect(
        cls,
        url: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 5,
        verify: bool = True,
    ) -> DatabaseInitResult:
        """Create the engine and (optionally) run SELECT 1 against it.

        Never raises: configuration and connectivity failures are returned as
        DatabaseUnavailable.
        """
        try:
            engine = create_async_engine(
                url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                echo=False,
            )
        except Exception as exc:
            logger.error("database.engine_create_failed", error=str(exc))
            return DatabaseUnavailable(error=exc)

        if verify:
            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            except Exception as exc:
                logger.error("database.connect_failed", error=str(exc))
                await engine.dispose()
                return DatabaseUnavailable(error=exc)

        logger.info("database.connected")
        return DatabaseReady(handle=cls(engine))

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield an AsyncSession bound to this engine."""
        async with AsyncSession(self._engine, expire_on_commit=False) as session:
            yield session

    async def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Return True if the database answers SELECT 1."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.warning("database.ping_failed", exc_info=True)
            return False

    async def dispose(self) -> None:
        """Dispose of the engine and close all pooled connections."""
        await self._engine.dispose()
