"""
Connection Engine (SQLAlchemy asyncio)

Purpose
-------
Centralizes database initialization for the gateway:
- Creates the async Engine from ``Settings.DATABASE_URL``.
- Exposes an ``async_sessionmaker`` used by the stores.
- Defines the Declarative Base class for ORM entities.

Notes
-----
- In-memory SQLite needs a single shared connection, so ``StaticPool`` is used
  for ``:memory:`` URLs; file and server databases use the default pool.
- ``Database.init_models()`` creates missing tables. Schema migrations are out
  of scope for this service.
"""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger("socialhub.storage.database")


class Base(DeclarativeBase):
    """Declarative Base: root class for ORM entities."""
    pass


class Database:
    """
    Owns the async engine and session factory for one application instance.

    Attributes:
        engine: SQLAlchemy AsyncEngine
        sessionmaker: Factory producing AsyncSession objects
    """

    def __init__(self, url: str, echo: bool = False):
        engine_kwargs = {"echo": echo}

        if url.startswith("sqlite") and ":memory:" in url:
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
        )

    async def init_models(self) -> None:
        """Create all tables registered on ``Base.metadata``."""
        # Entities register themselves on import
        from . import entities  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Database schema ready",
            extra={"tables": sorted(Base.metadata.tables.keys())}
        )

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")
