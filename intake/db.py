"""SQLAlchemy 2.x async database handle.

The engine is created by ``Database.connect()`` during application startup and
disposed on shutdown; nothing connects at import time.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

logger = logging.getLogger(__name__)

UNIQUE_EMAIL_INDEX = "uq_submissions_email"


class Database:
    """Owns the async engine and session factory for one process."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self._engine

    async def connect(self, *, unique_email: bool = False) -> None:
        """Create the engine and make sure the schema exists."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, echo=self.echo, pool_pre_ping=True)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            class_=AsyncSession,
        )
        await self.create_all(unique_email=unique_email)
        logger.info("Database connected: %s", make_url(self.url).render_as_string(hide_password=True))

    async def create_all(self, *, unique_email: bool = False, drop: bool = False) -> None:
        async with self.engine.begin() as conn:
            if drop:
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
            if unique_email:
                await conn.execute(
                    text(f"CREATE UNIQUE INDEX IF NOT EXISTS {UNIQUE_EMAIL_INDEX} ON submissions (email)")
                )
            else:
                await conn.execute(text(f"DROP INDEX IF EXISTS {UNIQUE_EMAIL_INDEX}"))

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session bound to the shared engine.

        Usage:
            async with database.session() as session:
                ...
        """
        if self._session_factory is None:
            raise RuntimeError("Database is not connected; call connect() first")
        async with self._session_factory() as session:
            yield session

    async def dispose(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed")
