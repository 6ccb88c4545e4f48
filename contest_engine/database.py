"""
contest_engine/database.py
Store handle: async engine + session factory with an explicit lifecycle.

A Store is constructed once at process start (FastAPI lifespan or CLI),
opened, handed to whoever needs sessions, and closed at shutdown.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from contest_engine.orm.base import Base
import contest_engine.orm  # registers every model on Base.metadata

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless this is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Store:
    """Owns the engine and the session factory."""

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        sqlite_busy_timeout: float = 30.0,
    ):
        self.database_url = database_url
        self.echo = echo
        self.sqlite_busy_timeout = sqlite_busy_timeout
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None

    @classmethod
    def from_settings(cls, settings) -> "Store":
        return cls(
            database_url=settings.database_url,
            echo=settings.db_echo,
            sqlite_busy_timeout=settings.sqlite_busy_timeout,
        )

    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.database_url.lower()

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Store is not open")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def open(self) -> "Store":
        """Create the engine. Safe to call twice."""
        if self._engine is not None:
            return self

        if self.is_sqlite:
            options = {
                # SQLite busy timeout in seconds; concurrent writers wait instead of failing
                "connect_args": {"timeout": self.sqlite_busy_timeout},
            }
            if ":memory:" not in self.database_url:
                options.update(pool_size=10, max_overflow=20, pool_timeout=30)
            engine = create_async_engine(self.database_url, echo=self.echo, pool_pre_ping=True, **options)
            event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        else:
            engine = create_async_engine(
                self.database_url,
                echo=self.echo,
                pool_pre_ping=True,
                pool_size=20,
                max_overflow=30,
                pool_timeout=30,
                pool_recycle=3600,
            )

        self._engine = engine
        self._sessionmaker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(f"Store opened ({engine.dialect.name})")
        return self

    def session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise RuntimeError("Store is not open")
        return self._sessionmaker()

    async def init_schema(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")

    async def drop_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Store closed")
        self._engine = None
        self._sessionmaker = None


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency for getting an async session from the application's store"""
    store: Store = request.app.state.store
    async with store.session() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    One service operation = one transaction.
    Commits when the block exits cleanly, rolls back on any exception.

    On rollback the session is emptied first, so instances the caller
    still holds become detached with their loaded values instead of
    expiring (an expired instance cannot reload outside the event loop).
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        db.expunge_all()
        await db.rollback()
        raise
