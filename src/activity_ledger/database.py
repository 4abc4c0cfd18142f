"""Database connection and session management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from activity_ledger.errors import StoreUnavailableError
from activity_ledger.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create async database engine."""
    if database_url.startswith("sqlite"):
        engine = create_async_engine(database_url, echo=echo)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


class Database:
    """Engine and session factory owned by whoever creates it.

    There is no module-level handle: the application builds one instance in its
    lifespan and hands sessions to the services that need them.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.engine: AsyncEngine = create_engine_for_url(database_url, echo=echo)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session, committed on success."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create all tables (development and tests)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        """Round-trip a trivial statement.

        Raises:
            StoreUnavailableError: If the database cannot be reached
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (DBAPIError, OSError) as exc:
            raise StoreUnavailableError(str(exc)) from exc

    async def dispose(self) -> None:
        await self.engine.dispose()


def is_postgresql(session: AsyncSession) -> bool:
    """Whether the session is bound to a PostgreSQL engine."""
    bind = session.bind
    return bind is not None and bind.dialect.name == "postgresql"


async def acquire_advisory_xact_lock(session: AsyncSession, key: str, timeout: float) -> None:
    """Take a transaction-scoped advisory lock (PostgreSQL only).

    Blocks up to ``timeout`` seconds; the lock is released when the
    transaction commits or rolls back.
    """
    await session.execute(text(f"SET LOCAL lock_timeout = '{int(timeout * 1000)}ms'"))
    await session.execute(
        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
        {"key": key},
    )
