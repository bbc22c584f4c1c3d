"""Database engine, sessions and schema creation"""

from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)
from sqlalchemy.orm import declarative_base

from splitbill.config import get_settings

settings = get_settings()

# Base class for models
Base = declarative_base()


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite only honours ON DELETE CASCADE with foreign keys switched on per connection"""

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(database_url: str, **options) -> AsyncEngine:
    """
    Create an async engine for PostgreSQL (asyncpg) or SQLite (aiosqlite).

    Pool sizing only applies to PostgreSQL; SQLite engines get foreign key
    enforcement instead.

    Args:
        database_url: SQLAlchemy URL
        **options: Extra create_async_engine arguments

    Returns:
        AsyncEngine
    """
    options.setdefault("echo", settings.debug)
    if database_url.startswith("postgresql"):
        options.setdefault("pool_size", settings.db_pool_size)
        options.setdefault("max_overflow", settings.db_max_overflow)
        options.setdefault("pool_pre_ping", True)

    engine = create_async_engine(database_url, **options)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_foreign_keys(engine)
    return engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url)
AsyncSessionLocal = build_session_factory(engine)


async def create_tables(bind: Optional[AsyncEngine] = None) -> None:
    """Create every table registered on Base (used by scripts and tests)"""
    import splitbill.models  # noqa: F401  registers tables on Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database session.

    Services commit their own writes; anything left pending when the
    request fails is rolled back.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
