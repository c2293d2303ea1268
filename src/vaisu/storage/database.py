"""
Async SQLAlchemy connection management for the SQL key-value backend.

Provides:
- a process-wide engine and session factory
- a commit/rollback session context manager
- table creation for the `kv_items` table on startup
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from vaisu.core.config import settings
from vaisu.core.logging import get_logger
from vaisu.storage.models import Base

logger = get_logger()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _get_async_url(url: str) -> str:
    """
    Convert sync driver URLs to their async equivalents.

    Args:
        url: configured database URL

    Returns:
        URL using asyncpg / aiosqlite
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


async def init_db(database_url: Optional[str] = None) -> None:
    """
    Create the engine, the session factory and the `kv_items` table.

    Called once from the application lifespan. Calling it again is a no-op.

    Args:
        database_url: override for `settings.database_url`

    Raises:
        Exception: when the database cannot be reached
    """
    global _engine, _session_factory

    if _engine is not None:
        logger.debug("Database engine already initialized")
        return

    async_url = _get_async_url(database_url or settings.database_url)
    url = make_url(async_url)
    logger.info(f"Connecting to database: {url.render_as_string(hide_password=True)}")

    engine_kwargs: dict = {"pool_pre_ping": True, "echo": settings.debug}
    if url.get_backend_name() == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    else:
        engine_kwargs["pool_size"] = settings.database_pool_size
        engine_kwargs["max_overflow"] = settings.database_max_overflow

    try:
        _engine = create_async_engine(async_url, **engine_kwargs)
        _session_factory = async_sessionmaker(
            bind=_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database initialized")

    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        _engine = None
        _session_factory = None
        raise


async def close_db() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connection closed")


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session that commits on success and rolls back on error.

    Raises:
        RuntimeError: when `init_db()` has not been called
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized, call init_db() first")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def is_db_initialized() -> bool:
    return _engine is not None and _session_factory is not None
