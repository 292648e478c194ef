"""Database engine management and connectivity probes.

The CRM's CRUD schema is owned by the page layer; this module only manages
the shared async engine and the probe query used by health checks and the
database recovery strategy.
"""

import time
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from eviction_crm.core.config import settings
from eviction_crm.core.env_validator import get_env_var
from eviction_crm.observability.logging import get_logger

logger = get_logger(__name__)

# Global engine (initialized lazily)
_engine: Optional[AsyncEngine] = None


def get_database_url() -> str:
    """Get the async database URL."""
    url = get_env_var("DATABASE_URL")
    # Convert postgresql:// to postgresql+asyncpg://
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return url.replace(prefix, "postgresql+asyncpg://", 1)
    return url


def get_engine() -> AsyncEngine:
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        url = get_database_url()
        kwargs = {"echo": settings.DEBUG}
        if not url.startswith("sqlite"):
            kwargs.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_pre_ping=True,
            )
        _engine = create_async_engine(url, **kwargs)
    return _engine


async def init_db() -> None:
    """Initialize database connection pool."""
    # Just get the engine to ensure it's created
    get_engine()


async def close_db() -> None:
    """Close database connections."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


async def probe_db() -> float:
    """
    Run a trivial query against the database.

    Returns:
        Round-trip time in milliseconds

    Raises:
        Any driver error while the database is unreachable
    """
    start = time.perf_counter()
    engine = get_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return (time.perf_counter() - start) * 1000


async def reconnect_db() -> None:
    """Drop pooled connections and verify a fresh one. Raises while unreachable."""
    await close_db()
    await probe_db()
    logger.info("Database connection established successfully")
