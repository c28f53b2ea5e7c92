"""
Database Session Management
TradeJournal Backend

Provides async database connection with:
- Connection pooling
- Session factories bound to any engine (tests, scripts)
- Health check capabilities
"""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy import text
from loguru import logger

from tradejournal.core.config import settings


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "echo": settings.is_development and settings.DEBUG,
        "future": True,
        "pool_pre_ping": True,
    }
    # SQLite uses its own pool classes and rejects sizing arguments
    if not url.startswith("sqlite"):
        pool = settings.db
        options.update(
            pool_size=pool.pool_size,
            max_overflow=pool.max_overflow,
            pool_timeout=pool.pool_timeout,
            pool_recycle=pool.pool_recycle,
        )
    return options


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine for the given URL."""
    return create_async_engine(url, **_engine_options(url))


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory with the settings every unit of work relies on."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create async engine with connection pooling
engine = build_engine(settings.DATABASE_URL)

# Create session factory
AsyncSessionLocal = build_session_factory(engine)


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """
    Initialize database tables.
    
    Note: In production, use Alembic migrations instead.
    """
    from tradejournal.db.base import Base
    # Import models module to register all models with Base
    from tradejournal.db import models  # noqa: F401
    
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


class DatabaseService:
    """
    Database service for application-level operations.
    
    Provides connectivity health checks.
    """
    
    _instance: Optional["DatabaseService"] = None
    
    def __new__(cls) -> "DatabaseService":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance
    
    async def health_check(self) -> bool:
        """
        Check database connectivity.
        
        Returns True if database is accessible.
        """
        try:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            return False
