"""Async engine, session factory and database health check.

Services never share a session across an upstream call: they take the
factory from get_session_factory() and open one short session per step.
"""
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine

from depot_quotes.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def build_engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for create_async_engine().

    Pool sizing and asyncpg server settings only apply to PostgreSQL; the
    SQLite engine used by the tests rejects them.
    """
    options: dict[str, Any] = {"echo": settings.database_echo}
    if make_url(settings.database_url).get_backend_name() != "postgresql":
        return options

    options["pool_size"] = settings.database_pool_size
    options["max_overflow"] = settings.database_max_overflow
    options["pool_pre_ping"] = settings.database_pool_pre_ping
    options["pool_recycle"] = settings.database_pool_recycle
    options["connect_args"] = {
        "server_settings": {"application_name": settings.app_name},
        "command_timeout": settings.database_command_timeout,
    }
    return options


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.database_url, **build_engine_options(settings))


engine = create_engine_from_settings(get_settings())

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)

# Register every table on Base.metadata
from depot_quotes.models import Base  # noqa: E402,F401


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency returning the process-wide session factory.

    Usage inside a service:
        async with session_factory() as session:
            ...
            await session.commit()
    """
    return AsyncSessionLocal


async def check_db_health() -> dict[str, str]:
    """Run ``SELECT 1`` and report the outcome for the health endpoint.

    Connection errors are reported as unhealthy, never raised; the message
    does not include the database URL.
    """
    try:
        async with AsyncSessionLocal() as session:
            value = (await session.execute(text("SELECT 1"))).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "message": "Database connection failed"}

    if value != 1:
        return {"status": "unhealthy", "message": "Unexpected health query result"}
    return {"status": "healthy", "message": "Database connection successful"}


async def close_db() -> None:
    """Dispose the engine's pool on shutdown."""
    await engine.dispose()
    logger.info("Database engine disposed")
