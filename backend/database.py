"""Database connection and session management."""
import logging
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Cloud Postgres providers require SSL
connect_args = {}
needs_ssl = (
    "amazonaws" in settings.database_url or
    (settings.environment == "production" and "postgresql" in settings.database_url)
)

if needs_ssl:
    connect_args["ssl"] = "require"
    logger.debug("SSL connection enabled (ssl=require)")

engine_kwargs = {
    "echo": settings.environment == "development",
    "future": True,
    "connect_args": connect_args,
    "pool_pre_ping": True,
}

# SQLite uses a static pool per file, pool sizing only applies to server databases
if "sqlite" not in settings.database_url:
    pool_size = max(1, settings.db_pool_size)
    max_overflow = max(0, settings.db_max_overflow)
    if settings.environment == "production":
        pool_size = min(pool_size, 2)
        max_overflow = min(max_overflow, 2)
    engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600)

try:
    engine = create_async_engine(settings.database_url, **engine_kwargs)
    logger.debug("Database engine created successfully")
except Exception as e:
    logger.error(f"Failed to create database engine: {e}")
    raise


def enable_sqlite_foreign_keys(async_engine: AsyncEngine) -> None:
    """Turn on ON DELETE CASCADE / SET NULL handling for SQLite connections."""
    if async_engine.dialect.name != "sqlite":
        return

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


# Dependency for FastAPI
async def get_db():
    """FastAPI dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
