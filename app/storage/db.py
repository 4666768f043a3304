"""Database engine and session configuration."""

import os

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.logging import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def _get_database_url() -> str:
    """Get database URL from environment or config."""
    # Environment wins so Alembic and tests can point elsewhere
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    from app.config import config
    return config.database_url


def _engine_options(database_url: str) -> dict:
    """Driver-specific engine options."""
    options: dict = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # Concurrent writers wait on the file lock instead of failing at once
        options["connect_args"] = {"timeout": 30}
    return options


def get_engine() -> AsyncEngine:
    """Get or create the database engine.

    Returns:
        AsyncEngine instance configured for the application
    """
    global _engine

    if _engine is None:
        from app.config import config

        database_url = _get_database_url()
        logger.info(f"Creating database engine for {database_url}")
        _engine = create_async_engine(
            database_url,
            echo=config.log_level == "DEBUG",
            **_engine_options(database_url),
        )

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory.

    Returns:
        Session factory for creating database sessions
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )

    return _session_factory


async def create_schema(engine: AsyncEngine | None = None) -> None:
    """Create missing tables (development and tests; production uses Alembic)."""
    # Import models so every table is registered on the metadata
    from app.storage import models  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_engine() -> None:
    """Close the database engine and dispose connections."""
    global _engine, _session_factory

    if _engine is not None:
        logger.info("Closing database engine")
        await _engine.dispose()
        _engine = None
        _session_factory = None
