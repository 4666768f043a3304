"""Pytest configuration and shared fixtures."""

import os

# Set test environment variables before any imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_whatnext.db"
os.environ["JOBS_ENABLED"] = "false"
os.environ["LLM_ENABLED"] = "false"
os.environ["ADMIN_TOKEN"] = "test-admin-token"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.storage import Base, seed_catalog


class FakeClock:
    """Manually advanced time source (epoch seconds)."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def engine(tmp_path):
    """Create test database engine."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test_whatnext.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def catalog(session):
    """Session over a database holding the default question catalog."""
    await seed_catalog(session)
    return session
