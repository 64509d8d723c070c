"""
Shared pytest fixtures.

Every test gets a fresh in-memory SQLite database.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pointwise.infrastructure.local.database import Base
from pointwise.infrastructure.local.task_repository import SqliteTaskRepository
from pointwise.infrastructure.local.user_repository import SqliteUserRepository

# Monday
FIXED_NOW = datetime(2025, 3, 17, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def task_repo(session_factory):
    return SqliteTaskRepository(session_factory=session_factory)


@pytest.fixture
def user_repo(session_factory):
    return SqliteUserRepository(session_factory=session_factory)


@pytest.fixture
def test_user_id():
    return "test_user"


@pytest.fixture
def fixed_now():
    return FIXED_NOW
