"""
Pytest Configuration for Worker Tests
======================================

Fixtures and configuration for testing the worker module.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from carnivals.database import Base
from carnivals.models import Carnival, Club


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires database)"
    )


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'worker.db'}"


@pytest.fixture
def session_factory(database_url):
    """An async ``get_session`` replacement bound to a per-test database."""
    @asynccontextmanager
    async def get_session():
        engine = create_async_engine(database_url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
        try:
            async with maker() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        finally:
            await engine.dispose()

    return get_session


@pytest_asyncio.fixture
async def db_session(database_url) -> AsyncGenerator[AsyncSession, None]:
    engine = create_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with maker() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def sample_club() -> Club:
    return Club(id=uuid4(), name="Byron Bay Bulls", state="NSW", contact_email="bulls@example.com")


@pytest.fixture
def imported_carnival() -> Carnival:
    return Carnival(
        id=uuid4(),
        title="Ballina Beach Carnival",
        state="NSW",
        is_manually_entered=False,
        external_import_id="FEED-2001",
        external_sync_timestamp=datetime.now(timezone.utc) - timedelta(days=3),
        organiser_contact_email="feed-owner@example.com",
        team_registration_fee=Decimal("40.00"),
        per_player_fee=Decimal("5.00"),
    )
