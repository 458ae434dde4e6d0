"""
Pytest Configuration and Fixtures
=================================

Shared fixtures for API tests.

Each test gets its own SQLite database file, so services run with real
transactions, the partial unique index and the optimistic version column.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SMTP_HOST", "")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, List, Tuple
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from carnivals.database import Base
from carnivals.dependencies import get_db
from carnivals.models import Carnival, Club, ClubPlayer, User, UserRole
from carnivals.services.notifications import NotificationDispatcher, get_dispatcher
from main import app


class RecordingDispatcher(NotificationDispatcher):
    """Captures outgoing emails instead of talking to an SMTP relay."""

    def __init__(self):
        super().__init__()
        self.sent: List[Tuple[str, str, str]] = []

    async def send(self, to_email, subject, body) -> bool:
        if not to_email:
            return False
        self.sent.append((to_email, subject, body))
        return True


class FailingDispatcher(NotificationDispatcher):
    """Every send blows up, as a broken relay would."""

    async def send(self, to_email, subject, body) -> bool:
        raise ConnectionError("SMTP relay unreachable")


@pytest_asyncio.fixture(scope="function")
async def session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh schema in a per-test database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'carnivals.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def notifier() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def failing_notifier() -> FailingDispatcher:
    return FailingDispatcher()


@pytest_asyncio.fixture(scope="function")
async def client(session_maker, notifier) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client bound to the test database."""
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """
    Seed the database with test data.

    Creates:
    - 4 clubs: A and B (NSW), D (QLD, primary delegate Jane Doe), X (inactive)
    - delegates for A and B, a plain member of A, an administrator
    - 3 players of club B
    - imported carnival C (NSW, unowned, fees 50 / 10)
    - imported carnival U (no state), manual carnival M (hosted by A)
    """
    now = datetime.now(timezone.utc)

    club_a = Club(
        id=uuid4(), name="Northern Rivers Rugby League", state="NSW",
        contact_person="Alan Archer", contact_email="secretary@northernrivers.example",
    )
    club_b = Club(
        id=uuid4(), name="Coastal Cougars", state="NSW",
        contact_person="Beth Blake", contact_email="admin@cougars.example",
    )
    club_d = Club(
        id=uuid4(), name="Darling Downs Dingoes", state="QLD",
        contact_email="hello@dingoes.example",
    )
    club_x = Club(id=uuid4(), name="Dormant Dolphins", state="NSW", is_active=False)
    db_session.add_all([club_a, club_b, club_d, club_x])
    await db_session.flush()

    delegate_a = User(
        id=uuid4(), first_name="Alan", last_name="Archer", email="alan@northernrivers.example",
        phone_number="0400 000 001", club_id=club_a.id, role=UserRole.PRIMARY_DELEGATE,
    )
    member_a = User(
        id=uuid4(), first_name="Amy", last_name="Adams", email="amy@northernrivers.example",
        club_id=club_a.id, role=UserRole.MEMBER,
    )
    delegate_b = User(
        id=uuid4(), first_name="Beth", last_name="Blake", email="beth@cougars.example",
        phone_number="0400 000 002", club_id=club_b.id, role=UserRole.PRIMARY_DELEGATE,
    )
    jane = User(
        id=uuid4(), first_name="Jane", last_name="Doe", email="jane.doe@dingoes.example",
        phone_number="0400 000 004", club_id=club_d.id, role=UserRole.PRIMARY_DELEGATE,
    )
    delegate_d2 = User(
        id=uuid4(), first_name="Dan", last_name="Dwyer", email="dan@dingoes.example",
        club_id=club_d.id, role=UserRole.PRIMARY_DELEGATE,
        created_at=now + timedelta(days=1),
    )
    admin = User(
        id=uuid4(), first_name="Sam", last_name="Admin", email="sam@carnivals.example",
        role=UserRole.ADMINISTRATOR,
    )
    no_club = User(
        id=uuid4(), first_name="Nick", last_name="Nobody", email="nick@example.com",
        role=UserRole.MEMBER,
    )
    db_session.add_all([delegate_a, member_a, delegate_b, jane, delegate_d2, admin, no_club])
    await db_session.flush()

    players_b = [
        ClubPlayer(id=uuid4(), club_id=club_b.id, first_name=first, last_name="Blake")
        for first in ("Ben", "Bella", "Bruce")
    ]
    db_session.add_all(players_b)

    carnival_c = Carnival(
        id=uuid4(),
        title="Mullumbimby Sevens",
        state="NSW",
        location="Mullumbimby Showground",
        is_manually_entered=False,
        external_import_id="FEED-1001",
        external_sync_timestamp=now - timedelta(days=2),
        organiser_contact_name="Feed Contact",
        organiser_contact_email="organiser@feed.example",
        team_registration_fee=Decimal("50.00"),
        per_player_fee=Decimal("10.00"),
        max_teams=4,
    )
    carnival_u = Carnival(
        id=uuid4(),
        title="Statewide Masters",
        state=None,
        is_manually_entered=False,
        external_import_id="FEED-1002",
        external_sync_timestamp=now - timedelta(days=1),
        organiser_contact_email="masters@feed.example",
    )
    carnival_m = Carnival(
        id=uuid4(),
        title="Northern Rivers Juniors Day",
        state="NSW",
        is_manually_entered=True,
        host_club_id=club_a.id,
        owner_user_id=delegate_a.id,
        team_registration_fee=Decimal("30.00"),
    )
    db_session.add_all([carnival_c, carnival_u, carnival_m])
    await db_session.commit()

    db_session.test_data = {
        "clubs": {"a": club_a.id, "b": club_b.id, "d": club_d.id, "x": club_x.id},
        "users": {
            "delegate_a": delegate_a.id,
            "member_a": member_a.id,
            "delegate_b": delegate_b.id,
            "jane": jane.id,
            "delegate_d2": delegate_d2.id,
            "admin": admin.id,
            "no_club": no_club.id,
        },
        "players_b": [p.id for p in players_b],
        "carnivals": {"c": carnival_c.id, "u": carnival_u.id, "m": carnival_m.id},
    }
    return db_session
