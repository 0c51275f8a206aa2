"""
Pytest fixtures for test database, client, and authentication.

Runs against an in-memory SQLite database (aiosqlite) shared through a
StaticPool, with tables created and dropped per test for isolation.
Redis is disabled; the change feed runs in-process.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"
os.environ.setdefault("CHANGE_FEED_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.pop("RESEND_API_KEY", None)

from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from maddi.main import app
from maddi.api.deps import get_outbox
from maddi.core import dates
from maddi.core.security import create_access_token, load_caller, CallerContext
from maddi.db.base import Base
from maddi.db.session import get_db
from maddi.models import AdminUser, Billboard, Booking, User
from maddi.services.outbox import Outbox

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


class RecordingSender:
    """Email sink that keeps messages instead of calling Resend."""

    def __init__(self):
        self.sent = []

    async def __call__(self, message):
        self.sent.append(message)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def outbox() -> Outbox:
    """Outbox whose notifications land in the test database."""
    return Outbox(session_factory=TestSessionLocal)


@pytest.fixture
def sent_emails(monkeypatch) -> RecordingSender:
    sender = RecordingSender()
    original = Outbox.dispatch

    async def dispatch(self, feed=None, **_):
        await original(self, feed=feed, sender=sender)

    monkeypatch.setattr(Outbox, "dispatch", dispatch)
    return sender


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, sent_emails) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client that overrides the DB and outbox dependencies.

    Each request gets its own session on the shared test connection, like
    `get_db` in production, so a rolled-back request never expires the
    fixtures held by `db_session`.
    """

    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_outbox] = lambda: Outbox(session_factory=TestSessionLocal)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _user(db: AsyncSession, email: str, user_type: str, **extra) -> User:
    user = User(email=email, user_type=user_type, is_active=True, **extra)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def owner(db_session: AsyncSession) -> User:
    return await _user(db_session, "owner@example.com", "owner", full_name="Olga Owner")


@pytest_asyncio.fixture
async def business(db_session: AsyncSession) -> User:
    return await _user(db_session, "ads@example.com", "business", company_name="Tacos El Güero")


@pytest_asyncio.fixture
async def other_business(db_session: AsyncSession) -> User:
    return await _user(db_session, "rival@example.com", "business", company_name="Rival SA")


@pytest_asyncio.fixture
async def super_admin(db_session: AsyncSession) -> User:
    user = await _user(db_session, "root@maddi.mx", "owner", full_name="Root")
    db_session.add(AdminUser(user_id=user.id, role="super_admin", email=user.email))
    await db_session.commit()
    return user


def headers_for(user: User) -> dict:
    """Authorization headers with Bearer token."""
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest.fixture
def owner_headers(owner: User) -> dict:
    return headers_for(owner)


@pytest.fixture
def business_headers(business: User) -> dict:
    return headers_for(business)


async def caller_for(db: AsyncSession, user: User) -> CallerContext:
    return await load_caller(db, user.id)


async def make_billboard(db: AsyncSession, owner: User, billboard_type: str = "static", **extra) -> Billboard:
    billboard = Billboard(
        owner_id=owner.id,
        title=extra.pop("title", "Periférico Sur 4020"),
        address="Periférico Sur 4020",
        city=extra.pop("city", "Ciudad de México"),
        state="CDMX",
        latitude=19.30,
        longitude=-99.19,
        width_m=12.0,
        height_m=6.0,
        billboard_type=billboard_type,
        price_per_month=extra.pop("price_per_month", Decimal("15000.00")),
        is_available=True,
        version=1,
        **extra,
    )
    db.add(billboard)
    await db.commit()
    await db.refresh(billboard)
    return billboard


@pytest_asyncio.fixture
async def billboard(db_session: AsyncSession, owner: User) -> Billboard:
    """A static billboard owned by `owner`."""
    return await make_billboard(db_session, owner)


@pytest_asyncio.fixture
async def digital_billboard(db_session: AsyncSession, owner: User) -> Billboard:
    return await make_billboard(db_session, owner, billboard_type="digital", title="Pantalla Reforma")


async def make_booking(
    db: AsyncSession,
    billboard: Billboard,
    business: User,
    start_offset: int,
    end_offset: int,
    status: str = "pending",
) -> Booking:
    """Insert a booking directly, with dates relative to today."""
    today = dates.today()
    booking = Booking(
        billboard_id=billboard.id,
        business_id=business.id,
        start_date=today + timedelta(days=start_offset),
        end_date=today + timedelta(days=end_offset),
        total_price=Decimal("15000.00"),
        status=status,
    )
    db.add(booking)
    await db.commit()
    await db.refresh(booking)
    return booking


def day(offset: int) -> str:
    return (dates.today() + timedelta(days=offset)).isoformat()
