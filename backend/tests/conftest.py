"""
Pytest fixtures for test database, client, and identity tokens.

Each test gets a fresh SQLite database file (TEST_DATABASE_URL overrides it,
e.g. to run against PostgreSQL). The HTTP client opens one session per
request, like the real get_db dependency, so tests see committed state only.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from travel_booking.main import app
from travel_booking.db.base import Base
from travel_booking.db.session import get_db
from travel_booking.core.security import create_access_token
from travel_booking.models.trip import Trip
from travel_booking.schemas.trip import TripCreate
from travel_booking.schemas.user import CurrentUser, ROLE_ADMINISTRATOR, ROLE_CUSTOMER
from travel_booking.services.trip_service import create_trip

CUSTOMER_ID = 1
OTHER_CUSTOMER_ID = 2
ADMIN_ID = 99


@pytest_asyncio.fixture
async def engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    test_engine = create_async_engine(url, echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def _headers(user_id: int, role: str) -> dict:
    token = create_access_token(data={"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def customer() -> CurrentUser:
    return CurrentUser(id=CUSTOMER_ID, role=ROLE_CUSTOMER)


@pytest_asyncio.fixture
async def other_customer() -> CurrentUser:
    return CurrentUser(id=OTHER_CUSTOMER_ID, role=ROLE_CUSTOMER)


@pytest_asyncio.fixture
async def admin() -> CurrentUser:
    return CurrentUser(id=ADMIN_ID, role=ROLE_ADMINISTRATOR)


@pytest_asyncio.fixture
async def auth_headers() -> dict:
    return _headers(CUSTOMER_ID, ROLE_CUSTOMER)


@pytest_asyncio.fixture
async def other_auth_headers() -> dict:
    return _headers(OTHER_CUSTOMER_ID, ROLE_CUSTOMER)


@pytest_asyncio.fixture
async def admin_headers() -> dict:
    return _headers(ADMIN_ID, ROLE_ADMINISTRATOR)


async def make_trip(
    db: AsyncSession,
    days_ahead: int = 1,
    total_seats: int = 2,
    price: str = "50",
    origin: str = "New York",
    destination: str = "Boston",
    departure_time: str = "09:00",
) -> Trip:
    return await create_trip(
        db,
        TripCreate(
            origin=origin,
            destination=destination,
            departure_date=date.today() + timedelta(days=days_ahead),
            departure_time=departure_time,
            price=Decimal(price),
            total_seats=total_seats,
        ),
    )


@pytest_asyncio.fixture
async def trip_factory(db_session: AsyncSession):
    async def _make(**kwargs) -> Trip:
        return await make_trip(db_session, **kwargs)

    return _make


@pytest_asyncio.fixture
async def trip(db_session: AsyncSession) -> Trip:
    """Two seats, price 50, departing tomorrow."""
    return await make_trip(db_session)


@pytest_asyncio.fixture
async def past_trip(db_session: AsyncSession) -> Trip:
    """Departed yesterday."""
    return await make_trip(
        db_session, days_ahead=-1, total_seats=4, price="30", origin="Atlanta", destination="Miami"
    )
