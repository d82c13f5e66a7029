"""
tests/conftest.py
Shared fixtures: in-memory SQLite database, HTTP client with dependency
overrides, an in-memory Redis stand-in, and seeded users/rides.
"""

import os

# Settings are read at import time, so configure the environment first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config.database import Base, get_db
from config.redis_client import get_redis
from main import app
from shared.models.models import (
    Booking,
    BookingStatus,
    Ride,
    RideStatus,
    User,
    UserRole,
)
from shared.utils.security import create_access_token, hash_password

TEST_PASSWORD = "secret123"
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# ── Helpers ───────────────────────────────────────────────────

def auth_headers(user: User) -> dict:
    token, _ = create_access_token(user.id, UserRole(user.role).value, user.email)
    return {"Authorization": f"Bearer {token}"}


def location(address: str, lon: float = 77.59, lat: float = 12.97) -> dict:
    return {"address": address, "coordinates": [lon, lat]}


def make_user(role: UserRole, name: str, email: str, phone: str, **kwargs) -> User:
    return User(
        id=uuid.uuid4(),
        name=name,
        email=email,
        phone=phone,
        password_hash=_PASSWORD_HASH,
        role=role,
        **kwargs,
    )


def make_ride(driver: User, seats: int = 3, fare: str = "150.00", **kwargs) -> Ride:
    fields = {
        "start_location": location("MG Road, Bengaluru"),
        "end_location": location("Kempegowda Airport", 77.71, 13.20),
        "departure_time": datetime.now(timezone.utc) + timedelta(days=2),
        "status": RideStatus.SCHEDULED,
    }
    fields.update(kwargs)
    return Ride(
        id=uuid.uuid4(),
        driver_id=driver.id,
        total_seats=seats,
        available_seats=fields.pop("available_seats", seats),
        fare=Decimal(fare),
        **fields,
    )


def make_booking(ride: Ride, rider: User, seats: int = 1, status=BookingStatus.PENDING) -> Booking:
    return Booking(
        id=uuid.uuid4(),
        ride_id=ride.id,
        rider_id=rider.id,
        seats=seats,
        pickup_location=location("MG Road"),
        drop_location=location("Airport Terminal 1"),
        total_fare=Decimal(ride.fare) * seats,
        status=status,
    )


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the deny-list and rate limiter."""

    def __init__(self):
        self.store = {}
        self.setex = AsyncMock(side_effect=self._setex)
        self.exists = AsyncMock(side_effect=self._exists)
        self.incr = AsyncMock(side_effect=self._incr)
        self.expire = AsyncMock(return_value=True)
        self.ping = AsyncMock(return_value=True)

    async def _setex(self, key, ttl, value):
        self.store[key] = value
        return True

    async def _exists(self, key):
        return 1 if key in self.store else 0

    async def _incr(self, key):
        self.store[key] = int(self.store.get(key, 0)) + 1
        return self.store[key]


# ── Core fixtures ─────────────────────────────────────────────

@pytest_asyncio.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def redis():
    return FakeRedis()


@pytest_asyncio.fixture
async def client(db: AsyncSession, redis: FakeRedis):
    async def _override_get_db():
        try:
            yield db
        except Exception:
            await db.rollback()
            raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_redis] = lambda: redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Users ─────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def rider(db: AsyncSession) -> User:
    user = make_user(UserRole.RIDER, "Riya Rider", "riya@example.com", "9876500001")
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def second_rider(db: AsyncSession) -> User:
    user = make_user(UserRole.RIDER, "Sam Second", "sam@example.com", "9876500002")
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def driver(db: AsyncSession) -> User:
    user = make_user(
        UserRole.DRIVER,
        "Dev Driver",
        "dev@example.com",
        "9876500003",
        driver_details={"car_model": "Swift", "license_plate": "KA01AB1234"},
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def other_driver(db: AsyncSession) -> User:
    user = make_user(UserRole.DRIVER, "Omar Other", "omar@example.com", "9876500004")
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def admin_user(db: AsyncSession) -> User:
    user = make_user(UserRole.ADMIN, "Ada Admin", "ada@example.com", "9876500005")
    db.add(user)
    await db.commit()
    return user


# ── Rides / bookings ──────────────────────────────────────────

@pytest_asyncio.fixture
async def ride(db: AsyncSession, driver: User) -> Ride:
    """Scheduled ride with 3 seats at 150.00 per seat."""
    r = make_ride(driver)
    db.add(r)
    await db.commit()
    return r


@pytest_asyncio.fixture
async def pending_booking(db: AsyncSession, ride: Ride, rider: User) -> Booking:
    """Two-seat pending booking by `rider` on `ride`."""
    b = make_booking(ride, rider, seats=2)
    db.add(b)
    await db.commit()
    return b
