"""
Pytest fixtures for test database, client, and authentication.

Runs against a throwaway SQLite file (aiosqlite) unless TEST_DATABASE_URL
points somewhere else. Tables are created and dropped around every test for
isolation. Settings are read at import time, so the environment is prepared
before anything from `app` is imported.
"""

import os
import tempfile
from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator, Optional

_db_file = os.path.join(tempfile.mkdtemp(prefix="bus_booking_"), "test.db")
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{_db_file}")

os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["REDIS_ENABLED"] = "false"
os.environ["SEAT_LOCK_STRATEGY"] = "local"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_unit"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.main import app  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.core.security import create_access_token, hash_password  # noqa: E402
from app.models.bus import Bus  # noqa: E402
from app.models.schedule import Schedule  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services import strategy_factory  # noqa: E402
from app.services.interfaces.payment_gateway import PaymentGateway, PaymentIntent  # noqa: E402
from app.services.payment_service import get_confirmation_gateway, get_payment_gateway  # noqa: E402

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


class FakePaymentGateway(PaymentGateway):
    """In-memory stand-in for Stripe. Intents succeed unless a test says otherwise."""

    def __init__(self):
        self.intents: dict[str, PaymentIntent] = {}
        self.intents_by_key: dict[str, PaymentIntent] = {}
        self._counter = 0

    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        if idempotency_key in self.intents_by_key:
            return self.intents_by_key[idempotency_key]
        self._counter += 1
        intent_id = f"pi_test_{self._counter}"
        intent = PaymentIntent(
            id=intent_id,
            amount=amount,
            currency=currency,
            status="requires_payment_method",
            client_secret=f"{intent_id}_secret",
            metadata=dict(metadata),
        )
        self.intents[intent_id] = intent
        if idempotency_key:
            self.intents_by_key[idempotency_key] = intent
        return intent

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        return self.intents[intent_id]

    def add_intent(self, intent_id: str, booking_id: int, amount: int, status: str = "succeeded", currency: str = "usd") -> None:
        self.intents[intent_id] = PaymentIntent(
            id=intent_id,
            amount=amount,
            currency=currency,
            status=status,
            metadata={"booking_id": str(booking_id)},
        )


@pytest.fixture(autouse=True)
def fresh_seat_lock():
    """Each test gets its own lock registry."""
    strategy_factory._strategy = None
    yield
    strategy_factory._strategy = None


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
def session_factory():
    """Independent sessions on the test database, for concurrent writers."""
    return TestSessionLocal


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, payment_gateway: FakePaymentGateway) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB and payment dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_confirmation_gateway] = lambda: payment_gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db: AsyncSession, name: str, email: str, role: str = "user") -> User:
    user = User(
        name=name,
        email=email,
        hashed_password=hash_password("testpassword123"),
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def _headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Test User", "test@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Other User", "other@example.com")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Admin", "admin@example.com", role="admin")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return _headers_for(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return _headers_for(other_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return _headers_for(admin_user)


@pytest_asyncio.fixture
async def test_bus(db_session: AsyncSession) -> Bus:
    """A 40-seat AC bus."""
    bus = Bus(
        name="Night Rider",
        operator="Test Travels",
        bus_type="AC",
        total_seats=40,
        amenities=["wifi", "charging"],
    )
    db_session.add(bus)
    await db_session.commit()
    await db_session.refresh(bus)
    return bus


@pytest_asyncio.fixture
async def test_schedule(db_session: AsyncSession, test_bus: Bus) -> Schedule:
    """Pune to Mumbai, fare 20.00, departing in 30 days."""
    schedule = Schedule(
        bus_id=test_bus.id,
        source="Pune",
        destination="Mumbai",
        departure_time=datetime.now(timezone.utc) + timedelta(days=30),
        fare=20,
    )
    db_session.add(schedule)
    await db_session.commit()
    await db_session.refresh(schedule)
    return schedule


@pytest_asyncio.fixture
async def soon_schedule(db_session: AsyncSession, test_bus: Bus) -> Schedule:
    """Departs in 2 hours, inside the cancellation cutoff."""
    schedule = Schedule(
        bus_id=test_bus.id,
        source="Pune",
        destination="Nashik",
        departure_time=datetime.now(timezone.utc) + timedelta(hours=2),
        fare=15,
    )
    db_session.add(schedule)
    await db_session.commit()
    await db_session.refresh(schedule)
    return schedule
