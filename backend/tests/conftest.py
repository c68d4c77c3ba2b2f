"""
Test configuration and fixtures for BizPulse backend tests.
"""
import os
import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict, Optional, Tuple
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.main import app
from app.db.base import Base, get_db
from app.core.security import get_password_hash, create_access_token
from app.models.user import User
from app.models.metric_value import MetricActualMonthly, MetricTargetMonthly
from app.api.v1.okr.deps import get_response_cache, get_clock
from app.services.metric_catalog import build_default_catalog
from app.services.okr_registry import build_default_registry
from app.services.response_cache import InMemoryResponseCache


# Use a file-based SQLite DB to avoid :memory: multiple-connection issues
# with SQLAlchemy + aiosqlite (each new connection would see an empty DB).
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

# Mid-April 2026: current quarter is Q2, YTD covers Jan..Apr
AS_OF = datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic seconds that only move when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TickingClock:
    """Datetime clock that moves one second per call, so creation order is stable."""

    def __init__(self, start: datetime = AS_OF):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
    # Clean up test database file
    try:
        os.remove("./test.db")
    except OSError:
        pass


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ticking_clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def response_cache(fake_clock: FakeClock) -> InMemoryResponseCache:
    """A fresh cache per test with a controllable clock."""
    return InMemoryResponseCache(default_ttl=300, max_entries=100, clock=fake_clock)


@pytest.fixture
def catalog():
    return build_default_catalog()


@pytest.fixture
def registry(catalog):
    return build_default_registry(catalog)


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    response_cache: InMemoryResponseCache,
    ticking_clock: TickingClock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session, cache and clock overrides."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_response_cache] = lambda: response_cache
    app.dependency_overrides[get_clock] = lambda: ticking_clock
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    user = User(
        email="testuser@example.com",
        name="Test User",
        password_hash=get_password_hash("TestPass123"),
        is_active=True,
        is_admin=False,
        created=datetime.now(timezone.utc),
        updated=datetime.now(timezone.utc),
    )
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession) -> User:
    """Create an admin user."""
    user = User(
        email="admin@example.com",
        name="Admin User",
        password_hash=get_password_hash("AdminPass123"),
        is_active=True,
        is_admin=True,
        created=datetime.now(timezone.utc),
        updated=datetime.now(timezone.utc),
    )
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def test_user_token(test_user: User) -> str:
    """Create an access token for the test user."""
    return create_access_token(subject=test_user.id)


@pytest_asyncio.fixture
async def auth_headers(test_user_token: str) -> dict:
    """Create authorization headers."""
    return {"Authorization": f"Bearer {test_user_token}"}


@pytest_asyncio.fixture
async def admin_headers(test_admin: User) -> dict:
    """Create authorization headers for the admin user."""
    return {"Authorization": f"Bearer {create_access_token(subject=test_admin.id)}"}


class MetricSeeder:
    """Inserts monthly target/actual rows from {"YYYY-MM": value} maps."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _add(self, model, metric_key: str, values: Dict[str, float],
                   dimension: Optional[Tuple[str, str]] = None) -> None:
        for month, value in values.items():
            year, month_number = (int(part) for part in month.split("-"))
            self.db_session.add(model(
                year=year,
                month=month_number,
                metric_key=metric_key,
                dimension_key=dimension[0] if dimension else None,
                dimension_value=dimension[1] if dimension else None,
                value=Decimal(str(value)),
            ))
        await self.db_session.flush()

    async def actuals(self, metric_key, values, dimension=None) -> None:
        await self._add(MetricActualMonthly, metric_key, values, dimension)

    async def targets(self, metric_key, values, dimension=None) -> None:
        await self._add(MetricTargetMonthly, metric_key, values, dimension)


@pytest.fixture
def seed(db_session: AsyncSession) -> MetricSeeder:
    return MetricSeeder(db_session)
