import os
from collections.abc import AsyncGenerator
from uuid import UUID

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./petcare_test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-for-tests-only")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test-razorpay-secret")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from petcare.core.identity import ActingUser
from petcare.database import Database
from petcare.dependencies import get_clock
from petcare.main import app
from petcare.services.payment_service import PaymentReconciler
from tests.factories import (
    TEST_PAYMENT_SECRET,
    create_pet,
    create_profile,
    create_vet,
    fixed_clock,
)


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Fresh schema per test on a throwaway SQLite file unless TEST_DATABASE_URL is set."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    db = Database(url)
    db.connect()
    await db.drop_all()
    await db.create_all()

    yield db

    await db.drop_all()
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with database.session() as session:
        yield session


@pytest_asyncio.fixture
async def owner(db_session: AsyncSession) -> ActingUser:
    return await create_profile(db_session, full_name="Pet Owner")


@pytest_asyncio.fixture
async def stranger(db_session: AsyncSession) -> ActingUser:
    return await create_profile(db_session, full_name="Someone Else")


@pytest_asyncio.fixture
async def vet(db_session: AsyncSession) -> ActingUser:
    return await create_vet(db_session)


@pytest_asyncio.fixture
async def pet_id(db_session: AsyncSession, owner: ActingUser) -> UUID:
    return await create_pet(db_session, owner)


@pytest.fixture
def reconciler() -> PaymentReconciler:
    return PaymentReconciler(TEST_PAYMENT_SECRET, clock=fixed_clock)


@pytest_asyncio.fixture
async def client(
    database: Database,
    reconciler: PaymentReconciler,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client wired to the test database."""
    app.state.db = database
    app.state.cache = None
    app.state.payment_reconciler = reconciler
    app.dependency_overrides[get_clock] = lambda: fixed_clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
