"""
Shared test fixtures for the Shop Admin test suite.

Async throughout (aiosqlite + AsyncSession); every test gets fresh tables
and a freshly seeded permission catalogue.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
# Cheapest bcrypt cost so hashing does not dominate the run
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["BACKUP_CODE_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_ON_STARTUP"] = "false"
# CORS fix (JSON format)
os.environ["CORS_ORIGINS"] = '["*"]'

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shopadmin.api.v1.deps import get_db
from shopadmin.core.security import get_password_hash
from shopadmin.core.token_blacklist import token_blacklist
from shopadmin.db.base import Base
from shopadmin.main import app
from shopadmin.models.user import User
from shopadmin.services.permissions import seed_permissions

API = "/api/v1"
DEFAULT_PASSWORD = "Str0ng!Passw0rd"

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables and seed permissions before each test; drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with TestingSessionLocal() as session:
        await seed_permissions(session)
    token_blacklist.clear()

    yield

    token_blacklist.clear()
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Factories ───────────────────────────────────────────────────────
@pytest.fixture
def make_user(db_session: AsyncSession):
    """Insert a user directly; returns the persisted row."""

    async def _make(
        email: str,
        role: str = "user",
        password: str = DEFAULT_PASSWORD,
        **fields,
    ) -> User:
        user = User(
            first_name=fields.pop("first_name", "Test"),
            last_name=fields.pop("last_name", "User"),
            email=email,
            hashed_password=get_password_hash(password),
            role=role,
            is_active=fields.pop("is_active", True),
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def login(async_client: AsyncClient):
    """Sign in over HTTP; returns the response body."""

    async def _login(email: str, password: str = DEFAULT_PASSWORD, **extra) -> dict:
        resp = await async_client.post(
            f"{API}/auth/login", json={"email": email, "password": password, **extra}
        )
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _login


@pytest.fixture
def auth_headers(login):
    """Sign in and build bearer + session headers."""

    async def _headers(email: str, password: str = DEFAULT_PASSWORD) -> dict[str, str]:
        body = await login(email, password)
        return {
            "Authorization": f"Bearer {body['access_token']}",
            "X-Session-Token": body["session_token"],
        }

    return _headers
