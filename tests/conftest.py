"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own SQLite in-memory engine (StaticPool keeps the
   single connection alive, so every session sees the same database).
2. Tables are created from the models with metadata.create_all.
3. The app's get_db dependency is overridden to hand out sessions bound
   to that engine. Nothing else is mocked — requests go through real
   registration, real JWTs, and real ownership checks.

Env vars are set before the app is imported so the settings singleton,
the module-level engine, and the cached password hasher pick them up.
"""

import os

os.environ.setdefault("POCKETBOOK_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("POCKETBOOK_BCRYPT_ROUNDS", "4")
os.environ.setdefault("POCKETBOOK_ENVIRONMENT", "development")

import uuid  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from pocketbook.db.engine import get_db  # noqa: E402
from pocketbook.db.models import Base  # noqa: E402
from pocketbook.main import app  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite://"
PASSWORD = "secure_password_123"


@pytest_asyncio.fixture()
async def session_factory():
    """Per-test engine with the full schema; disposed afterwards."""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture()
async def file_session_factory(tmp_path):
    """Like session_factory, but over a SQLite file with a real connection pool.

    Learn: Sessions from this factory hold separate connections, so one
    can commit while another is mid-operation, the way two concurrent
    requests would.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pocketbook.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client against the real app, with get_db pointed at the test DB.

    Learn: Each request gets its own session, just like production, so
    state only carries between requests through committed rows.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Helpers ─────────────────────────────────────────────


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


async def register_user(client, email=None, password=PASSWORD, display_name="Test User"):
    """Register through the API and return the response body."""
    r = await client.post(
        "/api/v1/auth/register",
        json={
            "email": email or unique_email(),
            "password": password,
            "display_name": display_name,
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


def bearer(body: dict) -> dict:
    """Authorization header from a register/login response body."""
    return {"Authorization": f"Bearer {body['tokens']['access_token']}"}


@pytest_asyncio.fixture()
async def auth_headers(client):
    """Headers for a freshly registered user."""
    return bearer(await register_user(client))


@pytest_asyncio.fixture()
async def category(client, auth_headers):
    """A category owned by the auth_headers user."""
    r = await client.post(
        "/api/v1/categories",
        json={"name": "Groceries", "color": "#4caf50", "icon": "shopping_cart"},
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    return r.json()
