"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite engine (aiosqlite) with the
   schema created from the ORM models. StaticPool keeps the single
   connection alive so the in-memory database survives between queries.
2. get_db is overridden to hand every request the test's session.
3. Nothing is shared between tests, so no cleanup is needed.

Environment variables are set before taskhub is imported so Settings
picks them up (cheap bcrypt rounds, temp upload dir, test secret).
"""

import os
import tempfile

os.environ.setdefault("TASKHUB_ENVIRONMENT", "test")
os.environ.setdefault("TASKHUB_JWT_SECRET", "test-secret")
os.environ.setdefault("TASKHUB_BCRYPT_ROUNDS", "4")
os.environ.setdefault("TASKHUB_UPLOAD_DIR", tempfile.mkdtemp(prefix="taskhub-uploads-"))

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from taskhub.auth.jwt import create_access_token, get_jwt_config  # noqa: E402
from taskhub.db.engine import get_db  # noqa: E402
from taskhub.db.models import ROLE_ADMIN, Base  # noqa: E402
from taskhub.main import app  # noqa: E402
from taskhub.services.user_service import UserService  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(db_engine):
    session = AsyncSession(bind=db_engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()


@pytest_asyncio.fixture()
async def client(db_session):
    """HTTP client with the app's get_db overridden to the test session.

    Learn: Auth is NOT mocked. Tests obtain real tokens through
    /api/auth/register or the admin fixture, so the full gate runs.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Account helpers ─────────────────────────────────────


async def register(client, email, first_name="Test", last_name="User", password="password123"):
    """Register through the API and return (token, user_json)."""
    r = await client.post(
        "/api/auth/register",
        json={
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "password": password,
        },
    )
    assert r.status_code == 201, r.text
    body = r.json()
    return body["token"], body["user"]


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def john(client):
    token, user = await register(client, "john@example.com", "John", "Doe")
    return {"token": token, "user": user, "headers": auth(token)}


@pytest_asyncio.fixture()
async def jane(client):
    token, user = await register(client, "jane@example.com", "Jane", "Doe")
    return {"token": token, "user": user, "headers": auth(token)}


@pytest_asyncio.fixture()
async def admin(client, db_session):
    """Admins can't register over HTTP — create one straight in the store."""
    user = await UserService(db_session).register(
        email="admin@example.com",
        password="adminpass123",
        first_name="Admin",
        last_name="User",
        role=ROLE_ADMIN,
    )
    token = create_access_token(user.id, get_jwt_config())
    return {"token": token, "user": {"id": str(user.id)}, "headers": auth(token)}
