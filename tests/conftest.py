import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("BILLING_WEBHOOK_SECRET", "test-billing-secret")

from typing import AsyncGenerator, Awaitable, Callable, Dict, Tuple  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.db.schema_check import ensure_tables  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
PASSWORD = "StrongPass123"
BILLING_SECRET = os.environ["BILLING_WEBHOOK_SECRET"]


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """One in-memory database per test; StaticPool keeps every session on the same connection."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await ensure_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Session for direct service calls and assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; each request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


SignupFn = Callable[..., Awaitable[Tuple[dict, Dict[str, str]]]]


@pytest.fixture()
def signup(client: AsyncClient) -> SignupFn:
    """
    Create an account through the API and sign in.

    Returns (signup response body, Authorization headers).
    """

    async def _signup(kind: str, email: str, **fields) -> Tuple[dict, Dict[str, str]]:
        payload = {"email": email, "password": PASSWORD, "confirm_password": PASSWORD}
        payload.update(fields)
        response = await client.post(f"/api/v1/auth/signup/{kind}", json=payload)
        assert response.status_code == 201, response.text
        login = await client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
        assert login.status_code == 200, login.text
        token = login.json()["access_token"]
        return response.json(), {"Authorization": f"Bearer {token}"}

    return _signup


@pytest.fixture()
def school_fields() -> Callable[..., dict]:
    def _fields(name: str = "Lincoln Elementary", **overrides) -> dict:
        fields = {
            "name": name,
            "address": "1 Main St",
            "city": "Springfield",
            "state": "IL",
            "zip": "62701",
            "grades_from": 0,
            "grades_to": 5,
        }
        fields.update(overrides)
        return fields

    return _fields


@pytest.fixture()
def activate(client: AsyncClient) -> Callable[[str], Awaitable[dict]]:
    """Mark a school or district as subscribed via the billing webhook."""

    async def _activate(organization_id: str, event: str = "subscription.activated") -> dict:
        response = await client.post(
            "/api/v1/billing/webhook",
            json={"event": event, "organization_id": organization_id},
            headers={"X-Billing-Secret": BILLING_SECRET},
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _activate
