"""
Shared fixtures for server tests.

Each test gets a fresh in-memory SQLite database (aiosqlite + StaticPool so
every session sees the same connection) and a mocked Redis. The app's session
and audit-recorder dependencies are pointed at that database.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import toolgate.models  # noqa: F401  (registers tables)
from toolgate.core.audit import AuditRecorder, drain, get_audit_recorder
from toolgate.core.database import get_session
from toolgate.main import app
from toolgate.models.membership import Membership

TEST_DATABASE_URL = "sqlite+aiosqlite://"
DEFAULT_PASSWORD = "correct-horse-battery"


def make_session_context(factory):
    """Mirror of ``get_session_context`` bound to the test database."""

    @asynccontextmanager
    async def session_context():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return session_context


@pytest.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def session_context(session_factory):
    return make_session_context(session_factory)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as s:
        yield s


@pytest.fixture(autouse=True)
def mock_redis():
    redis = AsyncMock()
    redis.exists.return_value = 0
    with patch("toolgate.core.auth.get_redis", return_value=redis):
        yield redis


@pytest.fixture
async def client(session_factory, session_context) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_audit_recorder] = lambda: AuditRecorder(
        session_factory=session_context
    )

    # Audit rows are written in the background; settle them before the caller looks
    async def settle_audit(response):
        await drain()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        event_hooks={"response": [settle_audit]},
    ) as ac:
        yield ac
    await drain()
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class Actor:
    """A registered user and the headers that authenticate as them."""

    def __init__(self, user_id: uuid.UUID, email: str, token: str):
        self.user_id = user_id
        self.email = email
        self.token = token
        self.headers = {"Authorization": f"Bearer {token}"}


async def register(client: AsyncClient, email: str, full_name: Optional[str] = None) -> Actor:
    resp = await client.post(
        "/auth/register",
        json={"email": email, "password": DEFAULT_PASSWORD, "full_name": full_name},
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    return Actor(uuid.UUID(data["user_id"]), data["email"], data["token"])


async def create_org(client: AsyncClient, owner: Actor, slug: str = "acme", name: str = "Acme") -> uuid.UUID:
    resp = await client.post("/api/v1/orgs", json={"name": name, "slug": slug}, headers=owner.headers)
    assert resp.status_code == 201, resp.text
    return uuid.UUID(resp.json()["id"])


async def add_member(session_factory, org_id: uuid.UUID, actor: Actor, role: str = "MEMBER") -> None:
    """Insert a membership directly, bypassing the invitation flow."""
    async with session_factory() as s:
        s.add(Membership(organization_id=org_id, user_id=actor.user_id, role=role))
        await s.commit()


@pytest.fixture
async def acme(client, session_factory):
    """Org 'acme' with an owner, an admin and a member."""
    owner = await register(client, "owner@acme.com", "Olive Owner")
    admin = await register(client, "admin@acme.com", "Adam Admin")
    member = await register(client, "member@acme.com", "Mia Member")
    org_id = await create_org(client, owner)
    await add_member(session_factory, org_id, admin, "ADMIN")
    await add_member(session_factory, org_id, member, "MEMBER")
    return {"org_id": org_id, "owner": owner, "admin": admin, "member": member}
