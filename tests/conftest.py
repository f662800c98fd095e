"""
Test fixtures for the auth service test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory: Fresh in-memory SQLite database per test
  - outbox: Records every email the app sends (and can simulate failures)
  - client: Async HTTP test client (unauthenticated)
  - create_user: Signs a user up through the API, optionally with a role
  - authenticated_client: Test client with a regular user's bearer token
  - admin_client: Test client with an ADMIN user's bearer token

Key design decisions:
  - Each test gets a completely fresh database, no state leaks between tests.
  - The session factory behind get_db is pointed at the test engine and
    get_mailer is overridden, so the application code (including get_db
    itself) runs as in production against the test database and outbox.
  - Users are created through the real signup endpoint; roles other than
    "user" are granted directly in the database, the way an operator
    would (see demo/promote_admin.py).
  - The client shares one cookie jar. Signing up or logging in sets the
    "jwt" cookie, so tests that must be anonymous use a fresh `client`.
"""

import os
import re
import smtplib

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("EMAIL_BACKEND", "console")

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from webauth import database
from webauth.database import Base
from webauth.mailer import Mailer, get_mailer
from webauth.main import app
from webauth.models.user import User, UserRole


TEST_DATABASE_URL = "sqlite+aiosqlite://"

RESET_LINK = re.compile(r"/api/v1/users/reset-password/([0-9a-f]+)")


class RecordingTransport:
    """Mail transport that keeps messages in memory instead of sending them."""

    def __init__(self):
        self.messages = []
        self.fail = False

    async def send(self, message):
        if self.fail:
            raise smtplib.SMTPException("relay unavailable")
        self.messages.append(message)

    @property
    def last(self):
        return self.messages[-1]

    def text_of(self, message) -> str:
        return message.get_body(preferencelist=("plain",)).get_content()

    def reset_token(self) -> str:
        """Raw reset token from the most recent password reset email."""
        match = RESET_LINK.search(self.text_of(self.last))
        assert match, "no reset link in the last email"
        return match.group(1)


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    """Session factory bound to the test engine, for direct DB checks."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def outbox():
    return RecordingTransport()


@pytest_asyncio.fixture
async def client(session_factory, outbox, monkeypatch):
    """
    Async HTTP test client with the test database and outbox injected.

    The real get_db runs; only the session factory it opens is swapped
    for one bound to the test engine.
    """
    monkeypatch.setattr(database, "AsyncSessionLocal", session_factory)
    app.dependency_overrides[get_mailer] = lambda: Mailer(outbox, "WebAuth <test@example.com>")

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def create_user(client, session_factory):
    """
    Factory fixture: sign a user up and return their session token.

    Usage:
        token = await create_user("a@example.com", role=UserRole.ADMIN)
    """

    async def _create(
        email: str,
        password: str = "SecurePass123!",
        name: str = "Test User",
        role: UserRole = UserRole.USER,
    ) -> str:
        response = await client.post(
            "/api/v1/users/signup",
            json={
                "name": name,
                "email": email,
                "password": password,
                "passwordConfirm": password,
            },
        )
        assert response.status_code == 201, f"Signup failed: {response.text}"
        token = response.json()["token"]

        if role != UserRole.USER:
            async with session_factory() as session:
                await session.execute(
                    update(User).where(User.email == email).values(role=role)
                )
                await session.commit()

        return token

    return _create


@pytest_asyncio.fixture
async def authenticated_client(client, create_user):
    """Test client authenticated as a regular user via the bearer header."""
    token = await create_user("testuser@example.com")
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest_asyncio.fixture
async def admin_client(client, create_user):
    """
    Test client authenticated as an ADMIN user.

    The role lives on the user record, not in the token, so the token
    from signup is valid for admin routes once the role is granted.
    """
    token = await create_user("admin@example.com", role=UserRole.ADMIN)
    client.headers["Authorization"] = f"Bearer {token}"
    return client
