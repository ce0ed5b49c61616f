"""Pytest configuration and fixtures for the Portfolio API test suite.

Provides:
- In-memory SQLite database, created fresh for every test
- Admin client (real bearer token) and anonymous client
- Disabled rate limiting and cheap bcrypt rounds
- Model factory fixtures for User and Subscriber
"""

from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core import tokens
from app.core.config import settings
from app.core.database import get_async_session
from app.core.rate_limit import limiter
from app.core.security import hash_password
from app.main import app
from app.models.base import Base
from app.models.subscriber import Subscriber, new_subscriber
from app.models.user import User, UserRole, new_user

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TEST_PASSWORD = "CorrectHorse9"
TEST_USERNAME = "siteadmin"
TEST_EMAIL = "admin@example.com"

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests; keep bcrypt fast
# ---------------------------------------------------------------------------
limiter.enabled = False
settings.bcrypt_rounds = 4


# ---------------------------------------------------------------------------
# Per-test database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory database per test.

    StaticPool keeps the single SQLite connection alive, so every session
    (test setup and request handlers alike) sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for test setup and service tests."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def unauthed_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous async test client; only the database is overridden."""

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_async_session] = _override_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_client(
    unauthed_client: AsyncClient,
    admin_user: User,
) -> AsyncClient:
    """Client carrying a real access token for the admin user."""
    token = tokens.issue(tokens.TokenKind.ACCESS, str(admin_user.id))
    unauthed_client.headers["Authorization"] = f"Bearer {token}"
    return unauthed_client


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------------------------
# Model Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def user_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates User instances in the test database."""

    async def _create(
        *,
        username: str = TEST_USERNAME,
        email: str = TEST_EMAIL,
        password: str = TEST_PASSWORD,
        first_name: str = "Site",
        last_name: str = "Admin",
        role: UserRole = UserRole.ADMIN,
        is_active: bool = True,
    ) -> User:
        user = new_user(
            username=username,
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            email_verified=True,
        )
        user.is_active = is_active
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create


@pytest.fixture
def subscriber_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Subscriber instances."""

    async def _create(
        *,
        email: str = "reader@example.com",
        first_name: str | None = "Ada",
        last_name: str | None = None,
        preferences: dict[str, Any] | None = None,
        source: str = "homepage",
        is_active: bool = True,
        email_verified: bool = False,
        verification_lifetime: timedelta = timedelta(hours=24),
    ) -> Subscriber:
        subscriber = new_subscriber(
            email=email,
            verification_lifetime=verification_lifetime,
            first_name=first_name,
            last_name=last_name,
            preferences=preferences,
            source=source,
        )
        subscriber.is_active = is_active
        if email_verified:
            subscriber.email_verified = True
            subscriber.email_verification_token = None
            subscriber.email_verification_expires = None
        db_session.add(subscriber)
        await db_session.commit()
        await db_session.refresh(subscriber)
        return subscriber

    return _create


# ---------------------------------------------------------------------------
# Convenience fixtures (pre-built models)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def admin_user(user_factory: Callable[..., Any]) -> User:
    return await user_factory()


@pytest_asyncio.fixture
async def editor_user(user_factory: Callable[..., Any]) -> User:
    return await user_factory(
        username="contenteditor",
        email="editor@example.com",
        role=UserRole.EDITOR,
    )
