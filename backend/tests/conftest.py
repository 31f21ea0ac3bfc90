"""Shared test fixtures for TaskMe backend tests."""

import itertools
import os

# Must be set before any taskme import: settings and the default engine are
# created at import time.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./taskme-test.db")
os.environ.setdefault("PASSWORD_HASH_ITERATIONS", "1000")
os.environ.setdefault("DEFAULT_LOCALE", "ar")
os.environ.setdefault("FCM_PROJECT_ID", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import taskme.models  # noqa: F401
from taskme.api.v1.auth import create_access_token
from taskme.db.base import Base
from taskme.db.session import (
    create_engine_from_url,
    create_session_factory,
    get_db_session,
    get_session_factory,
)
from taskme.exceptions import PushDeliveryError
from taskme.models.user import User
from taskme.services.accounts import AccountService
from taskme.services.changes import ChangeFeed, get_change_feed
from taskme.services.push import PushMessage, get_push_gateway


class FakePushGateway:
    """Records every push; tokens in ``failing_tokens`` are rejected."""

    def __init__(self):
        self.sent: list[PushMessage] = []
        self.failing_tokens: set[str] = set()

    async def send(self, message: PushMessage) -> str | None:
        if message.token in self.failing_tokens:
            raise PushDeliveryError(status=400, reason="invalid registration token")
        self.sent.append(message)
        return f"projects/test/messages/{len(self.sent)}"

    def sent_to(self, token: str) -> list[PushMessage]:
        return [m for m in self.sent if m.token == token]


@pytest_asyncio.fixture
async def engine(tmp_path: Path):
    """Per-test SQLite database with the full schema."""
    engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def push_gateway() -> FakePushGateway:
    return FakePushGateway()


@pytest.fixture
def make_user(db):
    """Factory registering users with sequential e-mails."""
    counter = itertools.count(1)

    async def _make(
        name: str | None = None,
        email: str | None = None,
        push_token: str | None = None,
    ) -> User:
        n = next(counter)
        accounts = AccountService(db)
        user = await accounts.register(
            email=email or f"user{n}@example.com",
            password="secret123",
            name=name or f"User {n}",
            phone=f"+96650000{n:04d}",
        )
        if push_token:
            await accounts.register_push_token(user, push_token)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User, locale: str | None = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {create_access_token(user.id)}"}
        if locale:
            headers["Accept-Language"] = locale
        return headers

    return _headers


@pytest.fixture
def app(session_factory, feed, push_gateway):
    """App wired to the per-test database, change feed and fake push gateway."""
    from taskme.main import create_app

    application = create_app()

    async def override_db_session() -> AsyncGenerator:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = override_db_session
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    application.dependency_overrides[get_change_feed] = lambda: feed
    application.dependency_overrides[get_push_gateway] = lambda: push_gateway
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient over the ASGI app"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
