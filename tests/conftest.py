"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

from conclave.auth.session import encode_session, new_session
from conclave.config import Settings
from conclave.db.engine import create_engine, get_session
from conclave.db.models import Base, UserRow
from conclave.db.repository import Repository
from conclave.main import create_app

TEST_SECRET = "test-secret-key-for-testing"

ADMIN_ROLE = "1370702703616856074"
MODERATOR_ROLE = "1408079849377107989"


async def _no_sleep(_: float) -> None:
    return None


def make_settings(**overrides: str) -> Settings:
    """Test settings with an in-memory DB and a fixed session secret."""
    defaults: dict[str, str] = {
        "database_url": "sqlite+aiosqlite:///:memory:",
        "conclave_env": "development",
        "session_secret_key": TEST_SECRET,
    }
    defaults.update(overrides)
    return Settings(**defaults)


@pytest.fixture
def settings() -> Settings:
    """Test settings with defaults."""
    return make_settings()


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory engine with all tables created."""
    eng = create_engine("sqlite+aiosqlite:///:memory:")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def repo(engine: AsyncEngine) -> AsyncGenerator[Repository, None]:
    async with get_session(engine) as session:
        yield Repository(session)


def build_client(
    settings: Settings,
    engine: AsyncEngine,
    handler: httpx.MockTransport | None = None,
) -> AsyncClient:
    """ASGI test client; lifespan state is set by hand, outbound HTTP is mocked."""
    app = create_app(settings)
    app.state.engine = engine
    app.state.http_client = httpx.AsyncClient(
        transport=handler or httpx.MockTransport(lambda request: httpx.Response(204))
    )
    app.state.sleep = _no_sleep
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def seed_user(
    engine: AsyncEngine,
    *,
    discord_id: str = "111",
    username: str = "ann",
    roles: list[str] | None = None,
    refresh_token: str = "refresh-1",
) -> UserRow:
    async with get_session(engine) as session:
        user, _ = await Repository(session).upsert_user(
            discord_id,
            username,
            email="ann@example.com",
            is_server_member=True,
            roles=roles or [],
            access_token="access-1",
            refresh_token=refresh_token,
        )
    return user


def session_cookie(user: UserRow, secret: str = TEST_SECRET, now: int | None = None) -> str:
    payload = new_session(
        user.id,
        user.discord_id,
        user.username,
        email=user.email,
        is_server_member=user.is_server_member,
        roles=list(user.roles or []),
        now=now,
    )
    return encode_session(payload, secret)
