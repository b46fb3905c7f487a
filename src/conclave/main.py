"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from conclave.api.admin import router as admin_router
from conclave.api.discord_events import router as discord_events_router
from conclave.api.webhooks import router as webhooks_router
from conclave.auth.oauth import router as auth_router
from conclave.config import APP_VERSION, Settings
from conclave.db.engine import create_engine
from conclave.db.models import Base
from conclave.webhooks.ratelimit import build_rate_limiters

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: create engine/tables and the shared outbound HTTP client."""
    settings: Settings = app.state.settings
    engine = create_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    app.state.engine = engine
    app.state.http_client = httpx.AsyncClient()

    logger.info(
        "startup env=%s oauth=%s bot=%s",
        settings.conclave_env,
        settings.oauth_enabled(),
        settings.bot_enabled(),
    )

    yield

    await app.state.http_client.aclose()
    await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the Conclave FastAPI application."""
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.conclave_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="The Conclave Realm",
        version=APP_VERSION,
        description="Discord login, role-gated staff tools and form relays for The Conclave Realm",
        docs_url="/docs" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.rate_limiters = build_rate_limiters()
    # Retry backoff; tests swap in a no-op.
    app.state.sleep = asyncio.sleep

    app.include_router(auth_router)
    # Literal /api/webhooks/discord must be matched before /api/webhooks/{kind}.
    app.include_router(discord_events_router)
    app.include_router(webhooks_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "env": settings.conclave_env}

    return app


app = create_app()
