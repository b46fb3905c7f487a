"""Tests for application configuration."""

import pytest
from conftest import build_client
from sqlalchemy.ext.asyncio import AsyncEngine

from conclave.config import WEBHOOK_KINDS, Settings


class TestSessionSecret:
    def test_production_requires_secret(self) -> None:
        with pytest.raises(ValueError, match="SESSION_SECRET_KEY"):
            Settings(
                conclave_env="production",
                session_secret_key="",
                database_url="sqlite+aiosqlite:///:memory:",
            )

    def test_development_generates_secret(self) -> None:
        settings = Settings(
            conclave_env="development",
            session_secret_key="",
            database_url="sqlite+aiosqlite:///:memory:",
        )
        assert len(settings.session_secret_key) > 20

    def test_explicit_secret_kept(self) -> None:
        settings = Settings(conclave_env="production", session_secret_key="fixed-secret")
        assert settings.session_secret_key == "fixed-secret"
        assert settings.is_production
        assert not settings.is_development


class TestFeatureFlags:
    def test_oauth_needs_id_and_secret(self) -> None:
        assert not Settings(discord_client_id="id", discord_client_secret="").oauth_enabled()
        assert Settings(discord_client_id="id", discord_client_secret="s").oauth_enabled()

    def test_bot_needs_token_and_guild(self) -> None:
        assert not Settings(discord_bot_token="tok", discord_guild_id="").bot_enabled()
        assert Settings(discord_bot_token="tok", discord_guild_id="42").bot_enabled()

    def test_events_secret_falls_back_to_bot_token(self) -> None:
        assert Settings(discord_bot_token="tok", discord_events_secret="").events_secret() == "tok"
        settings = Settings(discord_bot_token="tok", discord_events_secret="shh")
        assert settings.events_secret() == "shh"


class TestWebhookUrls:
    def test_each_kind_maps_to_its_own_setting(self) -> None:
        settings = Settings(**{f"discord_webhook_{kind}": f"https://hook/{kind}" for kind in WEBHOOK_KINDS})
        for kind in WEBHOOK_KINDS:
            assert settings.webhook_url(kind) == f"https://hook/{kind}"

    def test_unset_url_is_empty(self) -> None:
        assert Settings(discord_webhook_contact="").webhook_url("contact") == ""

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown webhook kind"):
            Settings().webhook_url("discord")


class TestApp:
    async def test_health(self, settings: Settings, engine: AsyncEngine) -> None:
        async with build_client(settings, engine) as client:
            resp = await client.get("/health")
        assert resp.json() == {"status": "ok", "env": "development"}
