"""Application settings via pydantic-settings. Loads from environment and .env file."""

from __future__ import annotations

import secrets

from pydantic import model_validator
from pydantic_settings import BaseSettings

APP_VERSION = "0.1.0"

# Notification kinds relayed to Discord incoming webhooks.
WEBHOOK_KINDS: tuple[str, ...] = (
    "contact",
    "appeals",
    "submissions",
    "complaints",
    "applications",
)


class Settings(BaseSettings):
    """Conclave Realm configuration.

    All values can be overridden via environment variables or .env file.
    """

    # Discord OAuth2
    discord_client_id: str = ""
    discord_client_secret: str = ""
    discord_redirect_uri: str = "http://localhost:8000/api/auth/discord/callback"

    # Discord bot (membership lookups, auto-invite)
    discord_bot_token: str = ""
    discord_guild_id: str = ""

    # Incoming webhook URLs, one per notification kind
    discord_webhook_contact: str = ""
    discord_webhook_appeals: str = ""
    discord_webhook_submissions: str = ""
    discord_webhook_complaints: str = ""
    discord_webhook_applications: str = ""

    # Shared secret for the inbound bot-event webhook (falls back to the bot token)
    discord_events_secret: str = ""

    session_secret_key: str = ""

    # Database
    database_url: str = "sqlite+aiosqlite:///conclave.db"

    # Public site
    site_url: str = "http://localhost:8000"

    # Environment
    conclave_env: str = "development"

    # Logging
    conclave_log_level: str = "INFO"

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _ensure_session_secret(self) -> Settings:
        """Auto-generate session secret in dev; reject missing secret in production."""
        if not self.session_secret_key:
            if self.conclave_env == "production":
                msg = (
                    "SESSION_SECRET_KEY must be set in production. "
                    "Generate one with: python -c "
                    '"import secrets; print(secrets.token_urlsafe(32))"'
                )
                raise ValueError(msg)
            self.session_secret_key = secrets.token_urlsafe(32)
        return self

    @property
    def is_production(self) -> bool:
        return self.conclave_env == "production"

    @property
    def is_development(self) -> bool:
        return self.conclave_env == "development"

    def oauth_enabled(self) -> bool:
        """Return True when Discord OAuth credentials are configured."""
        return bool(self.discord_client_id and self.discord_client_secret)

    def bot_enabled(self) -> bool:
        """Return True when privileged guild lookups are possible."""
        return bool(self.discord_bot_token and self.discord_guild_id)

    def events_secret(self) -> str:
        return self.discord_events_secret or self.discord_bot_token

    def webhook_url(self, kind: str) -> str:
        """Return the configured incoming webhook URL for *kind* ("" if unset)."""
        if kind not in WEBHOOK_KINDS:
            msg = f"Unknown webhook kind: {kind!r}"
            raise ValueError(msg)
        url: str = getattr(self, f"discord_webhook_{kind}")
        return url
