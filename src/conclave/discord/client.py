"""Thin async wrappers around the Discord REST endpoints the site uses.

Every function takes the shared ``httpx.AsyncClient`` so callers (and tests)
decide the transport. Nothing here retries: OAuth codes are single-use, and
the membership calls are cheap enough to repeat at the caller's discretion.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DISCORD_API_BASE = "https://discord.com/api/v10"
DISCORD_AUTHORIZE_URL = "https://discord.com/api/oauth2/authorize"
DISCORD_TOKEN_URL = f"{DISCORD_API_BASE}/oauth2/token"
DISCORD_USER_URL = f"{DISCORD_API_BASE}/users/@me"
DISCORD_CDN = "https://cdn.discordapp.com"

# guilds.join lets the bot add the user to the guild on their behalf.
DISCORD_SCOPES = "identify email guilds.join"

_TIMEOUT = 10.0


class DiscordAPIError(Exception):
    """Discord answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int = 0, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TokenExchangeError(DiscordAPIError):
    """The OAuth token endpoint rejected the code or refresh token."""


class DiscordConfigError(RuntimeError):
    """Required client credentials are missing."""


class TokenSet(BaseModel):
    access_token: str
    refresh_token: str = ""
    expires_in: int = 0
    token_type: str = "Bearer"
    scope: str = ""


class DiscordUser(BaseModel):
    id: str
    username: str
    discriminator: str = "0"
    avatar: str | None = None
    email: str | None = None
    verified: bool = False

    @property
    def avatar_url(self) -> str:
        if not self.avatar:
            return ""
        return f"{DISCORD_CDN}/avatars/{self.id}/{self.avatar}.png"


class GuildMembership(BaseModel):
    is_member: bool
    roles: list[str] = Field(default_factory=list)
    joined_at: str | None = None
    nick: str | None = None

    @classmethod
    def not_member(cls) -> GuildMembership:
        return cls(is_member=False)


def build_authorize_url(client_id: str, redirect_uri: str, state: str) -> str:
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": DISCORD_SCOPES,
        "state": state,
        "prompt": "consent",
    }
    return f"{DISCORD_AUTHORIZE_URL}?{urlencode(params)}"


async def _request_token(client: httpx.AsyncClient, form: dict[str, str]) -> TokenSet:
    if not form.get("client_id") or not form.get("client_secret"):
        msg = "Discord OAuth client id/secret are not configured"
        raise DiscordConfigError(msg)

    resp = await client.post(
        DISCORD_TOKEN_URL,
        data=form,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=_TIMEOUT,
    )
    if resp.is_error:
        raise TokenExchangeError(
            f"Token exchange failed: {resp.status_code}",
            status_code=resp.status_code,
            body=resp.text,
        )
    return TokenSet.model_validate(resp.json())


async def exchange_code(
    client: httpx.AsyncClient,
    *,
    code: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
) -> TokenSet:
    """Exchange an authorization code for an access/refresh token pair."""
    if not code:
        msg = "Authorization code must not be empty"
        raise ValueError(msg)
    return await _request_token(
        client,
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        },
    )


async def refresh_access_token(
    client: httpx.AsyncClient,
    *,
    refresh_token: str,
    client_id: str,
    client_secret: str,
) -> TokenSet:
    """Trade a stored refresh token for a fresh token pair."""
    if not refresh_token:
        msg = "Refresh token must not be empty"
        raise ValueError(msg)
    return await _request_token(
        client,
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        },
    )


async def fetch_user(client: httpx.AsyncClient, access_token: str) -> DiscordUser:
    """Fetch the authenticated user's Discord profile."""
    resp = await client.get(
        DISCORD_USER_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=_TIMEOUT,
    )
    if resp.is_error:
        raise DiscordAPIError(
            f"Failed to fetch user: {resp.status_code}",
            status_code=resp.status_code,
            body=resp.text,
        )
    return DiscordUser.model_validate(resp.json())


async def fetch_guild_member(
    client: httpx.AsyncClient,
    *,
    bot_token: str,
    guild_id: str,
    user_id: str,
) -> GuildMembership:
    """Look up a user's membership with the bot token.

    A 404 means "not a member" and is a normal result, not an error.
    """
    resp = await client.get(
        f"{DISCORD_API_BASE}/guilds/{guild_id}/members/{user_id}",
        headers={"Authorization": f"Bot {bot_token}"},
        timeout=_TIMEOUT,
    )
    if resp.status_code == 404:
        return GuildMembership.not_member()
    if resp.is_error:
        raise DiscordAPIError(
            f"Failed to fetch guild member: {resp.status_code}",
            status_code=resp.status_code,
            body=resp.text,
        )
    data = resp.json()
    return GuildMembership(
        is_member=True,
        roles=[str(r) for r in data.get("roles") or []],
        joined_at=data.get("joined_at"),
        nick=data.get("nick"),
    )


async def add_guild_member(
    client: httpx.AsyncClient,
    *,
    bot_token: str,
    guild_id: str,
    user_id: str,
    access_token: str,
) -> bool:
    """Add *user_id* to the guild using their OAuth token as the join credential.

    Returns True when Discord created the membership (201) and False when the
    user was already a member (204). Raises DiscordAPIError otherwise.
    """
    resp = await client.put(
        f"{DISCORD_API_BASE}/guilds/{guild_id}/members/{user_id}",
        headers={"Authorization": f"Bot {bot_token}"},
        json={"access_token": access_token},
        timeout=_TIMEOUT,
    )
    if resp.status_code == 204:
        return False
    if resp.is_success:
        return True
    raise DiscordAPIError(
        f"Failed to add guild member: {resp.status_code}",
        status_code=resp.status_code,
        body=resp.text,
    )
