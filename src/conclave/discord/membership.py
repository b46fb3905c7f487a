"""Guild membership resolution with auto-invite.

Login never fails because of membership: when the lookup or the invite
goes wrong the user still gets a session, just without member roles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from conclave.config import Settings
from conclave.discord.client import (
    DiscordAPIError,
    GuildMembership,
    add_guild_member,
    fetch_guild_member,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MembershipOutcome:
    membership: GuildMembership
    invited: bool = False
    invite_error: str | None = None


async def _lookup(client: httpx.AsyncClient, settings: Settings, user_id: str) -> GuildMembership:
    try:
        return await fetch_guild_member(
            client,
            bot_token=settings.discord_bot_token,
            guild_id=settings.discord_guild_id,
            user_id=user_id,
        )
    except (DiscordAPIError, httpx.HTTPError) as exc:
        logger.warning("membership_lookup_failed user=%s error=%s", user_id, exc)
        return GuildMembership.not_member()


async def auto_invite(
    client: httpx.AsyncClient,
    settings: Settings,
    user_id: str,
    access_token: str,
) -> str | None:
    """Add the user to the guild. Returns an error string, or None on success."""
    try:
        added = await add_guild_member(
            client,
            bot_token=settings.discord_bot_token,
            guild_id=settings.discord_guild_id,
            user_id=user_id,
            access_token=access_token,
        )
    except DiscordAPIError as exc:
        logger.warning(
            "auto_invite_failed user=%s status=%s body=%s",
            user_id,
            exc.status_code,
            exc.body[:300],
        )
        return str(exc)
    except httpx.HTTPError as exc:
        logger.warning("auto_invite_failed user=%s error=%s", user_id, exc)
        return str(exc)

    logger.info("auto_invite_ok user=%s added=%s", user_id, added)
    return None


async def resolve_membership(
    client: httpx.AsyncClient,
    settings: Settings,
    user_id: str,
    access_token: str,
) -> MembershipOutcome:
    """Check membership; invite non-members and re-check after a successful invite."""
    if not settings.bot_enabled():
        logger.warning("membership_check_skipped reason=bot_not_configured user=%s", user_id)
        return MembershipOutcome(membership=GuildMembership.not_member())

    membership = await _lookup(client, settings, user_id)
    if membership.is_member:
        return MembershipOutcome(membership=membership)

    error = await auto_invite(client, settings, user_id, access_token)
    if error is not None:
        return MembershipOutcome(membership=membership, invite_error=error)

    return MembershipOutcome(membership=await _lookup(client, settings, user_id), invited=True)
