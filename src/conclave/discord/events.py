"""Inbound events pushed by the community bot (joins, leaves, role changes, moderation).

The bot signs ``timestamp + body`` with HMAC-SHA256 and sends the hex digest
in ``X-Signature`` alongside ``X-Timestamp`` (unix milliseconds).
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from conclave.db.repository import Repository

logger = logging.getLogger(__name__)

# Requests older (or newer) than this are treated as replays.
REPLAY_WINDOW_MS = 5 * 60 * 1000


class EventUser(BaseModel):
    id: str
    username: str = ""
    discriminator: str = "0"
    avatar: str | None = None


class BotEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event_type: str = "unknown"
    guild_id: str = ""
    user: EventUser | None = None
    roles: list[str] = Field(default_factory=list)
    joined_at: str | None = None
    # moderation_action
    action: str = ""
    moderator: EventUser | None = None
    reason: str = ""
    duration: str | None = None


def sign_event(secret: str, timestamp: str, body: bytes) -> str:
    mac = hmac.new(secret.encode(), timestamp.encode() + body, hashlib.sha256)
    return mac.hexdigest()


def verify_signature(secret: str, signature: str, timestamp: str, body: bytes) -> bool:
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign_event(secret, timestamp, body), signature.lower())


def timestamp_fresh(timestamp: str, now_ms: int | None = None) -> bool:
    """True when *timestamp* (unix ms) is within the replay window of now."""
    try:
        sent = int(timestamp)
    except ValueError:
        return False
    current = int(time.time() * 1000) if now_ms is None else now_ms
    return abs(current - sent) <= REPLAY_WINDOW_MS


async def _member_join(repo: Repository, event: BotEvent, user: EventUser) -> dict[str, Any]:
    known = await repo.mark_member_joined(user.id)
    await repo.log_sync_event(
        "member_join",
        "success",
        {
            "userId": user.id,
            "username": user.username,
            "guildId": event.guild_id,
            "known": known is not None,
        },
    )
    return {"success": True, "event": "member_join"}


async def _member_leave(repo: Repository, event: BotEvent, user: EventUser) -> dict[str, Any]:
    known = await repo.mark_member_left(user.id)
    await repo.log_sync_event(
        "member_leave",
        "success",
        {
            "userId": user.id,
            "username": user.username,
            "guildId": event.guild_id,
            "known": known is not None,
        },
    )
    return {"success": True, "event": "member_leave"}


async def _role_update(repo: Repository, event: BotEvent, user: EventUser) -> dict[str, Any]:
    await repo.update_user_roles(user.id, event.roles)
    await repo.log_sync_event(
        "role_update",
        "success",
        {
            "userId": user.id,
            "username": user.username,
            "roles": event.roles,
            "guildId": event.guild_id,
        },
    )
    return {"success": True, "event": "role_update"}


async def _moderation_action(repo: Repository, event: BotEvent, user: EventUser) -> dict[str, Any]:
    moderator = event.moderator or EventUser(id="", username="unknown")
    await repo.log_moderation_action(
        event.action,
        target_user_id=user.id,
        target_username=user.username,
        moderator_id=moderator.id,
        moderator_username=moderator.username,
        reason=event.reason,
        duration=event.duration,
        guild_id=event.guild_id,
    )
    await repo.log_sync_event(
        "moderation_action",
        "success",
        {
            "action": event.action,
            "targetUser": user.username,
            "moderator": moderator.username,
            "reason": event.reason,
        },
    )
    return {"success": True, "event": "moderation_action"}


HANDLERS = {
    "member_join": _member_join,
    "member_leave": _member_leave,
    "role_update": _role_update,
    "moderation_action": _moderation_action,
}


class EventPayloadError(ValueError):
    """A known event arrived without the fields its handler needs."""


async def dispatch_event(repo: Repository, event: BotEvent, raw: dict[str, Any]) -> dict[str, Any]:
    """Route *event* to its handler; unknown types are audited and acknowledged."""
    handler = HANDLERS.get(event.event_type)
    if handler is None:
        logger.info("bot_event_unhandled event_type=%s", event.event_type)
        await repo.log_sync_event(event.event_type or "unknown", "unknown_event", raw)
        return {
            "success": True,
            "message": "Event received but not handled",
            "event": event.event_type,
        }

    if event.user is None:
        msg = f"{event.event_type} event requires a user"
        raise EventPayloadError(msg)

    result = await handler(repo, event, event.user)
    logger.info("bot_event_handled event_type=%s user=%s", event.event_type, event.user.id)
    return result
