"""Session cookie issue/decode/validate.

A session is never stored server-side: it is rebuilt from the signed cookie
on every request. The payload carries explicit ``iat``/``exp`` unix
timestamps so expiry is checked by us (with a distinct ``expired`` reason)
rather than by the signer.

Two validation depths:

* ``check_session``: decode + expiry only (no I/O).
* ``check_session_full``: the above, then confirm the user row still
  exists and re-derive permissions from the stored role ids.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal

from fastapi import Response
from itsdangerous import BadData, URLSafeSerializer
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from conclave.auth.permissions import Permissions, resolve_permissions

if TYPE_CHECKING:
    from conclave.db.models import UserRow
    from conclave.db.repository import Repository

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "conclave_session"
# 30 days, in seconds. Also the cookie Max-Age.
SESSION_LIFETIME_SECONDS = 30 * 24 * 60 * 60
# Clients are told to refresh once less than 7 days remain.
REFRESH_THRESHOLD_SECONDS = 7 * 24 * 60 * 60
SESSION_SALT = "conclave-session"

InvalidReason = Literal[
    "no_token",
    "expired",
    "invalid_format",
    "parse_error",
    "user_not_found",
    "server_error",
]


class SessionPayload(BaseModel):
    """Identity carried in the session cookie (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    discord_id: str
    username: str
    email: str | None = None
    is_server_member: bool = False
    roles: list[str] = Field(default_factory=list)
    iat: int
    exp: int

    def expires_in(self, now: int | None = None) -> int:
        """Seconds until expiry, floored at zero."""
        current = int(time.time()) if now is None else now
        return max(0, self.exp - current)

    def needs_refresh(self, now: int | None = None) -> bool:
        return self.expires_in(now) < REFRESH_THRESHOLD_SECONDS


class SessionDecodeError(Exception):
    """Raised when a cookie value cannot be turned into a live session."""

    def __init__(self, reason: InvalidReason) -> None:
        super().__init__(reason)
        self.reason: InvalidReason = reason


@dataclass(frozen=True)
class SessionCheck:
    """Outcome of validating a session token."""

    valid: bool
    reason: InvalidReason | Literal["valid"]
    payload: SessionPayload | None = None
    permissions: Permissions | None = None
    user: UserRow | None = None

    @classmethod
    def invalid(cls, reason: InvalidReason) -> SessionCheck:
        return cls(valid=False, reason=reason)


def _serializer(secret: str) -> URLSafeSerializer:
    return URLSafeSerializer(secret, salt=SESSION_SALT)


def new_session(
    user_id: str,
    discord_id: str,
    username: str,
    *,
    email: str | None = None,
    is_server_member: bool = False,
    roles: list[str] | None = None,
    now: int | None = None,
) -> SessionPayload:
    """Build a payload whose expiry is exactly one lifetime after issue."""
    iat = int(time.time()) if now is None else now
    return SessionPayload(
        user_id=user_id,
        discord_id=discord_id,
        username=username,
        email=email,
        is_server_member=is_server_member,
        roles=list(roles or []),
        iat=iat,
        exp=iat + SESSION_LIFETIME_SECONDS,
    )


def encode_session(payload: SessionPayload, secret: str) -> str:
    token: str = _serializer(secret).dumps(payload.model_dump(by_alias=True))
    return token


def decode_session(token: str, secret: str, now: int | None = None) -> SessionPayload:
    """Decode and expiry-check *token*.

    Raises SessionDecodeError with ``parse_error`` (unreadable or tampered),
    ``expired`` (``exp`` not in the future) or ``invalid_format`` (missing
    identity fields or wrong shape).
    """
    try:
        data = _serializer(secret).loads(token)
    except (BadData, ValueError, TypeError, UnicodeError) as exc:
        raise SessionDecodeError("parse_error") from exc

    if not isinstance(data, dict):
        raise SessionDecodeError("parse_error")

    current = int(time.time()) if now is None else now
    exp = data.get("exp")
    if isinstance(exp, int | float) and not isinstance(exp, bool) and exp <= current:
        raise SessionDecodeError("expired")

    if not data.get("userId") or not data.get("discordId"):
        raise SessionDecodeError("invalid_format")

    try:
        return SessionPayload.model_validate(data)
    except ValidationError as exc:
        raise SessionDecodeError("invalid_format") from exc


def set_session_cookie(response: Response, token: str, *, secure: bool) -> None:
    """Write the session cookie, replacing any previous one."""
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=SESSION_LIFETIME_SECONDS,
        httponly=True,
        samesite="lax",
        secure=secure,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")


def check_session(token: str | None, secret: str, now: int | None = None) -> SessionCheck:
    """Quick check: decode + expiry. Never raises."""
    if not token:
        return SessionCheck.invalid("no_token")
    try:
        payload = decode_session(token, secret, now)
    except SessionDecodeError as exc:
        logger.debug("session_rejected reason=%s", exc.reason)
        return SessionCheck.invalid(exc.reason)
    return SessionCheck(
        valid=True,
        reason="valid",
        payload=payload,
        permissions=resolve_permissions(payload.roles),
    )


async def check_session_full(
    token: str | None,
    secret: str,
    repo: Repository,
    now: int | None = None,
) -> SessionCheck:
    """Quick check, then confirm the user still exists.

    Permissions are recomputed from the stored role ids, which are refreshed
    on every login, rather than from the cookie copy.
    """
    quick = check_session(token, secret, now)
    if not quick.valid or quick.payload is None:
        return quick

    try:
        user = await repo.get_user(quick.payload.user_id)
    except Exception:
        logger.exception("session_user_lookup_failed user_id=%s", quick.payload.user_id)
        return SessionCheck.invalid("server_error")

    if user is None:
        return SessionCheck.invalid("user_not_found")

    return SessionCheck(
        valid=True,
        reason="valid",
        payload=quick.payload,
        permissions=resolve_permissions(user.roles or []),
        user=user,
    )


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
