"""Repository pattern for database access.

Wraps SQLAlchemy async sessions. The sync log is append-only. Notification
records are written once by the relay and only change status afterwards.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conclave.db.models import (
    SUBMISSION_MODELS,
    ModerationLogRow,
    SubmissionMixin,
    SyncLogRow,
    UserRow,
)

SUBMISSION_STATUSES = frozenset({"pending", "approved", "rejected"})


def _submission_model(kind: str) -> type[SubmissionMixin]:
    model = SUBMISSION_MODELS.get(kind)
    if model is None:
        msg = f"Unknown submission kind: {kind!r}"
        raise ValueError(msg)
    return model


class Repository:
    """Async repository for all database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # --- Users ---

    async def get_user(self, user_id: str) -> UserRow | None:
        return await self.session.get(UserRow, user_id)

    async def get_user_by_discord_id(self, discord_id: str) -> UserRow | None:
        """Look up a user by their Discord user ID."""
        stmt = select(UserRow).where(UserRow.discord_id == discord_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_user(
        self,
        discord_id: str,
        username: str,
        *,
        discriminator: str = "0",
        avatar_url: str = "",
        email: str | None = None,
        nickname: str | None = None,
        is_server_member: bool = False,
        roles: list[str] | None = None,
        access_token: str = "",
        refresh_token: str = "",
        token_expires_at: datetime | None = None,
    ) -> tuple[UserRow, bool]:
        """Create or update the user identified by *discord_id*.

        Returns ``(user, created)``. Role ids always come from the live
        membership lookup, so they are overwritten on every call.
        """
        now = datetime.now(UTC)
        fields: dict[str, Any] = {
            "username": username,
            "discriminator": discriminator,
            "avatar_url": avatar_url,
            "email": email,
            "nickname": nickname,
            "is_server_member": is_server_member,
            "roles": list(roles or []),
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_expires_at": token_expires_at,
            "last_login": now,
            "updated_at": now,
        }

        user = await self.get_user_by_discord_id(discord_id)
        if user is not None:
            for key, value in fields.items():
                setattr(user, key, value)
            await self.session.flush()
            return user, False

        user = UserRow(discord_id=discord_id, created_at=now, **fields)
        self.session.add(user)
        await self.session.flush()
        return user, True

    async def mark_user_logout(self, user_id: str) -> None:
        user = await self.get_user(user_id)
        if user is None:
            return
        now = datetime.now(UTC)
        user.last_logout = now
        user.updated_at = now
        await self.session.flush()

    async def mark_member_left(self, discord_id: str) -> UserRow | None:
        """Soft-mark a user as having left the guild. Never deletes the row."""
        user = await self.get_user_by_discord_id(discord_id)
        if user is None:
            return None
        now = datetime.now(UTC)
        user.left_at = now
        user.is_server_member = False
        user.updated_at = now
        await self.session.flush()
        return user

    async def mark_member_joined(self, discord_id: str) -> UserRow | None:
        user = await self.get_user_by_discord_id(discord_id)
        if user is None:
            return None
        user.left_at = None
        user.is_server_member = True
        user.updated_at = datetime.now(UTC)
        await self.session.flush()
        return user

    async def update_user_roles(self, discord_id: str, roles: list[str]) -> UserRow | None:
        user = await self.get_user_by_discord_id(discord_id)
        if user is None:
            return None
        user.roles = list(roles)
        user.updated_at = datetime.now(UTC)
        await self.session.flush()
        return user

    # --- Sync / audit log ---

    async def log_sync_event(
        self,
        event_type: str,
        status: str,
        details: dict | None = None,
        error_message: str | None = None,
    ) -> SyncLogRow:
        row = SyncLogRow(
            event_type=event_type,
            status=status,
            details=details or {},
            error_message=error_message,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_recent_sync_events(self, limit: int = 10) -> list[SyncLogRow]:
        """Most recent audit entries first."""
        stmt = (
            select(SyncLogRow)
            .order_by(SyncLogRow.synced_at.desc(), SyncLogRow.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_sync_events_by_type(self, event_type: str) -> list[SyncLogRow]:
        stmt = (
            select(SyncLogRow)
            .where(SyncLogRow.event_type == event_type)
            .order_by(SyncLogRow.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def log_moderation_action(
        self,
        action_type: str,
        *,
        target_user_id: str = "",
        target_username: str = "",
        moderator_id: str = "",
        moderator_username: str = "",
        reason: str = "",
        duration: str | None = None,
        guild_id: str = "",
    ) -> ModerationLogRow:
        row = ModerationLogRow(
            action_type=action_type,
            target_user_id=target_user_id,
            target_username=target_username,
            moderator_id=moderator_id,
            moderator_username=moderator_username,
            reason=reason,
            duration=duration,
            guild_id=guild_id,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    # --- Notification records ---

    async def store_submission(
        self,
        kind: str,
        correlation_id: str,
        fields: dict[str, Any],
        *,
        ip_address: str = "",
        delivered: bool = False,
    ) -> SubmissionMixin:
        """Persist a relayed notification. New records always start pending."""
        model = _submission_model(kind)
        row = model(
            correlation_id=correlation_id,
            status="pending",
            delivered=delivered,
            ip_address=ip_address,
            **fields,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_submission(self, kind: str, correlation_id: str) -> SubmissionMixin | None:
        model = _submission_model(kind)
        stmt = select(model).where(model.correlation_id == correlation_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_submissions(
        self,
        kind: str,
        status: str | None = None,
        limit: int = 100,
    ) -> list[SubmissionMixin]:
        model = _submission_model(kind)
        stmt = select(model).order_by(model.submitted_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(model.status == status)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def set_submission_status(
        self,
        kind: str,
        correlation_id: str,
        status: str,
        reviewed_by: str,
    ) -> SubmissionMixin | None:
        """Move a record to approved/rejected. Returns None if it does not exist."""
        if status not in SUBMISSION_STATUSES:
            msg = f"Invalid submission status: {status!r}"
            raise ValueError(msg)
        row = await self.get_submission(kind, correlation_id)
        if row is None:
            return None
        row.status = status
        row.reviewed_by = reviewed_by
        row.reviewed_at = datetime.now(UTC)
        await self.session.flush()
        return row
