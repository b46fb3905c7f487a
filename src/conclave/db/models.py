"""SQLAlchemy ORM models for the Conclave database.

Tables: users, sync_log (audit trail), moderation_logs, and one table per
relayed notification kind (contact, appeals, complaints, content
submissions, staff applications).
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class UserRow(Base):
    """One row per Discord account that has ever authenticated."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    discord_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    discriminator: Mapped[str] = mapped_column(String(8), default="0")
    avatar_url: Mapped[str] = mapped_column(String(500), default="")
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    nickname: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_server_member: Mapped[bool] = mapped_column(Boolean, default=False)
    roles: Mapped[list] = mapped_column(JSON, default=list)
    access_token: Mapped[str] = mapped_column(Text, default="")
    refresh_token: Mapped[str] = mapped_column(Text, default="")
    token_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    last_login: Mapped[datetime] = mapped_column(DateTime, default=_now)
    last_logout: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    left_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class SyncLogRow(Base):
    """Append-only audit trail for relay outcomes and Discord sync events."""

    __tablename__ = "sync_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    synced_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (Index("ix_sync_log_event_type", "event_type"),)


class ModerationLogRow(Base):
    __tablename__ = "moderation_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action_type: Mapped[str] = mapped_column(String(30), nullable=False)
    target_user_id: Mapped[str] = mapped_column(String(32), default="")
    target_username: Mapped[str] = mapped_column(String(100), default="")
    moderator_id: Mapped[str] = mapped_column(String(32), default="")
    moderator_username: Mapped[str] = mapped_column(String(100), default="")
    reason: Mapped[str] = mapped_column(Text, default="")
    duration: Mapped[str | None] = mapped_column(String(50), nullable=True)
    guild_id: Mapped[str] = mapped_column(String(32), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


# ---------------------------------------------------------------------------
# Relayed notification records
# ---------------------------------------------------------------------------


class SubmissionMixin:
    """Columns shared by every persisted notification record."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    correlation_id: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    delivered: Mapped[bool] = mapped_column(Boolean, default=False)
    ip_address: Mapped[str] = mapped_column(String(64), default="")
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(32), nullable=True)


class ContactSubmissionRow(SubmissionMixin, Base):
    __tablename__ = "contact_submissions"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    discord_username: Mapped[str] = mapped_column(String(100), default="")
    subject: Mapped[str] = mapped_column(String(200), default="")
    message: Mapped[str] = mapped_column(Text, nullable=False)


class AppealRow(SubmissionMixin, Base):
    __tablename__ = "appeals"

    username: Mapped[str] = mapped_column(String(100), nullable=False)
    discord_username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    appeal_type: Mapped[str] = mapped_column(String(20), nullable=False)
    punishment_date: Mapped[str] = mapped_column(String(50), default="")
    moderator: Mapped[str] = mapped_column(String(100), default="")
    original_reason: Mapped[str] = mapped_column(Text, default="")
    statement: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    prevention_plan: Mapped[str] = mapped_column(Text, nullable=False)


class ComplaintRow(SubmissionMixin, Base):
    __tablename__ = "complaints"

    reporter: Mapped[str] = mapped_column(String(100), default="Anonymous")
    reporter_email: Mapped[str] = mapped_column(String(320), default="")
    reported_user: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    incident_date: Mapped[str] = mapped_column(String(50), default="")
    location: Mapped[str] = mapped_column(Text, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False)
    evidence: Mapped[str] = mapped_column(Text, default="")
    witnesses: Mapped[str] = mapped_column(Text, default="")
    previous_reports: Mapped[bool] = mapped_column(Boolean, default=False)
    urgent: Mapped[bool] = mapped_column(Boolean, default=False)


class ContentSubmissionRow(SubmissionMixin, Base):
    __tablename__ = "content_submissions"

    author: Mapped[str] = mapped_column(String(100), nullable=False)
    author_discord: Mapped[str] = mapped_column(String(100), default="")
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(String(20), nullable=False)
    pathway: Mapped[str] = mapped_column(String(20), nullable=False)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    external_links: Mapped[str] = mapped_column(Text, default="")
    thumbnail_url: Mapped[str] = mapped_column(String(500), default="")
    publish_date: Mapped[str] = mapped_column(String(50), default="")


class StaffApplicationRow(SubmissionMixin, Base):
    __tablename__ = "staff_applications"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    discord_username: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[str] = mapped_column(String(30), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    timezone: Mapped[str] = mapped_column(String(50), default="")
    availability: Mapped[str] = mapped_column(String(50), default="")
    experience: Mapped[str] = mapped_column(Text, nullable=False)
    motivation: Mapped[str] = mapped_column(Text, nullable=False)
    skills: Mapped[str] = mapped_column(Text, default="")


SUBMISSION_MODELS: dict[str, type[SubmissionMixin]] = {
    "contact": ContactSubmissionRow,
    "appeals": AppealRow,
    "complaints": ComplaintRow,
    "submissions": ContentSubmissionRow,
    "applications": StaffApplicationRow,
}
