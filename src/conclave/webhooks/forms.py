"""Request schemas for the public notification forms.

Each form parses the JSON body (camelCase keys), sanitises every free-text
field on the way in, and reports human-readable problems through
``problems()`` rather than raising, so the caller can return the whole list
at once.
"""

from __future__ import annotations

import re
import secrets
import string
import time
from typing import Any, ClassVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_MASS_MENTION_RE = re.compile(r"@(everyone|here)", re.IGNORECASE)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def sanitize_text(value: str | None) -> str:
    """Strip angle brackets and @everyone/@here, then surrounding whitespace."""
    if not value:
        return ""
    cleaned = _ANGLE_BRACKETS_RE.sub("", value)
    cleaned = _MASS_MENTION_RE.sub("", cleaned)
    return cleaned.strip()


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_ID_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_correlation_id(prefix: str, now_ms: int | None = None) -> str:
    """``PREFIX-<base36 ms timestamp>-<6 random base36 chars>``, upper-cased."""
    timestamp = int(time.time() * 1000) if now_ms is None else now_ms
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{prefix}-{_base36(timestamp)}-{suffix}".upper()


def _valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


class NotificationForm(BaseModel):
    """Base class: shared parsing/sanitising for every form kind."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    kind: ClassVar[str]
    id_prefix: ClassVar[str]
    # Key under which the correlation id is returned to the client.
    id_field: ClassVar[str]
    service_name: ClassVar[str]
    success_message: ClassVar[str]
    unavailable_message: ClassVar[str]
    rate_limit_message: ClassVar[str]

    @field_validator("*", mode="before")
    @classmethod
    def _sanitize(cls, value: Any, info: ValidationInfo) -> Any:
        field = cls.model_fields.get(info.field_name or "")
        if field is None or field.annotation is not str:
            return value
        if value is None:
            return ""
        if isinstance(value, bool):
            return value
        if isinstance(value, int | float):
            value = str(value)
        if isinstance(value, str):
            return sanitize_text(value)
        return value

    def problems(self) -> list[str]:
        raise NotImplementedError

    def record_fields(self) -> dict[str, Any]:
        """Column values for the persisted row."""
        raise NotImplementedError

    def audit_details(self) -> dict[str, Any]:
        """Non-sensitive summary for the sync log."""
        raise NotImplementedError


class ContactForm(NotificationForm):
    kind: ClassVar[str] = "contact"
    id_prefix: ClassVar[str] = "MSG"
    id_field: ClassVar[str] = "contactId"
    service_name: ClassVar[str] = "Contact Form Webhook"
    success_message: ClassVar[str] = (
        "Your message has been sent successfully! We will respond within 24-48 hours."
    )
    unavailable_message: ClassVar[str] = (
        "Contact form is temporarily unavailable. Please try again later."
    )
    rate_limit_message: ClassVar[str] = "Too many requests. Please try again later."

    name: str = ""
    email: str = ""
    discord: str = ""
    subject: str = ""
    message: str = ""

    def problems(self) -> list[str]:
        errors = []
        if len(self.name) < 2:
            errors.append("Name must be at least 2 characters")
        if not _valid_email(self.email):
            errors.append("Valid email is required")
        if len(self.message) < 10:
            errors.append("Message must be at least 10 characters")
        if len(self.message) > 2000:
            errors.append("Message must be less than 2000 characters")
        return errors

    def record_fields(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "discord_username": self.discord,
            "subject": self.subject,
            "message": self.message,
        }

    def audit_details(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "subject": self.subject,
            "messageLength": len(self.message),
        }


APPEAL_TYPES = ("ban", "mute", "warn", "timeout", "other")


class AppealForm(NotificationForm):
    kind: ClassVar[str] = "appeals"
    id_prefix: ClassVar[str] = "APL"
    id_field: ClassVar[str] = "appealId"
    service_name: ClassVar[str] = "Appeals Webhook"
    success_message: ClassVar[str] = (
        "Your appeal has been submitted successfully! "
        "Our moderation team will review it within 48 hours."
    )
    unavailable_message: ClassVar[str] = (
        "Appeal system is temporarily unavailable. Please try again later."
    )
    rate_limit_message: ClassVar[str] = (
        "You can only submit 3 appeals per hour. Please try again later."
    )

    username: str = ""
    discord: str = ""
    email: str = ""
    appeal_type: str = ""
    punishment_date: str = ""
    moderator: str = ""
    original_reason: str = ""
    statement: str = ""
    reason: str = ""
    prevention_plan: str = ""

    def problems(self) -> list[str]:
        errors = []
        if len(self.username) < 2:
            errors.append("Username must be at least 2 characters")
        if len(self.discord) < 3:
            errors.append("Discord username is required")
        if not _valid_email(self.email):
            errors.append("Valid email is required")
        if self.appeal_type.lower() not in APPEAL_TYPES:
            errors.append("Valid appeal type is required")
        if len(self.statement) < 50:
            errors.append("Statement must be at least 50 characters")
        if len(self.reason) < 50:
            errors.append("Reason must be at least 50 characters")
        if len(self.prevention_plan) < 30:
            errors.append("Prevention plan must be at least 30 characters")
        return errors

    def record_fields(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "discord_username": self.discord,
            "email": self.email,
            "appeal_type": self.appeal_type.lower(),
            "punishment_date": self.punishment_date,
            "moderator": self.moderator,
            "original_reason": self.original_reason,
            "statement": self.statement,
            "reason": self.reason,
            "prevention_plan": self.prevention_plan,
        }

    def audit_details(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "appealType": self.appeal_type,
            "discord": self.discord,
        }


CONTENT_TYPES = ("article", "tutorial", "event", "announcement", "media", "other")
PATHWAYS = ("gaming", "lorebound", "productive", "news", "general")


class ContentSubmissionForm(NotificationForm):
    kind: ClassVar[str] = "submissions"
    id_prefix: ClassVar[str] = "SUB"
    id_field: ClassVar[str] = "submissionId"
    service_name: ClassVar[str] = "Content Submissions Webhook"
    success_message: ClassVar[str] = (
        "Your content has been submitted successfully! "
        "Staff will review it within 24-48 hours."
    )
    unavailable_message: ClassVar[str] = (
        "Submission system is temporarily unavailable. Please try again later."
    )
    rate_limit_message: ClassVar[str] = (
        "You can only submit 10 pieces of content per 15 minutes. Please try again later."
    )

    author: str = ""
    author_discord: str = ""
    title: str = ""
    description: str = ""
    content: str = ""
    content_type: str = ""
    pathway: str = ""
    tags: list[str] = Field(default_factory=list)
    links: str = ""
    thumbnail_url: str = ""
    publish_date: str = ""

    @field_validator("tags", mode="before")
    @classmethod
    def _sanitize_tags(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [sanitize_text(str(tag)) for tag in value if tag is not None]

    def problems(self) -> list[str]:
        errors = []
        if len(self.author) < 2:
            errors.append("Author name must be at least 2 characters")
        if len(self.title) < 5:
            errors.append("Title must be at least 5 characters")
        if len(self.title) > 200:
            errors.append("Title must be less than 200 characters")
        if len(self.description) < 20:
            errors.append("Description must be at least 20 characters")
        if len(self.content) < 50:
            errors.append("Content must be at least 50 characters")
        if self.content_type.lower() not in CONTENT_TYPES:
            errors.append("Valid content type is required")
        if self.pathway.lower() not in PATHWAYS:
            errors.append("Valid pathway is required")
        return errors

    def record_fields(self) -> dict[str, Any]:
        return {
            "author": self.author,
            "author_discord": self.author_discord,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "content_type": self.content_type.lower(),
            "pathway": self.pathway.lower(),
            "tags": list(self.tags),
            "external_links": self.links,
            "thumbnail_url": self.thumbnail_url,
            "publish_date": self.publish_date,
        }

    def audit_details(self) -> dict[str, Any]:
        return {
            "author": self.author,
            "contentType": self.content_type,
            "pathway": self.pathway,
            "title": self.title,
        }


SEVERITIES = ("low", "medium", "high", "critical")


class ComplaintForm(NotificationForm):
    kind: ClassVar[str] = "complaints"
    id_prefix: ClassVar[str] = "CPL"
    id_field: ClassVar[str] = "complaintId"
    service_name: ClassVar[str] = "Complaints Webhook"
    success_message: ClassVar[str] = (
        "Your complaint has been submitted successfully! "
        "Our moderation team will investigate within 24 hours."
    )
    unavailable_message: ClassVar[str] = (
        "Complaint system is temporarily unavailable. Please try again later."
    )
    rate_limit_message: ClassVar[str] = (
        "You can only submit 5 complaints per 30 minutes. Please try again later."
    )

    reporter: str = ""
    reporter_email: str = ""
    reported_user: str = ""
    severity: str = ""
    category: str = ""
    incident_date: str = ""
    location: str = ""
    description: str = ""
    evidence: str = ""
    witnesses: str = ""
    previous_reports: bool = False
    urgent: bool = False

    @field_validator("previous_reports", "urgent", mode="before")
    @classmethod
    def _strict_true(cls, value: Any) -> bool:
        # Only a literal JSON true counts.
        return value is True

    @model_validator(mode="after")
    def _anonymous_reporter(self) -> ComplaintForm:
        if not self.reporter:
            self.reporter = "Anonymous"
        return self

    def problems(self) -> list[str]:
        errors = []
        if len(self.reported_user) < 2:
            errors.append("Reported user must be specified")
        if len(self.description) < 50:
            errors.append("Description must be at least 50 characters")
        if self.severity.lower() not in SEVERITIES:
            errors.append("Valid severity level is required")
        if len(self.category) < 3:
            errors.append("Category is required")
        if self.reporter_email and not _valid_email(self.reporter_email):
            errors.append("Valid email format required if provided")
        return errors

    def record_fields(self) -> dict[str, Any]:
        return {
            "reporter": self.reporter,
            "reporter_email": self.reporter_email,
            "reported_user": self.reported_user,
            "severity": self.severity.lower(),
            "category": self.category,
            "incident_date": self.incident_date,
            "location": self.location,
            "description": self.description,
            "evidence": self.evidence,
            "witnesses": self.witnesses,
            "previous_reports": self.previous_reports,
            "urgent": self.urgent,
        }

    def audit_details(self) -> dict[str, Any]:
        return {
            "reporter": self.reporter,
            "reportedUser": self.reported_user,
            "severity": self.severity,
            "category": self.category,
            "urgent": self.urgent,
        }


POSITIONS = ("moderator", "administrator", "head-mod", "head-admin", "other")
MINIMUM_APPLICANT_AGE = 16


class StaffApplicationForm(NotificationForm):
    kind: ClassVar[str] = "applications"
    id_prefix: ClassVar[str] = "APP"
    id_field: ClassVar[str] = "applicationId"
    service_name: ClassVar[str] = "Staff Applications Webhook"
    success_message: ClassVar[str] = (
        "Your application has been submitted successfully! "
        "We will review it and get back to you soon."
    )
    unavailable_message: ClassVar[str] = (
        "Application system is temporarily unavailable. Please try again later."
    )
    rate_limit_message: ClassVar[str] = (
        "You can only submit 2 applications per 30 minutes. Please try again later."
    )

    name: str = ""
    email: str = ""
    discord: str = ""
    position: str = ""
    age: str = ""
    timezone: str = ""
    availability: str = ""
    experience: str = ""
    motivation: str = ""
    skills: str = ""
    discord_avatar: str = ""

    @property
    def age_years(self) -> int | None:
        return int(self.age) if self.age.isdecimal() else None

    def problems(self) -> list[str]:
        errors = []
        if len(self.name) < 2:
            errors.append("Name must be at least 2 characters")
        if not _valid_email(self.email):
            errors.append("Valid email is required")
        if len(self.discord) < 3:
            errors.append("Discord username is required")
        if self.position.lower() not in POSITIONS:
            errors.append("Valid position is required")
        age = self.age_years
        if age is None or age < MINIMUM_APPLICANT_AGE:
            errors.append(f"Must be at least {MINIMUM_APPLICANT_AGE} years old")
        if len(self.experience) < 50:
            errors.append("Experience description must be at least 50 characters")
        if len(self.motivation) < 50:
            errors.append("Motivation description must be at least 50 characters")
        return errors

    def record_fields(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "discord_username": self.discord,
            "position": self.position.lower(),
            "age": self.age_years or 0,
            "timezone": self.timezone,
            "availability": self.availability,
            "experience": self.experience,
            "motivation": self.motivation,
            "skills": self.skills,
        }

    def audit_details(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "discord": self.discord,
            "position": self.position,
        }


FORMS: dict[str, type[NotificationForm]] = {
    form.kind: form
    for form in (
        ContactForm,
        AppealForm,
        ContentSubmissionForm,
        ComplaintForm,
        StaffApplicationForm,
    )
}
