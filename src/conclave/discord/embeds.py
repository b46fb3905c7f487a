"""Discord embed builders for relayed notifications.

Each builder takes a validated form and its correlation id and returns a
styled ``discord.Embed``. ``build_notification_message`` wraps the embed in
the JSON body an incoming webhook expects.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import discord

if TYPE_CHECKING:
    from conclave.webhooks.forms import (
        AppealForm,
        ComplaintForm,
        ContactForm,
        ContentSubmissionForm,
        NotificationForm,
        StaffApplicationForm,
    )

REALM_NAME = "The Conclave Realm"
LOGO_PATH = "/Assets/Images/CNS_logo1.png"

# Discord rejects field values longer than this.
_FIELD_VALUE_LIMIT = 1024

GOLD = 0xFFD700

APPEAL_COLORS = {
    "ban": 0xFF0000,
    "mute": 0xFFA500,
    "warn": 0xFFFF00,
    "timeout": 0xFF8C00,
    "other": 0x808080,
}
APPEAL_EMOJIS = {"ban": "🔨", "mute": "🔇", "warn": "⚠️", "timeout": "⏰", "other": "📋"}

CONTENT_TYPE_COLORS = {
    "article": 0x00BFFF,
    "tutorial": 0x50C878,
    "event": 0xFFD700,
    "announcement": 0xFF1493,
    "media": 0x9966CC,
    "other": 0xE0115F,
}
CONTENT_TYPE_EMOJIS = {
    "article": "📰",
    "tutorial": "📚",
    "event": "🎉",
    "announcement": "📢",
    "media": "🎨",
    "other": "📝",
}
PATHWAY_EMOJIS = {
    "gaming": "🎮",
    "lorebound": "🌙",
    "productive": "💼",
    "news": "📰",
    "general": "⚜️",
}

SEVERITY_COLORS = {"low": 0xFFFF00, "medium": 0xFFA500, "high": 0xFF0000, "critical": 0x8B0000}
SEVERITY_EMOJIS = {"low": "⚠️", "medium": "🔶", "high": "🔴", "critical": "🚨"}

POSITION_COLORS = {
    "moderator": 0x50C878,
    "administrator": 0xE0115F,
    "head-mod": 0x00BFFF,
    "head-admin": 0x9966CC,
    "other": 0xFFD700,
}


def _value(text: str, fallback: str, limit: int = _FIELD_VALUE_LIMIT) -> str:
    """Truncate to *limit*; Discord refuses empty field values."""
    return text[:limit] if text else fallback


def _new_embed(title: str, color: int, now: datetime) -> discord.Embed:
    return discord.Embed(title=title, colour=color, timestamp=now)


def _finish(
    embed: discord.Embed,
    *,
    id_label: str,
    correlation_id: str,
    system: str,
    icon_url: str,
    now: datetime,
) -> discord.Embed:
    """Append the id/submitted fields and the footer shared by every kind."""
    embed.add_field(name=f"📊 {id_label}", value=f"`{correlation_id}`", inline=True)
    embed.add_field(name="🕐 Submitted", value=f"<t:{int(now.timestamp())}:F>", inline=True)
    embed.set_footer(text=f"{system} | {REALM_NAME} • {correlation_id}", icon_url=icon_url)
    return embed


def build_contact_embed(
    form: ContactForm, correlation_id: str, *, icon_url: str, now: datetime
) -> tuple[discord.Embed, str | None]:
    embed = _new_embed("📬 New Contact Form Submission", GOLD, now)
    embed.add_field(name="👤 Name", value=_value(form.name, "Not provided"), inline=True)
    embed.add_field(name="📧 Email", value=_value(form.email, "Not provided"), inline=True)
    embed.add_field(
        name="📱 Discord Username", value=_value(form.discord, "Not provided"), inline=True
    )
    embed.add_field(name="📋 Subject", value=_value(form.subject, "General Inquiry"), inline=False)
    embed.add_field(name="💬 Message", value=_value(form.message, "No message", 1000), inline=False)
    embed.add_field(name="🌐 Source", value="Website Contact Form", inline=True)
    _finish(
        embed,
        id_label="Message ID",
        correlation_id=correlation_id,
        system="Contact Form System",
        icon_url=icon_url,
        now=now,
    )
    return embed, None


def build_appeal_embed(
    form: AppealForm, correlation_id: str, *, icon_url: str, now: datetime
) -> tuple[discord.Embed, str | None]:
    appeal_type = form.appeal_type.lower()
    label = form.appeal_type.upper() or "PUNISHMENT"
    embed = _new_embed(
        f"{APPEAL_EMOJIS.get(appeal_type, APPEAL_EMOJIS['other'])} New {label} Appeal",
        APPEAL_COLORS.get(appeal_type, APPEAL_COLORS["other"]),
        now,
    )
    embed.add_field(name="👤 Username", value=_value(form.username, "Not provided"), inline=True)
    embed.add_field(name="💬 Discord", value=_value(form.discord, "Not provided"), inline=True)
    embed.add_field(name="📧 Email", value=_value(form.email, "Not provided"), inline=True)
    embed.add_field(
        name="⚖️ Appeal Type", value=_value(form.appeal_type.upper(), "Not specified"), inline=True
    )
    embed.add_field(
        name="📅 Punishment Date", value=_value(form.punishment_date, "Not provided"), inline=True
    )
    embed.add_field(name="👮 Moderator", value=_value(form.moderator, "Unknown"), inline=True)
    embed.add_field(
        name="📝 Original Reason",
        value=_value(form.original_reason, "Not provided", 500),
        inline=False,
    )
    embed.add_field(
        name="🗣️ Your Statement", value=_value(form.statement, "Not provided", 800), inline=False
    )
    embed.add_field(
        name="💭 Why Should We Reconsider?",
        value=_value(form.reason, "Not provided", 800),
        inline=False,
    )
    embed.add_field(
        name="🔄 Will This Happen Again?",
        value=_value(form.prevention_plan, "Not provided", 500),
        inline=False,
    )
    _finish(
        embed,
        id_label="Appeal ID",
        correlation_id=correlation_id,
        system="Appeal System",
        icon_url=icon_url,
        now=now,
    )
    return embed, f"@here **New {label} Appeal Submitted!**"


def build_submission_embed(
    form: ContentSubmissionForm, correlation_id: str, *, icon_url: str, now: datetime
) -> tuple[discord.Embed, str | None]:
    content_type = form.content_type.lower()
    pathway = form.pathway.lower()
    embed = _new_embed(
        f"{CONTENT_TYPE_EMOJIS.get(content_type, CONTENT_TYPE_EMOJIS['other'])} "
        "New Content Submission",
        CONTENT_TYPE_COLORS.get(content_type, CONTENT_TYPE_COLORS["other"]),
        now,
    )
    if form.thumbnail_url:
        embed.set_thumbnail(url=form.thumbnail_url)
    pathway_emoji = PATHWAY_EMOJIS.get(pathway, PATHWAY_EMOJIS["general"])
    embed.add_field(name="👤 Submitted By", value=_value(form.author, "Anonymous"), inline=True)
    embed.add_field(
        name="💬 Discord", value=_value(form.author_discord, "Not provided"), inline=True
    )
    embed.add_field(
        name=f"{pathway_emoji} Pathway", value=_value(form.pathway.upper(), "GENERAL"), inline=True
    )
    embed.add_field(
        name="📋 Content Type", value=_value(form.content_type.upper(), "OTHER"), inline=True
    )
    embed.add_field(name="🏷️ Tags", value=_value(", ".join(form.tags), "None"), inline=True)
    embed.add_field(
        name="📅 Publish Date (if approved)",
        value=_value(form.publish_date, "Immediate"),
        inline=True,
    )
    embed.add_field(name="📰 Title", value=_value(form.title, "Untitled", 250), inline=False)
    embed.add_field(
        name="📝 Description", value=_value(form.description, "No description", 500), inline=False
    )
    embed.add_field(
        name="📄 Content Preview", value=_value(form.content, "No content", 800), inline=False
    )
    embed.add_field(name="🔗 External Links", value=_value(form.links, "None", 300), inline=False)
    _finish(
        embed,
        id_label="Submission ID",
        correlation_id=correlation_id,
        system="Content Submission System",
        icon_url=icon_url,
        now=now,
    )
    content = (
        f"**New {form.content_type.upper() or 'CONTENT'} submission for "
        f"{form.pathway.upper() or 'GENERAL'} pathway!**"
    )
    return embed, content


def build_complaint_embed(
    form: ComplaintForm, correlation_id: str, *, icon_url: str, now: datetime
) -> tuple[discord.Embed, str | None]:
    severity = form.severity.lower()
    embed = _new_embed(
        f"{SEVERITY_EMOJIS.get(severity, SEVERITY_EMOJIS['medium'])} New Member Complaint",
        SEVERITY_COLORS.get(severity, SEVERITY_COLORS["medium"]),
        now,
    )
    embed.add_field(name="👤 Reporter", value=_value(form.reporter, "Anonymous"), inline=True)
    embed.add_field(
        name="📧 Reporter Email", value=_value(form.reporter_email, "Not provided"), inline=True
    )
    embed.add_field(
        name="🎯 Reported User", value=_value(form.reported_user, "Not specified"), inline=True
    )
    embed.add_field(name="⚖️ Severity", value=_value(form.severity.upper(), "MEDIUM"), inline=True)
    embed.add_field(name="📋 Category", value=_value(form.category, "General"), inline=True)
    embed.add_field(
        name="📅 Incident Date", value=_value(form.incident_date, "Not provided"), inline=True
    )
    embed.add_field(
        name="📍 Where Did This Happen?",
        value=_value(form.location, "Not specified"),
        inline=False,
    )
    embed.add_field(
        name="📝 Description", value=_value(form.description, "Not provided", 800), inline=False
    )
    embed.add_field(
        name="🔗 Evidence/Links",
        value=_value(form.evidence, "No evidence provided", 500),
        inline=False,
    )
    embed.add_field(name="👥 Witnesses", value=_value(form.witnesses, "None mentioned"), inline=False)
    embed.add_field(
        name="🔄 Previous Reports?", value="Yes" if form.previous_reports else "No", inline=True
    )
    embed.add_field(
        name="⚡ Immediate Action Needed?",
        value="YES - URGENT" if form.urgent else "No",
        inline=True,
    )
    _finish(
        embed,
        id_label="Complaint ID",
        correlation_id=correlation_id,
        system="Complaint System",
        icon_url=icon_url,
        now=now,
    )
    if form.urgent:
        content = "@here **🚨 URGENT COMPLAINT - Immediate Attention Required!**"
    else:
        content = f"**New {form.severity.upper() or 'MEDIUM'} Severity Complaint Received**"
    return embed, content


def build_application_embed(
    form: StaffApplicationForm, correlation_id: str, *, icon_url: str, now: datetime
) -> tuple[discord.Embed, str | None]:
    embed = _new_embed(
        "👔 New Staff Application",
        POSITION_COLORS.get(form.position.lower(), POSITION_COLORS["other"]),
        now,
    )
    embed.set_thumbnail(url=form.discord_avatar or icon_url)
    embed.add_field(name="👤 Applicant Name", value=_value(form.name, "Not provided"), inline=True)
    embed.add_field(name="📧 Email", value=_value(form.email, "Not provided"), inline=True)
    embed.add_field(name="💬 Discord", value=_value(form.discord, "Not provided"), inline=True)
    embed.add_field(
        name="🎯 Position Applied For", value=_value(form.position, "Not specified"), inline=False
    )
    embed.add_field(name="📅 Age", value=_value(form.age, "Not provided"), inline=True)
    embed.add_field(name="🌍 Timezone", value=_value(form.timezone, "Not provided"), inline=True)
    embed.add_field(
        name="⏰ Availability (hours/week)",
        value=_value(form.availability, "Not provided"),
        inline=True,
    )
    embed.add_field(
        name="🎓 Experience", value=_value(form.experience, "Not provided", 500), inline=False
    )
    embed.add_field(
        name="💡 Why Join Our Team?", value=_value(form.motivation, "Not provided", 500), inline=False
    )
    embed.add_field(
        name="🔧 Relevant Skills", value=_value(form.skills, "Not provided", 300), inline=False
    )
    _finish(
        embed,
        id_label="Application ID",
        correlation_id=correlation_id,
        system="Staff Application System",
        icon_url=icon_url,
        now=now,
    )
    return embed, f"@here **New {form.position or 'Staff'} Application Received!**"


EmbedBuilder = Callable[..., tuple[discord.Embed, str | None]]

EMBED_BUILDERS: dict[str, EmbedBuilder] = {
    "contact": build_contact_embed,
    "appeals": build_appeal_embed,
    "submissions": build_submission_embed,
    "complaints": build_complaint_embed,
    "applications": build_application_embed,
}


def build_notification_message(
    form: NotificationForm,
    correlation_id: str,
    *,
    site_url: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the incoming-webhook JSON body for *form*.

    ``allowed_mentions`` only opens up @here when our own content line asks
    for it; user text has already had mass mentions stripped.
    """
    timestamp = now or datetime.now(UTC)
    builder = EMBED_BUILDERS[form.kind]
    embed, content = builder(
        form,
        correlation_id,
        icon_url=f"{site_url.rstrip('/')}{LOGO_PATH}",
        now=timestamp,
    )
    payload: dict[str, Any] = {"embeds": [embed.to_dict()]}
    if content:
        payload["content"] = content
        pings = content.startswith("@here")
        payload["allowed_mentions"] = {"parse": ["everyone"] if pings else []}
    return payload
