"""Tests for the Discord embed payloads."""

from datetime import UTC, datetime

from conclave.discord.embeds import GOLD, build_notification_message
from conclave.webhooks.forms import ComplaintForm, ContactForm, StaffApplicationForm

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
SITE = "https://conclave.example"


def _fields(payload: dict) -> dict[str, str]:
    return {f["name"]: f["value"] for f in payload["embeds"][0]["fields"]}


class TestContactEmbed:
    def test_shape(self):
        form = ContactForm.model_validate(
            {"name": "Jane", "email": "jane@example.com", "message": "Hello there, friends"}
        )
        payload = build_notification_message(form, "MSG-ABC-123456", site_url=SITE, now=NOW)

        embed = payload["embeds"][0]
        assert embed["title"] == "📬 New Contact Form Submission"
        assert embed["color"] == GOLD
        assert embed["footer"]["text"] == "Contact Form System | The Conclave Realm • MSG-ABC-123456"
        assert embed["footer"]["icon_url"] == f"{SITE}/Assets/Images/CNS_logo1.png"
        fields = _fields(payload)
        assert fields["📊 Message ID"] == "`MSG-ABC-123456`"
        assert fields["🕐 Submitted"] == f"<t:{int(NOW.timestamp())}:F>"
        assert fields["📋 Subject"] == "General Inquiry"
        assert "content" not in payload

    def test_long_message_truncated(self):
        form = ContactForm.model_validate(
            {"name": "Jane", "email": "jane@example.com", "message": "m" * 1500}
        )
        payload = build_notification_message(form, "MSG-1", site_url=SITE, now=NOW)
        assert len(_fields(payload)["💬 Message"]) == 1000


class TestMentions:
    def _complaint(self, urgent: bool) -> ComplaintForm:
        return ComplaintForm.model_validate(
            {
                "reportedUser": "troll",
                "severity": "critical",
                "category": "Harassment",
                "description": "d" * 60,
                "urgent": urgent,
            }
        )

    def test_urgent_complaint_pings_here(self):
        payload = build_notification_message(self._complaint(True), "CPL-1", site_url=SITE, now=NOW)
        assert payload["content"].startswith("@here")
        assert payload["allowed_mentions"] == {"parse": ["everyone"]}
        assert payload["embeds"][0]["color"] == 0x8B0000

    def test_routine_complaint_does_not_ping(self):
        payload = build_notification_message(self._complaint(False), "CPL-1", site_url=SITE, now=NOW)
        assert payload["content"] == "**New CRITICAL Severity Complaint Received**"
        assert payload["allowed_mentions"] == {"parse": []}

    def test_application_uses_logo_without_avatar(self):
        form = StaffApplicationForm.model_validate({"name": "Jane", "position": "moderator"})
        payload = build_notification_message(form, "APP-1", site_url=SITE + "/", now=NOW)
        embed = payload["embeds"][0]
        assert embed["thumbnail"]["url"] == f"{SITE}/Assets/Images/CNS_logo1.png"
        assert payload["content"] == "@here **New moderator Application Received!**"
