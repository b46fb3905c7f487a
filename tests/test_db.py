"""Tests for database layer: engine, ORM models, repository round-trips."""

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from conclave.db.repository import Repository

CONTACT = {
    "name": "Jane",
    "email": "jane@example.com",
    "message": "A message that is long enough.",
}


class TestTableCreation:
    async def test_all_tables_created(self, engine: AsyncEngine):
        async with engine.connect() as conn:
            tables = await conn.run_sync(
                lambda sync_conn: sync_conn.dialect.get_table_names(sync_conn)
            )
        expected = {
            "users",
            "sync_log",
            "moderation_logs",
            "contact_submissions",
            "appeals",
            "complaints",
            "content_submissions",
            "staff_applications",
        }
        assert expected.issubset(set(tables))


class TestUsers:
    async def test_upsert_creates_then_updates(self, repo: Repository):
        user, created = await repo.upsert_user("111", "ann", roles=["1"], refresh_token="r1")
        assert created
        assert user.id is not None

        again, created = await repo.upsert_user("111", "ann2", roles=["2"], refresh_token="r2")
        assert not created
        assert again.id == user.id
        assert again.username == "ann2"
        assert again.roles == ["2"]
        assert again.refresh_token == "r2"

    async def test_lookup_by_discord_id(self, repo: Repository):
        user, _ = await repo.upsert_user("111", "ann")
        assert (await repo.get_user_by_discord_id("111")).id == user.id
        assert await repo.get_user_by_discord_id("999") is None

    async def test_leave_and_rejoin(self, repo: Repository):
        await repo.upsert_user("111", "ann", is_server_member=True)
        left = await repo.mark_member_left("111")
        assert left is not None
        assert left.left_at is not None
        assert not left.is_server_member

        joined = await repo.mark_member_joined("111")
        assert joined is not None
        assert joined.left_at is None
        assert joined.is_server_member

    async def test_unknown_member_events_are_noops(self, repo: Repository):
        assert await repo.mark_member_left("404") is None
        assert await repo.update_user_roles("404", ["1"]) is None

    async def test_logout_timestamp(self, repo: Repository):
        user, _ = await repo.upsert_user("111", "ann")
        assert user.last_logout is None
        await repo.mark_user_logout(user.id)
        assert user.last_logout is not None


class TestSyncLog:
    async def test_filter_by_type(self, repo: Repository):
        await repo.log_sync_event("contact_form", "success", {"contactId": "MSG-1"})
        await repo.log_sync_event("appeal", "failed", error_message="boom")
        await repo.log_sync_event("contact_form", "validation_failed")

        contact = await repo.get_sync_events_by_type("contact_form")
        assert [e.status for e in contact] == ["success", "validation_failed"]
        assert contact[0].details == {"contactId": "MSG-1"}

    async def test_recent_newest_first(self, repo: Repository):
        for i in range(3):
            await repo.log_sync_event(f"event_{i}", "success")
        recent = await repo.get_recent_sync_events(limit=2)
        assert [e.event_type for e in recent] == ["event_2", "event_1"]


class TestSubmissions:
    async def test_store_starts_pending(self, repo: Repository):
        row = await repo.store_submission("contact", "MSG-1", CONTACT, ip_address="1.2.3.4")
        assert row.status == "pending"
        assert not row.delivered
        assert row.ip_address == "1.2.3.4"

    async def test_list_and_filter(self, repo: Repository):
        await repo.store_submission("contact", "MSG-1", CONTACT)
        await repo.store_submission("contact", "MSG-2", CONTACT)
        await repo.set_submission_status("contact", "MSG-1", "rejected", "mod")

        assert len(await repo.list_submissions("contact")) == 2
        rejected = await repo.list_submissions("contact", status="rejected")
        assert [r.correlation_id for r in rejected] == ["MSG-1"]
        assert rejected[0].reviewed_by == "mod"
        assert rejected[0].reviewed_at is not None

    async def test_set_status_missing_record(self, repo: Repository):
        assert await repo.set_submission_status("contact", "MSG-404", "approved", "mod") is None

    async def test_invalid_status(self, repo: Repository):
        await repo.store_submission("contact", "MSG-1", CONTACT)
        with pytest.raises(ValueError, match="Invalid submission status"):
            await repo.set_submission_status("contact", "MSG-1", "archived", "mod")

    async def test_unknown_kind(self, repo: Repository):
        with pytest.raises(ValueError, match="Unknown submission kind"):
            await repo.list_submissions("memes")
