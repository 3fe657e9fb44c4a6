"""Tests for Storage."""

from datetime import datetime, timedelta, timezone

import pytest

from inbox.models import (
    ConversationFilters,
    ConversationStatus,
    Direction,
    Platform,
    TraceEvent,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates all tables."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            assert "conversations" in tables
            assert "messages" in tables
            assert "trace_events" in tables

    async def test_uninitialized_storage_raises(self):
        from inbox.storage import Storage

        st = Storage(":memory:")
        with pytest.raises(RuntimeError):
            await st.get_conversation("c1")


class TestStorageConversations:
    """Tests for Conversation storage."""

    async def test_get_conversation(self, storage, make_conversation):
        """Test retrieving a conversation."""
        await make_conversation("c1", tags=["vip"], participant_name="Alice")

        conv = await storage.get_conversation("c1")
        assert conv is not None
        assert conv.platform is Platform.WHATSAPP
        assert conv.tags == ["vip"]
        assert conv.participant_name == "Alice"
        assert conv.last_message_at == T0

    async def test_get_nonexistent_conversation(self, storage):
        """Test retrieving nonexistent conversation returns None."""
        assert await storage.get_conversation("missing") is None

    async def test_find_by_platform_identity(self, storage, make_conversation):
        await make_conversation("c1", platform=Platform.TELEGRAM, platform_conversation_id="tg-9")

        found = await storage.find_conversation(Platform.TELEGRAM, "tg-9")
        assert found is not None and found.id == "c1"
        assert await storage.find_conversation(Platform.WHATSAPP, "tg-9") is None

    async def test_list_orders_by_activity(self, storage, make_conversation):
        """Test that list returns the most recent activity first."""
        await make_conversation("old", last_message_at=T0)
        await make_conversation("new", last_message_at=T0 + timedelta(hours=1))
        await make_conversation("mid", last_message_at=T0 + timedelta(minutes=5))

        conversations = await storage.list_conversations()
        assert [c.id for c in conversations] == ["new", "mid", "old"]

    async def test_list_filters(self, storage, make_conversation):
        """Test status, platform, tag, search and archive filters."""
        await make_conversation("c1", status=ConversationStatus.READ, tags=["billing"])
        await make_conversation("c2", platform=Platform.INSTAGRAM, participant_name="Bob Lee")
        await make_conversation("c3", archived=True)

        read = await storage.list_conversations(
            ConversationFilters(status=[ConversationStatus.READ])
        )
        assert [c.id for c in read] == ["c1"]

        insta = await storage.list_conversations(
            ConversationFilters(platform=[Platform.INSTAGRAM])
        )
        assert [c.id for c in insta] == ["c2"]

        tagged = await storage.list_conversations(ConversationFilters(tags=["billing"]))
        assert [c.id for c in tagged] == ["c1"]

        search = await storage.list_conversations(ConversationFilters(search="bob"))
        assert [c.id for c in search] == ["c2"]

        default = await storage.list_conversations()
        assert "c3" not in {c.id for c in default}

        everything = await storage.list_conversations(
            ConversationFilters(include_archived=True)
        )
        assert {c.id for c in everything} == {"c1", "c2", "c3"}

    async def test_set_status_reports_change(self, storage, make_conversation):
        await make_conversation("c1")

        assert await storage.set_conversation_status("c1", ConversationStatus.READ) is True
        assert await storage.set_conversation_status("c1", ConversationStatus.READ) is False

    async def test_preview_keeps_latest_activity(self, storage, make_conversation):
        """Test that an older message changes neither preview nor activity time."""
        await make_conversation(
            "c1", last_message_at=T0 + timedelta(hours=1), status=ConversationStatus.READ
        )

        await storage.update_conversation_preview(
            "c1", text="late arrival", direction="inbound", at=T0,
            status=ConversationStatus.UNREAD,
        )
        conv = await storage.get_conversation("c1")
        assert conv.last_message_text is None
        assert conv.status is ConversationStatus.READ
        assert conv.last_message_at == T0 + timedelta(hours=1)

    async def test_stats(self, storage, make_conversation):
        await make_conversation("c1")
        await make_conversation("c2", status=ConversationStatus.READ)
        await make_conversation("c3", archived=True)

        stats = await storage.get_inbox_stats()
        assert stats.unread_count == 1
        assert stats.read_count == 1
        assert stats.archived_count == 1


class TestStorageMessages:
    """Tests for Message storage."""

    async def test_save_and_get_messages(self, storage, make_message):
        """Test saving and retrieving messages in sent order."""
        await storage.save_message(make_message("m2", offset=10))
        await storage.save_message(make_message("m1", offset=0))

        messages = await storage.get_messages("conv-1")
        assert [m.id for m in messages] == ["m1", "m2"]

    async def test_duplicate_id_ignored(self, storage, make_message):
        """Test that saving the same id twice keeps one row."""
        assert await storage.save_message(make_message("m1")) is True
        assert await storage.save_message(make_message("m1", text="changed")) is False

        messages = await storage.get_messages("conv-1")
        assert len(messages) == 1
        assert messages[0].text_content == "message m1"

    async def test_equal_timestamps_keep_insertion_order(self, storage, make_message):
        for mid in ["b", "a", "c"]:
            await storage.save_message(make_message(mid, offset=0))

        messages = await storage.get_messages("conv-1")
        assert [m.id for m in messages] == ["b", "a", "c"]

    async def test_limit_returns_newest_oldest_first(self, storage, make_message):
        for i in range(6):
            await storage.save_message(make_message(f"m{i}", offset=i))

        messages = await storage.get_messages("conv-1", limit=3)
        assert [m.id for m in messages] == ["m3", "m4", "m5"]

    async def test_mark_messages_read(self, storage, make_message):
        await storage.save_message(make_message("m1"))
        await storage.save_message(make_message("m2", direction=Direction.OUTBOUND, is_read=True))

        assert await storage.mark_messages_read("conv-1") == 1
        messages = await storage.get_messages("conv-1")
        assert all(m.is_read for m in messages)


class TestStorageTraceEvents:
    """Tests for TraceEvent storage."""

    async def test_save_and_filter_trace_events(self, storage):
        """Test saving trace events and filtering them."""
        now = datetime.now(timezone.utc)
        await storage.save_trace_event(
            TraceEvent(id="t1", event_type="message_ingested", actor="inbound_ingestor",
                       data={"conversation_id": "c1"}, timestamp=now - timedelta(minutes=5))
        )
        await storage.save_trace_event(
            TraceEvent(id="t2", event_type="dispatch_failed", actor="outbound_dispatcher",
                       data={"stage": "delivery"}, timestamp=now)
        )

        events = await storage.get_trace_events()
        assert [e.id for e in events] == ["t2", "t1"]

        failed = await storage.get_trace_events(event_types=["dispatch_failed"])
        assert [e.id for e in failed] == ["t2"]
        assert failed[0].data == {"stage": "delivery"}

        recent = await storage.get_trace_events(after=now - timedelta(minutes=1))
        assert [e.id for e in recent] == ["t2"]

        by_actor = await storage.get_trace_events(actor="inbound_ingestor")
        assert [e.id for e in by_actor] == ["t1"]

    async def test_clear(self, storage, make_conversation, make_message):
        await make_conversation("conv-1")
        await storage.save_message(make_message("m1"))

        await storage.clear()

        assert await storage.get_conversation("conv-1") is None
        assert await storage.get_messages("conv-1") == []
