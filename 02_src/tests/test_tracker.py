"""Tests for Tracker."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

from inbox.models import BusMessage, Topic


class TestTrackerTrack:
    """Tests for Tracker.track()."""

    async def test_track_creates_event(self, tracker, storage):
        """Test that track() saves a TraceEvent."""
        await tracker.track("message_dispatched", "outbound_dispatcher", {"conversation_id": "c1"})

        events = await storage.get_trace_events()
        assert len(events) == 1
        assert events[0].event_type == "message_dispatched"
        assert events[0].actor == "outbound_dispatcher"
        assert events[0].data == {"conversation_id": "c1"}

    async def test_track_swallows_storage_errors(self, tracker, storage):
        """Test that a storage failure doesn't break the traced operation."""
        storage.save_trace_event = AsyncMock(side_effect=RuntimeError("disk full"))

        await tracker.track("message_dispatched", "outbound_dispatcher", {})

        storage.save_trace_event.assert_awaited_once()


class TestTrackerBusSubscription:
    """Tests for Tracker EventBus subscription."""

    async def test_records_change_notifications(self, tracker, event_bus, storage):
        """Test that published changes become trace events after start()."""
        await tracker.start()

        await event_bus.publish(
            BusMessage(
                id="bus1",
                topic=Topic.MESSAGE_INSERTED,
                payload={"id": "m1", "conversation_id": "c1"},
                source="inbound_ingestor",
                timestamp=datetime.now(timezone.utc),
            )
        )

        events = await storage.get_trace_events(event_types=["change_published"])
        assert len(events) == 1
        assert events[0].data["topic"] == "message_inserted"
        assert events[0].data["row_id"] == "m1"
        assert events[0].data["conversation_id"] == "c1"

    async def test_stop_unsubscribes(self, tracker, event_bus):
        await tracker.start()
        assert event_bus.subscriber_count(Topic.MESSAGE_INSERTED) == 1

        await tracker.stop()
        assert event_bus.subscriber_count(Topic.MESSAGE_INSERTED) == 0
        assert event_bus.subscriber_count(Topic.CONVERSATION_UPDATED) == 0
