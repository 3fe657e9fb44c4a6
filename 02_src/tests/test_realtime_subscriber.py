"""Tests for RealtimeSubscriber and the bus-backed transport."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from inbox.errors import Timeout, TransportError
from inbox.models import BusMessage, Topic, message_to_row
from inbox.realtime import RealtimeSubscriber, SubscriberState


@pytest.fixture
def make_subscriber(transport, message_log, tracker):
    def _make(**kwargs) -> RealtimeSubscriber:
        kwargs.setdefault("reconnect_attempts", 0)
        kwargs.setdefault("backoff", 0.001)
        kwargs.setdefault("backoff_max", 0.01)
        kwargs.setdefault("timeout", 1)
        return RealtimeSubscriber(transport, message_log, tracker, **kwargs)

    return _make


@pytest.fixture
def publish_insert(event_bus):
    async def _publish(row: dict) -> None:
        await event_bus.publish(
            BusMessage(
                id="bus",
                topic=Topic.MESSAGE_INSERTED,
                payload=row,
                source="test",
                timestamp=datetime.now(timezone.utc),
            )
        )

    return _publish


class TestSubscriberAttach:
    """Tests for attach() and detach()."""

    async def test_attach(self, make_subscriber, transport):
        """Test DETACHED -> ATTACHED with one open channel."""
        subscriber = make_subscriber()
        assert subscriber.state is SubscriberState.DETACHED

        await subscriber.attach("conv-1")

        assert subscriber.state is SubscriberState.ATTACHED
        assert subscriber.conversation_id == "conv-1"
        assert transport.open_channels == 1

    async def test_inserts_reach_log(
        self, make_subscriber, message_log, make_message, publish_insert
    ):
        """Test that inserts for the attached conversation are appended."""
        subscriber = make_subscriber()
        await subscriber.attach("conv-1")

        await publish_insert(message_to_row(make_message("m1", conversation_id="conv-1")))
        await publish_insert(message_to_row(make_message("x1", conversation_id="conv-2")))

        assert [m.id for m in message_log.messages()] == ["m1"]

    async def test_duplicate_insert_appended_once(
        self, make_subscriber, message_log, make_message, publish_insert
    ):
        subscriber = make_subscriber()
        await subscriber.attach("conv-1")
        row = message_to_row(make_message("m1", conversation_id="conv-1"))

        await publish_insert(row)
        await publish_insert(row)

        assert len(message_log) == 1

    async def test_switch_detaches_previous(
        self, make_subscriber, transport, message_log, make_message, publish_insert
    ):
        """Test that attaching elsewhere releases the prior channel first."""
        subscriber = make_subscriber()
        await subscriber.attach("conv-1")
        message_log.reset("conv-2")

        await subscriber.attach("conv-2")
        await publish_insert(message_to_row(make_message("m1", conversation_id="conv-1")))

        assert transport.open_channels == 1
        assert subscriber.conversation_id == "conv-2"
        assert len(message_log) == 0

    async def test_detach(self, make_subscriber, transport, storage):
        subscriber = make_subscriber()
        await subscriber.attach("conv-1")

        await subscriber.detach()
        await subscriber.detach()

        assert subscriber.state is SubscriberState.DETACHED
        assert transport.open_channels == 0
        events = await storage.get_trace_events(event_types=["subscriber_detached"])
        assert len(events) == 1

    async def test_malformed_row_dropped(self, make_subscriber, message_log, publish_insert):
        """Test that a row that doesn't describe a message is ignored."""
        subscriber = make_subscriber()
        await subscriber.attach("conv-1")

        await publish_insert({"id": "m1", "conversation_id": "conv-1", "direction": "inbound"})

        assert len(message_log) == 0
        assert subscriber.state is SubscriberState.ATTACHED


class TestSubscriberFailures:
    """Tests for acknowledgement failures."""

    async def test_disconnected_transport(self, make_subscriber, transport):
        """Test that attach raises and leaves the subscriber DETACHED."""
        transport.connected = False
        subscriber = make_subscriber()

        with pytest.raises(TransportError):
            await subscriber.attach("conv-1")

        assert subscriber.state is SubscriberState.DETACHED
        assert transport.open_channels == 0

    async def test_ack_timeout(self, message_log, tracker):
        """Test that a subscribe with no acknowledgement times out."""

        async def never_acknowledged(on_insert, on_error):
            await asyncio.sleep(10)

        channel = Mock()
        channel.subscribe = never_acknowledged
        channel.close = AsyncMock()
        transport = Mock()
        transport.channel.return_value = channel

        subscriber = RealtimeSubscriber(transport, message_log, tracker, timeout=0.01)

        with pytest.raises(Timeout):
            await subscriber.attach("conv-1")

        assert subscriber.state is SubscriberState.DETACHED
        channel.close.assert_awaited()

    async def test_unexpected_subscribe_error(self, message_log, tracker):
        channel = Mock()
        channel.subscribe = AsyncMock(side_effect=OSError("socket closed"))
        channel.close = AsyncMock()
        transport = Mock()
        transport.channel.return_value = channel

        subscriber = RealtimeSubscriber(transport, message_log, tracker, timeout=1)

        with pytest.raises(TransportError):
            await subscriber.attach("conv-1")
        assert subscriber.state is SubscriberState.DETACHED


class TestSubscriberReconnect:
    """Tests for channel errors while attached."""

    async def test_error_without_reconnect_detaches(self, make_subscriber, transport, storage):
        """Test that with no reconnect attempts a channel error detaches."""
        subscriber = make_subscriber(reconnect_attempts=0)
        await subscriber.attach("conv-1")

        await transport.disconnect("network down")

        assert subscriber.state is SubscriberState.DETACHED
        assert transport.open_channels == 0
        events = await storage.get_trace_events(event_types=["subscriber_lost"])
        assert len(events) == 1

    async def test_reconnects_and_resyncs(self, make_subscriber, transport, storage):
        """Test RECONNECTING -> ATTACHED once the transport is back."""
        on_resync = AsyncMock()
        subscriber = make_subscriber(reconnect_attempts=3, on_resync=on_resync)
        await subscriber.attach("conv-1")

        await transport.disconnect("network down")
        assert subscriber.state is SubscriberState.RECONNECTING
        task = subscriber._reconnect_task

        transport.reconnect()
        await asyncio.wait_for(task, 1)

        assert subscriber.state is SubscriberState.ATTACHED
        assert transport.open_channels == 1
        on_resync.assert_awaited_once_with("conv-1")
        events = await storage.get_trace_events(event_types=["subscriber_reconnected"])
        assert len(events) == 1

    async def test_gives_up_after_attempts(self, make_subscriber, transport, storage):
        """Test that exhausted retries end DETACHED."""
        subscriber = make_subscriber(reconnect_attempts=2)
        await subscriber.attach("conv-1")

        await transport.disconnect("network down")
        await asyncio.wait_for(subscriber._reconnect_task, 1)

        assert subscriber.state is SubscriberState.DETACHED
        assert transport.open_channels == 0
        events = await storage.get_trace_events(event_types=["subscriber_lost"])
        assert events[0].data["attempts"] == 2

    async def test_detach_cancels_reconnect(self, make_subscriber, transport):
        subscriber = make_subscriber(reconnect_attempts=5, backoff=1, backoff_max=1)
        await subscriber.attach("conv-1")
        await transport.disconnect("network down")

        await subscriber.detach()

        assert subscriber.state is SubscriberState.DETACHED
        assert subscriber._reconnect_task is None
