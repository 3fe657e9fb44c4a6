"""Tracker implementation for creating TraceEvents."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..event_bus import IEventBus, Subscription
from ..logging_config import get_logger
from ..models import BusMessage, TraceEvent, Topic
from ..storage import IStorage

logger = get_logger(__name__)


class ITracker(Protocol):
    """Creating TraceEvents. Two channels: EventBus subscription + direct calls."""

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to Storage."""
        ...


class Tracker:
    """Creates TraceEvents via EventBus subscription and direct track() calls."""

    def __init__(self, event_bus: IEventBus, storage: IStorage):
        self._event_bus = event_bus
        self._storage = storage
        self._subscriptions: list[Subscription] = []

    async def start(self) -> None:
        """Subscribe to all EventBus topics."""
        for topic in Topic:
            self._subscriptions.append(
                self._event_bus.subscribe(topic, self._handle_bus_message)
            )

    async def stop(self) -> None:
        """Unsubscribe from EventBus."""
        for subscription in self._subscriptions:
            self._event_bus.unsubscribe(subscription)
        self._subscriptions.clear()

    async def _handle_bus_message(self, bus_message: BusMessage) -> None:
        """Record a change notification."""
        payload = bus_message.payload

        await self.track(
            event_type="change_published",
            actor="event_bus",
            data={
                "topic": bus_message.topic.value,
                "source": bus_message.source,
                "row_id": payload.get("id"),
                "conversation_id": payload.get("conversation_id", payload.get("id")),
            },
        )

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to Storage.

        Tracing never breaks the operation being traced: storage errors are logged.
        """
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            await self._storage.save_trace_event(trace_event)
        except Exception as e:
            logger.warning("Failed to record trace event %s: %s", event_type, e)
