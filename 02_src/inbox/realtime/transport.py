"""Realtime change-subscription transport."""

from typing import Awaitable, Callable, Protocol

from ..errors import TransportError
from ..event_bus import IEventBus, Subscription
from ..logging_config import get_logger
from ..models import BusMessage, Topic

logger = get_logger(__name__)


InsertHandler = Callable[[dict], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None]]


class IRealtimeChannel(Protocol):
    """A push channel of inserted message rows for one conversation."""

    async def subscribe(self, on_insert: InsertHandler, on_error: ErrorHandler) -> None:
        """Open the channel; returns once the transport acknowledges it."""
        ...

    async def close(self) -> None:
        """Release the channel. Safe to call more than once."""
        ...


class IRealtimeTransport(Protocol):
    """Factory of realtime channels."""

    def channel(self, conversation_id: str) -> IRealtimeChannel:
        """Create an unopened channel filtered on a conversation."""
        ...


class BusChannel:
    """Channel over the in-process EventBus, filtered on conversation_id."""

    def __init__(self, transport: "BusRealtimeTransport", conversation_id: str):
        self._transport = transport
        self._conversation_id = conversation_id
        self._subscription: Subscription | None = None
        self._on_insert: InsertHandler | None = None
        self._on_error: ErrorHandler | None = None

    @property
    def conversation_id(self) -> str:
        return self._conversation_id

    @property
    def is_open(self) -> bool:
        return self._subscription is not None

    async def subscribe(self, on_insert: InsertHandler, on_error: ErrorHandler) -> None:
        if self._subscription is not None:
            raise TransportError("Channel already subscribed")
        if not self._transport.connected:
            raise TransportError("Realtime transport is disconnected")

        self._on_insert = on_insert
        self._on_error = on_error
        self._subscription = self._transport.event_bus.subscribe(
            Topic.MESSAGE_INSERTED,
            self._deliver,
            where=lambda row: row.get("conversation_id") == self._conversation_id,
        )
        self._transport.register(self)

    async def close(self) -> None:
        if self._subscription is None:
            return
        self._transport.event_bus.unsubscribe(self._subscription)
        self._subscription = None
        self._transport.unregister(self)

    async def fail(self, error: Exception) -> None:
        """Drop the channel and report the error to its owner."""
        on_error = self._on_error
        await self.close()
        if on_error is not None:
            await on_error(error)

    async def _deliver(self, bus_message: BusMessage) -> None:
        if self._on_insert is not None:
            await self._on_insert(bus_message.payload)


class BusRealtimeTransport:
    """Realtime transport backed by EventBus change notifications."""

    def __init__(self, event_bus: IEventBus):
        self.event_bus = event_bus
        self.connected = True
        self._channels: list[BusChannel] = []

    def channel(self, conversation_id: str) -> BusChannel:
        return BusChannel(self, conversation_id)

    def register(self, channel: BusChannel) -> None:
        self._channels.append(channel)

    def unregister(self, channel: BusChannel) -> None:
        if channel in self._channels:
            self._channels.remove(channel)

    @property
    def open_channels(self) -> int:
        return len(self._channels)

    async def disconnect(self, reason: str = "connection lost") -> None:
        """Simulate a transport drop: every open channel fails."""
        logger.warning("Realtime transport disconnected: %s", reason)
        self.connected = False
        for channel in list(self._channels):
            await channel.fail(TransportError(reason))

    def reconnect(self) -> None:
        self.connected = True
