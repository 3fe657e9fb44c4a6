"""RealtimeSubscriber state machine."""

import asyncio
from enum import Enum
from typing import Awaitable, Callable

from .. import config
from ..errors import TransportError, with_timeout
from ..logging_config import get_logger
from ..messages import MessageLog
from ..models import message_from_row
from ..tracker import ITracker
from .transport import IRealtimeChannel, IRealtimeTransport

logger = get_logger(__name__)


ResyncCallback = Callable[[str], Awaitable[object]]


class SubscriberState(str, Enum):
    DETACHED = "detached"
    ATTACHING = "attaching"
    ATTACHED = "attached"
    RECONNECTING = "reconnecting"


class RealtimeSubscriber:
    """Keeps at most one live channel and forwards inserts to a MessageLog.

    DETACHED -> ATTACHING -> ATTACHED -> DETACHED on detach(). A transport
    error moves ATTACHED -> RECONNECTING, which retries with exponential
    backoff and returns to ATTACHED, or gives up to DETACHED. With
    reconnect_attempts=0 a transport error detaches immediately.
    """

    def __init__(
        self,
        transport: IRealtimeTransport,
        message_log: MessageLog,
        tracker: ITracker,
        reconnect_attempts: int | None = None,
        backoff: float | None = None,
        backoff_max: float | None = None,
        timeout: float | None = None,
        on_resync: ResyncCallback | None = None,
    ):
        default_backoff, default_backoff_max = config.reconnect_backoff()
        self._transport = transport
        self._log = message_log
        self._tracker = tracker
        self._reconnect_attempts = (
            config.reconnect_attempts() if reconnect_attempts is None else reconnect_attempts
        )
        self._backoff = default_backoff if backoff is None else backoff
        self._backoff_max = default_backoff_max if backoff_max is None else backoff_max
        self._timeout = config.call_timeout() if timeout is None else timeout
        self._on_resync = on_resync

        self._state = SubscriberState.DETACHED
        self._conversation_id: str | None = None
        self._channel: IRealtimeChannel | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> SubscriberState:
        return self._state

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    async def attach(self, conversation_id: str) -> None:
        """Attach to a conversation, detaching any previous channel first.

        Raises TransportError (or Timeout) if the transport does not
        acknowledge; the subscriber is then DETACHED.
        """
        async with self._lock:
            if self._state is not SubscriberState.DETACHED:
                await self._detach()

            self._conversation_id = conversation_id
            self._set_state(SubscriberState.ATTACHING)
            try:
                await self._open_channel()
            except TransportError:
                self._set_state(SubscriberState.DETACHED)
                raise
            self._set_state(SubscriberState.ATTACHED)

        await self._tracker.track(
            event_type="subscriber_attached",
            actor="realtime_subscriber",
            data={"conversation_id": conversation_id},
        )

    async def detach(self) -> None:
        """Release the channel. Safe in any state."""
        async with self._lock:
            if self._state is SubscriberState.DETACHED and self._channel is None:
                return
            conversation_id = self._conversation_id
            await self._detach()

        await self._tracker.track(
            event_type="subscriber_detached",
            actor="realtime_subscriber",
            data={"conversation_id": conversation_id},
        )

    async def _detach(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self._close_channel()
        self._set_state(SubscriberState.DETACHED)

    async def _open_channel(self) -> None:
        channel = self._transport.channel(self._conversation_id)

        async def on_error(error: Exception) -> None:
            if channel is self._channel:
                await self._handle_error(error)

        try:
            await with_timeout(
                channel.subscribe(self._handle_insert, on_error),
                self._timeout,
                "realtime subscribe",
            )
        except TransportError:
            await channel.close()
            raise
        except Exception as e:
            await channel.close()
            raise TransportError(f"Realtime subscribe failed: {e}") from e
        self._channel = channel

    async def _close_channel(self) -> None:
        channel = self._channel
        self._channel = None
        if channel is not None:
            try:
                await channel.close()
            except Exception as e:
                logger.warning("Error closing realtime channel: %s", e)

    async def _handle_insert(self, row: dict) -> None:
        if self._state is not SubscriberState.ATTACHED:
            return

        try:
            message = message_from_row(row)
        except ValueError as e:
            logger.warning(
                "Dropping malformed realtime row: %s",
                e,
                extra={"conversation_id": self._conversation_id},
            )
            return

        if message.conversation_id != self._conversation_id:
            return

        if self._log.append(message):
            logger.debug(
                "Live message appended",
                extra={"conversation_id": message.conversation_id, "message_id": message.id},
            )

    async def _handle_error(self, error: Exception) -> None:
        if self._state is not SubscriberState.ATTACHED:
            return

        logger.warning(
            "Realtime channel error: %s",
            error,
            extra={"conversation_id": self._conversation_id},
        )
        await self._close_channel()

        if self._reconnect_attempts <= 0:
            self._set_state(SubscriberState.DETACHED)
            await self._tracker.track(
                event_type="subscriber_lost",
                actor="realtime_subscriber",
                data={"conversation_id": self._conversation_id, "error": str(error)},
            )
            return

        self._set_state(SubscriberState.RECONNECTING)
        self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        conversation_id = self._conversation_id
        for attempt in range(self._reconnect_attempts):
            delay = min(self._backoff * (2**attempt), self._backoff_max)
            await asyncio.sleep(delay)

            async with self._lock:
                if self._state is not SubscriberState.RECONNECTING:
                    return
                try:
                    await self._open_channel()
                except TransportError as e:
                    logger.info(
                        "Reconnect attempt %s/%s failed: %s",
                        attempt + 1,
                        self._reconnect_attempts,
                        e,
                        extra={"conversation_id": conversation_id},
                    )
                    continue
                self._set_state(SubscriberState.ATTACHED)
                self._reconnect_task = None

            await self._tracker.track(
                event_type="subscriber_reconnected",
                actor="realtime_subscriber",
                data={"conversation_id": conversation_id, "attempts": attempt + 1},
            )
            if self._on_resync is not None:
                try:
                    await self._on_resync(conversation_id)
                except Exception as e:
                    logger.warning("Resync after reconnect failed: %s", e)
            return

        async with self._lock:
            if self._state is SubscriberState.RECONNECTING:
                self._set_state(SubscriberState.DETACHED)
                self._reconnect_task = None

        logger.error(
            "Realtime reconnect gave up after %s attempts",
            self._reconnect_attempts,
            extra={"conversation_id": conversation_id},
        )
        await self._tracker.track(
            event_type="subscriber_lost",
            actor="realtime_subscriber",
            data={"conversation_id": conversation_id, "attempts": self._reconnect_attempts},
        )

    def _set_state(self, state: SubscriberState) -> None:
        if state is not self._state:
            logger.debug(
                "Subscriber %s -> %s",
                self._state.value,
                state.value,
                extra={"conversation_id": self._conversation_id, "state": state.value},
            )
        self._state = state
