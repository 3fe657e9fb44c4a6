"""OutboundDispatcher implementation."""

import asyncio
import os
import uuid
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Protocol

from ..attachments import AttachmentUploader
from ..config import MAX_TEXT_LENGTH, call_timeout
from ..conversations import IConversationStore
from ..delivery import DeliveryRouter
from ..errors import (
    DeliveryFailed,
    TransportError,
    UploadFailed,
    ValidationError,
    with_timeout,
)
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..messages import MessageLog
from ..models import (
    Attachment,
    BusMessage,
    Direction,
    DispatchResult,
    Message,
    MessageType,
    Topic,
    UploadedMedia,
    message_to_row,
)
from ..storage import IStorage
from ..tracker import ITracker

logger = get_logger(__name__)


class IOutboundDispatcher(Protocol):
    """Sends a composed reply and records it."""

    async def send(
        self,
        conversation_id: str,
        text: str | None,
        attachment: Attachment | None = None,
        *,
        log: MessageLog | None = None,
    ) -> DispatchResult:
        """Upload, deliver, record. A message is recorded only if delivered."""
        ...


class OutboundDispatcher:
    """Validate -> upload -> deliver -> record -> refresh preview.

    Sends to one conversation are serialized, so outbound messages are
    recorded in the order their deliveries complete.
    """

    def __init__(
        self,
        store: IConversationStore,
        storage: IStorage,
        event_bus: IEventBus,
        delivery: DeliveryRouter,
        uploader: AttachmentUploader,
        tracker: ITracker,
        sender_id: str | None = None,
        timeout: float | None = None,
    ):
        self._store = store
        self._storage = storage
        self._event_bus = event_bus
        self._delivery = delivery
        self._uploader = uploader
        self._tracker = tracker
        self._sender_id = sender_id or os.getenv("INBOX_SENDER_ID", "business")
        self._timeout = call_timeout() if timeout is None else timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    @staticmethod
    def validate(text: str | None, attachment: Attachment | None) -> str | None:
        """Return the trimmed text, or raise ValidationError."""
        trimmed = text.strip() if text else ""
        if not trimmed and attachment is None:
            raise ValidationError("Type a message or attach a file")
        if len(trimmed) > MAX_TEXT_LENGTH:
            raise ValidationError(f"Message is longer than {MAX_TEXT_LENGTH} characters")
        return trimmed or None

    async def send(
        self,
        conversation_id: str,
        text: str | None,
        attachment: Attachment | None = None,
        *,
        log: MessageLog | None = None,
    ) -> DispatchResult:
        """Upload, deliver, record. A message is recorded only if delivered."""
        body = self.validate(text, attachment)
        conversation = await self._store.select(conversation_id)

        async with self._conversation_lock(conversation_id):
            media: UploadedMedia | None = None
            if attachment is not None:
                media = await self._upload(attachment, conversation_id)

            try:
                receipt = await with_timeout(
                    self._delivery.deliver(
                        conversation,
                        body,
                        media_url=media.url if media else None,
                        media_type=media.media_type if media else None,
                    ),
                    self._timeout,
                    "delivery",
                )
            except TransportError as e:
                await self._record_failure(conversation_id, str(e))
                raise

            if not receipt.success:
                await self._record_failure(conversation_id, receipt.error)
                raise DeliveryFailed(receipt.error or "Failed to send message")

            now = datetime.now(timezone.utc)
            message = Message(
                id=str(uuid.uuid4()),
                conversation_id=conversation_id,
                direction=Direction.OUTBOUND,
                type=MessageType.MEDIA if media else MessageType.TEXT,
                sent_at=now,
                created_at=now,
                sender_id=self._sender_id,
                text_content=body,
                media_url=media.url if media else None,
                media_type=media.media_type if media else None,
                platform_message_id=receipt.platform_message_id,
                is_read=True,
            )

            persisted = await self._record(message)
            if log is not None:
                log.append(message)

        logger.info(
            "Message dispatched",
            extra={
                "conversation_id": conversation_id,
                "message_id": message.id,
                "platform": conversation.platform.value,
            },
        )
        await self._tracker.track(
            event_type="message_dispatched",
            actor="outbound_dispatcher",
            data={
                "conversation_id": conversation_id,
                "message_id": message.id,
                "platform": conversation.platform.value,
                "has_media": media is not None,
                "persisted": persisted,
            },
        )

        return DispatchResult(
            message=message,
            media=media,
            platform_message_id=receipt.platform_message_id,
            persisted=persisted,
        )

    @asynccontextmanager
    async def _conversation_lock(self, conversation_id: str) -> AsyncIterator[None]:
        """Serialize sends per conversation; the lock is dropped once unused."""
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._lock_users[conversation_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[conversation_id] -= 1
            if not self._lock_users[conversation_id]:
                del self._lock_users[conversation_id]
                del self._locks[conversation_id]

    async def _upload(self, attachment: Attachment, conversation_id: str) -> UploadedMedia:
        try:
            return await self._uploader.upload(attachment, conversation_id)
        except UploadFailed as e:
            await self._record_failure(conversation_id, str(e), stage="upload")
            raise
        except TransportError as e:
            await self._record_failure(conversation_id, str(e), stage="upload")
            raise UploadFailed(str(e)) from e

    async def _record(self, message: Message) -> bool:
        """Persist and publish a delivered message. Returns False if persisting failed."""
        try:
            await self._storage.save_message(message)
            await self._store.refresh_preview(message)
        except Exception as e:
            # Delivered but not recorded; the caller still gets the message.
            logger.error(
                "Delivered message could not be recorded: %s",
                e,
                extra={"conversation_id": message.conversation_id, "message_id": message.id},
            )
            return False

        await self._event_bus.publish(
            BusMessage(
                id=str(uuid.uuid4()),
                topic=Topic.MESSAGE_INSERTED,
                payload=message_to_row(message),
                source="outbound_dispatcher",
                timestamp=datetime.now(timezone.utc),
            )
        )
        return True

    async def _record_failure(
        self, conversation_id: str, error: str | None, stage: str = "delivery"
    ) -> None:
        logger.warning(
            "Dispatch failed at %s: %s",
            stage,
            error,
            extra={"conversation_id": conversation_id},
        )
        await self._tracker.track(
            event_type="dispatch_failed",
            actor="outbound_dispatcher",
            data={"conversation_id": conversation_id, "stage": stage, "error": error},
        )
