"""InboundIngestor implementation."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..conversations import IConversationStore
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import (
    BusMessage,
    Conversation,
    ConversationStatus,
    Direction,
    InboundMessage,
    Message,
    MessageType,
    Platform,
    Topic,
    message_to_row,
)
from ..storage import IStorage
from ..tracker import ITracker

logger = get_logger(__name__)


class IInboundIngestor(Protocol):
    """Entry point for messages arriving from platform integrations."""

    async def ingest(self, inbound: InboundMessage) -> Message:
        """Record an inbound message and publish the insert."""
        ...


class InboundIngestor:
    """Records inbound messages, creating the conversation on first contact."""

    def __init__(
        self,
        storage: IStorage,
        store: IConversationStore,
        event_bus: IEventBus,
        tracker: ITracker,
    ):
        self._storage = storage
        self._store = store
        self._event_bus = event_bus
        self._tracker = tracker

    async def ingest(self, inbound: InboundMessage) -> Message:
        """Record an inbound message and publish the insert.

        Redelivered messages (same id) are acknowledged without a second insert.
        """
        platform = Platform(inbound.platform)
        if not inbound.media_url and not (inbound.text_content and inbound.text_content.strip()):
            raise ValueError("inbound message has neither text nor media")
        conversation = await self._get_or_create(platform, inbound)

        message = Message(
            id=inbound.id or str(uuid.uuid4()),
            conversation_id=conversation.id,
            direction=Direction.INBOUND,
            type=MessageType.MEDIA if inbound.media_url else MessageType.TEXT,
            sent_at=inbound.sent_at,
            sender_id=inbound.participant_id,
            sender_name=inbound.participant_name,
            sender_username=inbound.participant_username,
            text_content=inbound.text_content,
            media_url=inbound.media_url,
            media_type=inbound.media_type,
            platform_message_id=inbound.platform_message_id,
        )

        if not await self._storage.save_message(message):
            logger.info(
                "Duplicate inbound message ignored",
                extra={"conversation_id": conversation.id, "message_id": message.id},
            )
            return message

        await self._store.refresh_preview(message)
        await self._event_bus.publish(
            BusMessage(
                id=str(uuid.uuid4()),
                topic=Topic.MESSAGE_INSERTED,
                payload=message_to_row(message),
                source="inbound_ingestor",
                timestamp=datetime.now(timezone.utc),
            )
        )

        logger.info(
            "Inbound message from %s",
            conversation.display_name,
            extra={
                "conversation_id": conversation.id,
                "message_id": message.id,
                "platform": platform.value,
            },
        )
        await self._tracker.track(
            event_type="message_ingested",
            actor="inbound_ingestor",
            data={
                "conversation_id": conversation.id,
                "message_id": message.id,
                "platform": platform.value,
            },
        )
        return message

    async def _get_or_create(self, platform: Platform, inbound: InboundMessage) -> Conversation:
        conversation = await self._storage.find_conversation(
            platform, inbound.platform_conversation_id
        )
        if conversation is not None:
            return conversation

        conversation = Conversation(
            id=str(uuid.uuid4()),
            platform=platform,
            platform_conversation_id=inbound.platform_conversation_id,
            participant_id=inbound.participant_id,
            participant_name=inbound.participant_name,
            participant_username=inbound.participant_username,
            status=ConversationStatus.UNREAD,
            last_message_at=inbound.sent_at,
            created_at=datetime.now(timezone.utc),
        )
        await self._storage.save_conversation(conversation)

        await self._tracker.track(
            event_type="conversation_created",
            actor="inbound_ingestor",
            data={"conversation_id": conversation.id, "platform": platform.value},
        )
        return conversation
