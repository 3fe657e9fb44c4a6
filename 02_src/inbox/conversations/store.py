"""ConversationStore implementation."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..errors import NotFound
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import (
    BusMessage,
    Conversation,
    ConversationFilters,
    ConversationStatus,
    Direction,
    InboxStats,
    Message,
    Topic,
)
from ..storage import IStorage
from ..tracker import ITracker

logger = get_logger(__name__)


class IConversationStore(Protocol):
    """Authoritative list of conversations and their previews."""

    async def select(self, conversation_id: str) -> Conversation:
        """Return the conversation or raise NotFound."""
        ...

    async def mark_read(self, conversation_id: str) -> None:
        """Flip status to read. Idempotent."""
        ...

    async def list(self, filters: ConversationFilters | None = None) -> list[Conversation]:
        """Conversations ordered by last activity, descending."""
        ...

    async def refresh_preview(self, message: Message) -> None:
        """Update preview and status from a new message."""
        ...


class ConversationStore:
    """Conversation list backed by Storage, publishing updates on EventBus."""

    def __init__(self, storage: IStorage, event_bus: IEventBus, tracker: ITracker):
        self._storage = storage
        self._event_bus = event_bus
        self._tracker = tracker

    async def select(self, conversation_id: str) -> Conversation:
        """Return the conversation or raise NotFound."""
        conversation = await self._storage.get_conversation(conversation_id)
        if conversation is None:
            raise NotFound(f"Conversation {conversation_id} not found")
        return conversation

    async def stats(self) -> InboxStats:
        return await self._storage.get_inbox_stats()

    async def mark_read(self, conversation_id: str) -> None:
        """Flip status to read and mark its messages read.

        Last write wins; a conversation that is already read is left untouched
        and no change is published.
        """
        await self.select(conversation_id)

        changed = await self._storage.set_conversation_status(
            conversation_id, ConversationStatus.READ
        )
        if not changed:
            return

        marked = await self._storage.mark_messages_read(conversation_id)
        logger.info(
            "Conversation %s marked read (%s messages)",
            conversation_id,
            marked,
            extra={"conversation_id": conversation_id},
        )

        await self._publish_update(conversation_id)
        await self._tracker.track(
            event_type="conversation_read",
            actor="conversation_store",
            data={"conversation_id": conversation_id, "messages_marked": marked},
        )

    async def mark_unread(self, conversation_id: str) -> None:
        """Flip status back to unread."""
        await self.select(conversation_id)
        if await self._storage.set_conversation_status(
            conversation_id, ConversationStatus.UNREAD
        ):
            await self._publish_update(conversation_id)

    async def refresh_preview(self, message: Message) -> None:
        """Update preview and status from a new message.

        Inbound activity makes the conversation unread, outbound makes it read.
        """
        status = (
            ConversationStatus.UNREAD
            if message.direction is Direction.INBOUND
            else ConversationStatus.READ
        )
        await self._storage.update_conversation_preview(
            message.conversation_id,
            text=message.preview,
            direction=message.direction.value,
            at=message.sent_at,
            status=status,
        )
        await self._publish_update(message.conversation_id)

    async def add_tags(self, conversation_id: str, tags: list[str]) -> list[str]:
        """Add tags, keeping existing order and dropping duplicates."""
        conversation = await self.select(conversation_id)
        merged = list(dict.fromkeys([*conversation.tags, *tags]))
        await self._storage.set_conversation_tags(conversation_id, merged)
        await self._publish_update(conversation_id)
        return merged

    async def remove_tag(self, conversation_id: str, tag: str) -> list[str]:
        conversation = await self.select(conversation_id)
        remaining = [t for t in conversation.tags if t != tag]
        await self._storage.set_conversation_tags(conversation_id, remaining)
        await self._publish_update(conversation_id)
        return remaining

    async def archive(self, conversation_id: str, archived: bool = True) -> None:
        """Soft-archive a conversation (or restore it with archived=False)."""
        await self.select(conversation_id)
        await self._storage.set_conversation_archived(conversation_id, archived)
        await self._publish_update(conversation_id)
        await self._tracker.track(
            event_type="conversation_archived" if archived else "conversation_restored",
            actor="conversation_store",
            data={"conversation_id": conversation_id},
        )

    # Defined last: the name shadows the builtin inside the class body.
    async def list(self, filters: ConversationFilters | None = None) -> list[Conversation]:
        """Conversations ordered by last activity, descending."""
        return await self._storage.list_conversations(filters)

    async def _publish_update(self, conversation_id: str) -> None:
        conversation = await self._storage.get_conversation(conversation_id)
        if conversation is None:
            return

        await self._event_bus.publish(
            BusMessage(
                id=str(uuid.uuid4()),
                topic=Topic.CONVERSATION_UPDATED,
                payload={
                    "id": conversation.id,
                    "status": conversation.status.value,
                    "archived": conversation.archived,
                    "last_message_text": conversation.last_message_text,
                    "last_message_at": conversation.last_message_at.isoformat(),
                },
                source="conversation_store",
                timestamp=datetime.now(timezone.utc),
            )
        )
