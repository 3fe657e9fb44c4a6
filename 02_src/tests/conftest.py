"""Pytest configuration and fixtures."""

import sys
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from inbox.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def event_bus():
    """Create EventBus."""
    from inbox.event_bus import EventBus

    return EventBus()


@pytest.fixture
def tracker(storage, event_bus):
    """Create Tracker with storage and event bus."""
    from inbox.tracker import Tracker

    tr = Tracker(event_bus=event_bus, storage=storage)
    return tr


@pytest.fixture
def mock_llm():
    """Create mock LLM provider."""
    llm = Mock()
    llm.complete = AsyncMock(return_value="Test response")
    return llm


@pytest.fixture
def store(storage, event_bus, tracker):
    """Create ConversationStore."""
    from inbox.conversations import ConversationStore

    return ConversationStore(storage, event_bus, tracker)


@pytest.fixture
def message_log(storage):
    from inbox.messages import MessageLog

    return MessageLog(storage)


@pytest.fixture
def transport(event_bus):
    """Realtime transport over the test event bus."""
    from inbox.realtime import BusRealtimeTransport

    return BusRealtimeTransport(event_bus)


@pytest.fixture
def loopback():
    from inbox.delivery import LoopbackAdapter

    return LoopbackAdapter()


@pytest.fixture
def delivery(loopback):
    from inbox.delivery import DeliveryRouter

    return DeliveryRouter(default=loopback)


@pytest.fixture
def attachment_storage(tmp_path):
    from inbox.attachments import LocalAttachmentStorage

    return LocalAttachmentStorage(root=tmp_path, base_url="https://files.test/")


@pytest.fixture
def uploader(attachment_storage, tracker):
    from inbox.attachments import AttachmentUploader

    return AttachmentUploader(attachment_storage, tracker)


@pytest.fixture
def dispatcher(store, storage, event_bus, delivery, uploader, tracker):
    """Create OutboundDispatcher with loopback delivery."""
    from inbox.dispatch import OutboundDispatcher

    return OutboundDispatcher(
        store=store,
        storage=storage,
        event_bus=event_bus,
        delivery=delivery,
        uploader=uploader,
        tracker=tracker,
        sender_id="business",
        timeout=5,
    )


@pytest.fixture
def make_conversation(storage):
    """Factory saving a conversation to storage."""
    from inbox.models import Conversation, ConversationStatus, Platform

    async def _make(
        conversation_id: str | None = None,
        platform: Platform = Platform.WHATSAPP,
        status: ConversationStatus = ConversationStatus.UNREAD,
        last_message_at: datetime = T0,
        **kwargs,
    ) -> Conversation:
        conversation_id = conversation_id or f"conv-{uuid.uuid4().hex[:8]}"
        conversation = Conversation(
            id=conversation_id,
            platform=platform,
            platform_conversation_id=kwargs.pop("platform_conversation_id", conversation_id),
            participant_id=kwargs.pop("participant_id", "+15550100001"),
            last_message_at=last_message_at,
            created_at=T0,
            status=status,
            **kwargs,
        )
        await storage.save_conversation(conversation)
        return conversation

    return _make


@pytest.fixture
def make_message():
    """Factory building (not saving) a text message."""
    from inbox.models import Direction, Message, MessageType

    def _make(
        message_id: str,
        conversation_id: str = "conv-1",
        offset: int = 0,
        direction: Direction = Direction.INBOUND,
        text: str | None = None,
        **kwargs,
    ) -> Message:
        return Message(
            id=message_id,
            conversation_id=conversation_id,
            direction=direction,
            type=kwargs.pop("type", MessageType.TEXT),
            sent_at=T0 + timedelta(seconds=offset),
            sender_id="customer" if direction is Direction.INBOUND else "business",
            text_content=text if text is not None else f"message {message_id}",
            **kwargs,
        )

    return _make
