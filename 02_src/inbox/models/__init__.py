"""Core data models for the inbox."""

from .conversations import (
    Conversation,
    ConversationFilters,
    ConversationStatus,
    InboxStats,
    Platform,
    TeamTag,
)
from .events import BusMessage, Topic, TraceEvent
from .messages import (
    Attachment,
    DeliveryReceipt,
    Direction,
    DispatchResult,
    InboundMessage,
    Message,
    MessageType,
    UploadedMedia,
    media_type_for,
    message_from_row,
    message_to_row,
)
from .notifications import Notification

__all__ = [
    # Conversations
    "Conversation",
    "ConversationFilters",
    "ConversationStatus",
    "InboxStats",
    "Platform",
    "TeamTag",
    # Messages
    "Attachment",
    "DeliveryReceipt",
    "Direction",
    "DispatchResult",
    "InboundMessage",
    "Message",
    "MessageType",
    "UploadedMedia",
    "media_type_for",
    "message_from_row",
    "message_to_row",
    # Events
    "BusMessage",
    "Topic",
    "TraceEvent",
    # Notifications
    "Notification",
]
