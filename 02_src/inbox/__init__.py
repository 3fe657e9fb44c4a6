"""Inbox core module."""

from .app import Application, IApplication
from .assistant import ISuggestionAssistant, SuggestionAssistant
from .attachments import AttachmentUploader, PreviewRegistry
from .conversations import ConversationStore, IConversationStore
from .delivery import DeliveryRouter, IDeliveryAdapter
from .dispatch import IOutboundDispatcher, OutboundDispatcher
from .errors import (
    DeliveryFailed,
    DispatchInProgress,
    InboxError,
    LoadError,
    NoContext,
    NotFound,
    Timeout,
    TooLarge,
    TransportError,
    UnsupportedMediaType,
    UploadFailed,
    ValidationError,
)
from .event_bus import EventBus, IEventBus
from .ingest import IInboundIngestor, InboundIngestor
from .llm import ILLMProvider, LLMProvider
from .messages import MessageLog
from .models import (
    Attachment,
    BusMessage,
    Conversation,
    ConversationStatus,
    Direction,
    DispatchResult,
    InboundMessage,
    Message,
    MessageType,
    Notification,
    Platform,
    Topic,
    TraceEvent,
)
from .realtime import BusRealtimeTransport, RealtimeSubscriber, SubscriberState
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker
from .view import ConversationView

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "Attachment",
    "BusMessage",
    "Conversation",
    "ConversationStatus",
    "Direction",
    "DispatchResult",
    "InboundMessage",
    "Message",
    "MessageType",
    "Notification",
    "Platform",
    "Topic",
    "TraceEvent",
    # Errors
    "InboxError",
    "NotFound",
    "ValidationError",
    "TransportError",
    "LoadError",
    "Timeout",
    "UploadFailed",
    "TooLarge",
    "UnsupportedMediaType",
    "DeliveryFailed",
    "NoContext",
    "DispatchInProgress",
    # Components
    "IStorage",
    "Storage",
    "IEventBus",
    "EventBus",
    "ITracker",
    "Tracker",
    "IConversationStore",
    "ConversationStore",
    "MessageLog",
    "BusRealtimeTransport",
    "RealtimeSubscriber",
    "SubscriberState",
    "AttachmentUploader",
    "PreviewRegistry",
    "IDeliveryAdapter",
    "DeliveryRouter",
    "IOutboundDispatcher",
    "OutboundDispatcher",
    "ILLMProvider",
    "LLMProvider",
    "ISuggestionAssistant",
    "SuggestionAssistant",
    "IInboundIngestor",
    "InboundIngestor",
    "ConversationView",
]
