"""Change-notification and trace data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Topic(str, Enum):
    """EventBus topics, one per kind of backend change."""

    MESSAGE_INSERTED = "message_inserted"
    CONVERSATION_UPDATED = "conversation_updated"


@dataclass
class BusMessage:
    """A change notification exchanged through EventBus."""

    id: str
    topic: Topic
    payload: dict  # the changed row
    source: str  # component that published
    timestamp: datetime


@dataclass
class TraceEvent:
    """Observability record kept in storage, e.g. "message_ingested" or "dispatch_failed"."""

    id: str
    event_type: str
    actor: str  # component that recorded it
    data: dict
    timestamp: datetime
