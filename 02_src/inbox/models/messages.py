"""Message-related data models."""

import mimetypes
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path


class Direction(str, Enum):
    """Which side of the conversation wrote the message."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MessageType(str, Enum):
    """Tag of the message union."""

    TEXT = "text"
    MEDIA = "media"
    SYSTEM = "system"


@dataclass
class Message:
    """A single message in a conversation.

    Text and system messages carry ``text_content``; media messages carry
    ``media_url`` and may also have a caption. Only ``is_read`` changes after
    creation.
    """

    id: str
    conversation_id: str
    direction: Direction
    type: MessageType
    sent_at: datetime
    sender_id: str
    text_content: str | None = None
    media_url: str | None = None
    media_type: str | None = None  # "image", "video", "audio", "document", "file"
    platform_message_id: str | None = None
    sender_name: str | None = None
    sender_username: str | None = None
    is_read: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("message id is required")
        if not self.conversation_id:
            raise ValueError("message conversation_id is required")
        if self.type is MessageType.MEDIA:
            if not self.media_url:
                raise ValueError("media message requires media_url")
        elif not (self.text_content and self.text_content.strip()):
            raise ValueError(f"{self.type.value} message requires text_content")

    @property
    def preview(self) -> str:
        """Short text used as the conversation's last-message preview."""
        if self.text_content:
            return self.text_content[:200]
        return f"[{self.media_type or 'media'}]"


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str) and value:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def message_from_row(row: dict) -> Message:
    """Validate a transport/storage row into a Message.

    Raises ValueError for rows that do not describe a well-formed message.
    """
    if not isinstance(row, dict):
        raise ValueError("message row must be a mapping")

    try:
        direction = Direction(row["direction"])
        message_type = MessageType(row.get("message_type") or row.get("type"))
        sent_at = _parse_timestamp(row["sent_at"])
    except KeyError as e:
        raise ValueError(f"message row missing field {e}") from e

    created_raw = row.get("created_at")
    return Message(
        id=str(row.get("id") or ""),
        conversation_id=str(row.get("conversation_id") or ""),
        direction=direction,
        type=message_type,
        sent_at=sent_at,
        sender_id=str(row.get("sender_id") or ""),
        text_content=row.get("text_content"),
        media_url=row.get("media_url"),
        media_type=row.get("media_type"),
        platform_message_id=row.get("platform_message_id"),
        sender_name=row.get("sender_name"),
        sender_username=row.get("sender_username"),
        is_read=bool(row.get("is_read", False)),
        created_at=_parse_timestamp(created_raw) if created_raw else datetime.now(timezone.utc),
    )


def message_to_row(message: Message) -> dict:
    """Serialize a Message into the row shape carried by change notifications."""
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "direction": message.direction.value,
        "message_type": message.type.value,
        "text_content": message.text_content,
        "media_url": message.media_url,
        "media_type": message.media_type,
        "platform_message_id": message.platform_message_id,
        "sender_id": message.sender_id,
        "sender_name": message.sender_name,
        "sender_username": message.sender_username,
        "is_read": message.is_read,
        "sent_at": message.sent_at.isoformat(),
        "created_at": message.created_at.isoformat(),
    }


@dataclass
class Attachment:
    """A locally selected file, owned by the composer until uploaded."""

    name: str
    mime_type: str
    data: bytes
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str | None = None) -> "Attachment":
        """Read a file from disk, guessing its MIME type from the name."""
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            mime_type=mime_type or guessed or "application/octet-stream",
            data=path.read_bytes(),
        )


@dataclass
class UploadedMedia:
    """Durable reference to an uploaded attachment."""

    url: str
    media_type: str
    mime_type: str
    file_name: str
    size: int
    path: str | None = None


def media_type_for(mime_type: str) -> str:
    """Map a MIME type to the media category platforms understand."""
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/"):
        return "video"
    if mime_type.startswith("audio/"):
        return "audio"
    if mime_type == "application/pdf":
        return "document"
    return "file"


@dataclass
class InboundMessage:
    """A message handed over by a platform integration."""

    platform: str
    platform_conversation_id: str
    participant_id: str
    sent_at: datetime
    text_content: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    platform_message_id: str | None = None
    participant_name: str | None = None
    participant_username: str | None = None
    id: str | None = None


@dataclass
class DeliveryReceipt:
    """Result reported by a delivery adapter."""

    success: bool
    error: str | None = None
    platform_message_id: str | None = None


@dataclass
class DispatchResult:
    """Outcome of a successful outbound dispatch."""

    message: Message
    media: UploadedMedia | None = None
    platform_message_id: str | None = None
    persisted: bool = True
