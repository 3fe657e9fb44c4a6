"""Conversation-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Platform(str, Enum):
    """Messaging platforms a conversation can live on."""

    EMAIL = "email"
    GMAIL = "gmail"
    OUTLOOK = "outlook"
    WHATSAPP = "whatsapp"
    INSTAGRAM = "instagram"
    FACEBOOK = "facebook"
    TELEGRAM = "telegram"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    TIKTOK = "tiktok"


class ConversationStatus(str, Enum):
    """Two-state read flag, set by message activity."""

    UNREAD = "unread"
    READ = "read"


@dataclass
class TeamTag:
    """A team a conversation is routed to."""

    team_id: str
    name: str
    color: str = "#6b7280"


@dataclass
class Conversation:
    """A thread of messages with one external participant on one platform."""

    id: str
    platform: Platform
    platform_conversation_id: str
    participant_id: str
    last_message_at: datetime
    created_at: datetime
    participant_name: str | None = None
    participant_username: str | None = None
    status: ConversationStatus = ConversationStatus.UNREAD
    archived: bool = False
    tags: list[str] = field(default_factory=list)
    teams: list[TeamTag] = field(default_factory=list)
    last_message_text: str | None = None
    last_message_direction: str | None = None

    @property
    def display_name(self) -> str:
        return self.participant_name or self.participant_username or self.participant_id

    @property
    def is_unread(self) -> bool:
        return self.status is ConversationStatus.UNREAD


@dataclass
class ConversationFilters:
    """Filters for listing conversations."""

    status: list[ConversationStatus] | None = None
    platform: list[Platform] | None = None
    tags: list[str] | None = None
    search: str | None = None
    include_archived: bool = False


@dataclass
class InboxStats:
    """Counters shown next to the conversation list."""

    unread_count: int = 0
    read_count: int = 0
    archived_count: int = 0
