"""SQLite storage implementation."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    Conversation,
    ConversationFilters,
    ConversationStatus,
    InboxStats,
    Message,
    Platform,
    TeamTag,
    TraceEvent,
    message_from_row,
)


def _ts(value: datetime) -> str:
    """Normalize a timestamp to a sortable UTC ISO string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _dt(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


class IStorage(Protocol):
    """Persistent storage for conversations, messages and trace events (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Conversations
    async def save_conversation(self, conversation: Conversation) -> None:
        """Insert or replace a conversation."""
        ...

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID."""
        ...

    async def find_conversation(
        self, platform: Platform, platform_conversation_id: str
    ) -> Conversation | None:
        """Get a conversation by its platform identity."""
        ...

    async def list_conversations(
        self, filters: ConversationFilters | None = None
    ) -> list[Conversation]:
        """List conversations, most recent activity first."""
        ...

    async def set_conversation_status(
        self, conversation_id: str, status: ConversationStatus
    ) -> bool:
        """Set read/unread status. Returns True if the row changed."""
        ...

    async def update_conversation_preview(
        self,
        conversation_id: str,
        text: str,
        direction: str,
        at: datetime,
        status: ConversationStatus,
    ) -> None:
        """Update last-message preview, activity time and status."""
        ...

    async def set_conversation_tags(self, conversation_id: str, tags: list[str]) -> None:
        """Replace a conversation's tags."""
        ...

    async def set_conversation_archived(self, conversation_id: str, archived: bool) -> None:
        """Soft-archive or restore a conversation."""
        ...

    async def get_inbox_stats(self) -> InboxStats:
        """Count conversations by state."""
        ...

    # Messages
    async def save_message(self, message: Message) -> bool:
        """Save a message. Returns False if the id already exists."""
        ...

    async def get_messages(
        self, conversation_id: str, limit: int | None = None
    ) -> list[Message]:
        """Get messages for a conversation, ordered by sent time then insertion."""
        ...

    async def mark_messages_read(self, conversation_id: str) -> int:
        """Mark unread messages of a conversation read. Returns rows changed."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Conversations
    async def save_conversation(self, conversation: Conversation) -> None:
        """Insert or replace a conversation."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO conversations (
                id, platform, platform_conversation_id, participant_id,
                participant_name, participant_username, status, archived,
                tags, teams, last_message_text, last_message_direction,
                last_message_at, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                conversation.id or str(uuid.uuid4()),
                conversation.platform.value,
                conversation.platform_conversation_id,
                conversation.participant_id,
                conversation.participant_name,
                conversation.participant_username,
                conversation.status.value,
                int(conversation.archived),
                json.dumps(conversation.tags),
                json.dumps(
                    [
                        {"team_id": t.team_id, "name": t.name, "color": t.color}
                        for t in conversation.teams
                    ]
                ),
                conversation.last_message_text,
                conversation.last_message_direction,
                _ts(conversation.last_message_at),
                _ts(conversation.created_at),
            ),
        )
        await conn.commit()

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def find_conversation(
        self, platform: Platform, platform_conversation_id: str
    ) -> Conversation | None:
        """Get a conversation by its platform identity."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT * FROM conversations
            WHERE platform = ? AND platform_conversation_id = ?
            """,
            (platform.value, platform_conversation_id),
        )
        row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def list_conversations(
        self, filters: ConversationFilters | None = None
    ) -> list[Conversation]:
        """List conversations, most recent activity first."""
        conn = self._require_conn()
        filters = filters or ConversationFilters()

        # Build query dynamically
        conditions = []
        params: list = []

        if not filters.include_archived:
            conditions.append("archived = 0")
        if filters.status:
            placeholders = ",".join("?" * len(filters.status))
            conditions.append(f"status IN ({placeholders})")
            params.extend(s.value for s in filters.status)
        if filters.platform:
            placeholders = ",".join("?" * len(filters.platform))
            conditions.append(f"platform IN ({placeholders})")
            params.extend(p.value for p in filters.platform)
        if filters.tags:
            placeholders = ",".join("?" * len(filters.tags))
            conditions.append(
                f"EXISTS (SELECT 1 FROM json_each(conversations.tags) "
                f"WHERE json_each.value IN ({placeholders}))"
            )
            params.extend(filters.tags)
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            conditions.append(
                "(lower(coalesce(participant_name, '')) LIKE ? "
                "OR lower(coalesce(participant_username, '')) LIKE ? "
                "OR lower(coalesce(last_message_text, '')) LIKE ?)"
            )
            params.extend([pattern, pattern, pattern])

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        cursor = await conn.execute(
            f"""
            SELECT * FROM conversations
            {where_clause}
            ORDER BY last_message_at DESC, rowid DESC
            """,
            params,
        )
        rows = await cursor.fetchall()
        return [self._row_to_conversation(row) for row in rows]

    async def set_conversation_status(
        self, conversation_id: str, status: ConversationStatus
    ) -> bool:
        """Set read/unread status. Returns True if the row changed."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "UPDATE conversations SET status = ? WHERE id = ? AND status != ?",
            (status.value, conversation_id, status.value),
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def update_conversation_preview(
        self,
        conversation_id: str,
        text: str,
        direction: str,
        at: datetime,
        status: ConversationStatus,
    ) -> None:
        """Update last-message preview, activity time and status.

        A message older than the current preview leaves the conversation as is.
        """
        conn = self._require_conn()

        await conn.execute(
            """
            UPDATE conversations
            SET last_message_text = ?, last_message_direction = ?,
                last_message_at = ?, status = ?
            WHERE id = ? AND last_message_at <= ?
            """,
            (text, direction, _ts(at), status.value, conversation_id, _ts(at)),
        )
        await conn.commit()

    async def set_conversation_tags(self, conversation_id: str, tags: list[str]) -> None:
        """Replace a conversation's tags."""
        conn = self._require_conn()

        await conn.execute(
            "UPDATE conversations SET tags = ? WHERE id = ?",
            (json.dumps(tags), conversation_id),
        )
        await conn.commit()

    async def set_conversation_archived(self, conversation_id: str, archived: bool) -> None:
        """Soft-archive or restore a conversation."""
        conn = self._require_conn()

        await conn.execute(
            "UPDATE conversations SET archived = ? WHERE id = ?",
            (int(archived), conversation_id),
        )
        await conn.commit()

    async def get_inbox_stats(self) -> InboxStats:
        """Count conversations by state."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT
                coalesce(sum(CASE WHEN archived = 0 AND status = 'unread' THEN 1 ELSE 0 END), 0),
                coalesce(sum(CASE WHEN archived = 0 AND status = 'read' THEN 1 ELSE 0 END), 0),
                coalesce(sum(CASE WHEN archived = 1 THEN 1 ELSE 0 END), 0)
            FROM conversations
            """
        )
        row = await cursor.fetchone()
        return InboxStats(unread_count=row[0], read_count=row[1], archived_count=row[2])

    # Messages
    async def save_message(self, message: Message) -> bool:
        """Save a message. Returns False if the id already exists."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            INSERT OR IGNORE INTO messages (
                id, conversation_id, direction, message_type, text_content,
                media_url, media_type, platform_message_id, sender_id,
                sender_name, sender_username, is_read, sent_at, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.conversation_id,
                message.direction.value,
                message.type.value,
                message.text_content,
                message.media_url,
                message.media_type,
                message.platform_message_id,
                message.sender_id,
                message.sender_name,
                message.sender_username,
                int(message.is_read),
                _ts(message.sent_at),
                _ts(message.created_at),
            ),
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def get_messages(
        self, conversation_id: str, limit: int | None = None
    ) -> list[Message]:
        """Get messages for a conversation, ordered by sent time then insertion."""
        conn = self._require_conn()

        if limit is not None:
            # Newest ``limit`` messages, returned oldest first
            cursor = await conn.execute(
                """
                SELECT * FROM (
                    SELECT *, rowid AS seq FROM messages
                    WHERE conversation_id = ?
                    ORDER BY sent_at DESC, seq DESC
                    LIMIT ?
                )
                ORDER BY sent_at ASC, seq ASC
                """,
                (conversation_id, limit),
            )
        else:
            cursor = await conn.execute(
                """
                SELECT *, rowid AS seq FROM messages
                WHERE conversation_id = ?
                ORDER BY sent_at ASC, seq ASC
                """,
                (conversation_id,),
            )

        rows = await cursor.fetchall()
        return [message_from_row(dict(row)) for row in rows]

    async def mark_messages_read(self, conversation_id: str) -> int:
        """Mark unread messages of a conversation read. Returns rows changed."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "UPDATE messages SET is_read = 1 WHERE conversation_id = ? AND is_read = 0",
            (conversation_id,),
        )
        await conn.commit()
        return cursor.rowcount

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, default=str),
                _ts(event.timestamp),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        conn = self._require_conn()

        conditions = []
        params: list = []

        if after:
            conditions.append("timestamp > ?")
            params.append(_ts(after))
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row["id"],
                event_type=row["event_type"],
                actor=row["actor"],
                data=json.loads(row["data"]),
                timestamp=_dt(row["timestamp"]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        for table in ["messages", "conversations", "trace_events"]:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()

    @staticmethod
    def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            platform=Platform(row["platform"]),
            platform_conversation_id=row["platform_conversation_id"],
            participant_id=row["participant_id"],
            participant_name=row["participant_name"],
            participant_username=row["participant_username"],
            status=ConversationStatus(row["status"]),
            archived=bool(row["archived"]),
            tags=json.loads(row["tags"]),
            teams=[TeamTag(**team) for team in json.loads(row["teams"])],
            last_message_text=row["last_message_text"],
            last_message_direction=row["last_message_direction"],
            last_message_at=_dt(row["last_message_at"]),
            created_at=_dt(row["created_at"]),
        )
