"""MessageLog implementation."""

from bisect import bisect_right
from datetime import datetime
from itertools import count

from ..errors import LoadError
from ..logging_config import get_logger
from ..models import Message
from ..storage import IStorage

logger = get_logger(__name__)


class MessageLog:
    """Ordered message history of the conversation open in one view.

    Messages are kept sorted by (sent_at, insertion order) and deduplicated by
    id. Only the owning view writes to it: its load() calls, its realtime
    subscriber and its own sends.
    """

    def __init__(self, storage: IStorage):
        self._storage = storage
        self._conversation_id: str | None = None
        self._messages: list[Message] = []
        self._keys: list[tuple[datetime, int]] = []
        self._ids: set[str] = set()
        self._seq = count()
        self._live_buffers: dict[int, list[Message]] = {}
        self._load_ids = count()

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    def reset(self, conversation_id: str | None) -> None:
        """Bind the log to a conversation and drop any history."""
        self._conversation_id = conversation_id
        self._clear()

    async def load(self, conversation_id: str) -> list[Message]:
        """Replace the log with the persisted history of a conversation.

        Messages appended while the read is in flight are merged back in
        afterwards, so a realtime delivery that beats the initial load is
        neither lost nor duplicated. Each call tracks its own appends, so
        overlapping loads (a resync racing a reload) do not interfere.
        """
        if conversation_id != self._conversation_id:
            self.reset(conversation_id)

        live: list[Message] = []
        load_id = next(self._load_ids)
        self._live_buffers[load_id] = live
        try:
            history = await self._storage.get_messages(conversation_id)
        except Exception as e:
            raise LoadError(f"Failed to load messages for {conversation_id}: {e}") from e
        finally:
            del self._live_buffers[load_id]

        if conversation_id != self._conversation_id:
            # Switched conversation while loading; the result is stale.
            return self.messages()

        self._clear()
        for message in history:
            self._insert(message)
        for message in live:
            self.append(message)

        logger.debug(
            "Loaded %s messages (%s live) for %s",
            len(history),
            len(live),
            conversation_id,
            extra={"conversation_id": conversation_id},
        )
        return self.messages()

    def append(self, message: Message) -> bool:
        """Insert a message in order. Returns False for duplicates."""
        if self._conversation_id is None:
            self._conversation_id = message.conversation_id
        elif message.conversation_id != self._conversation_id:
            logger.warning(
                "Ignoring message %s for conversation %s in log of %s",
                message.id,
                message.conversation_id,
                self._conversation_id,
            )
            return False

        if message.id in self._ids:
            return False

        self._insert(message)
        for live in self._live_buffers.values():
            live.append(message)
        return True

    def messages(self) -> list[Message]:
        """Snapshot of the log, oldest first."""
        return self._messages.copy()

    def scroll_anchor(self) -> Message | None:
        """Most recent message, for auto-scroll."""
        return self._messages[-1] if self._messages else None

    def recent(self, n: int) -> list[Message]:
        """Last n messages, oldest first."""
        return self._messages[-n:] if n > 0 else []

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def _insert(self, message: Message) -> None:
        key = (message.sent_at, next(self._seq))
        index = bisect_right(self._keys, key)
        self._keys.insert(index, key)
        self._messages.insert(index, message)
        self._ids.add(message.id)

    def _clear(self) -> None:
        self._messages.clear()
        self._keys.clear()
        self._ids.clear()
