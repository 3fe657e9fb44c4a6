"""SuggestionAssistant implementation."""

from typing import Protocol

from ..config import SUGGESTION_CONTEXT_SIZE, call_timeout
from ..conversations import IConversationStore
from ..errors import NoContext, TransportError, with_timeout
from ..llm import ILLMProvider
from ..logging_config import get_logger
from ..models import Direction, Message
from ..storage import IStorage
from ..tracker import ITracker

logger = get_logger(__name__)


SYSTEM_PROMPT = (
    "You help a business reply to customer messages. Write professional, "
    "warm and empathetic replies."
)

PROMPT_TEMPLATE = """CONVERSATION SO FAR:
{context}

LAST CUSTOMER MESSAGE:
"{message_content}"

PLATFORM: {platform}

Write a reply that is:
- Courteous and warm
- Concise (2-3 sentences at most)
- Suited to {platform}
- In the language the customer used
- A direct answer to the customer's question or concern

Answer ONLY with the suggested reply, without any extra text or formatting."""


class ISuggestionAssistant(Protocol):
    """Best-effort reply suggestions."""

    async def suggest(
        self, conversation_id: str, messages: list[Message] | None = None
    ) -> str:
        """Suggest a reply to the last inbound message in view."""
        ...


def _describe(message: Message) -> str:
    if message.text_content:
        return message.text_content
    return f"[{message.media_type or 'media'}]"


class SuggestionAssistant:
    """Asks the LLM for a reply suggestion from the last few messages."""

    def __init__(
        self,
        llm_provider: ILLMProvider,
        store: IConversationStore,
        storage: IStorage,
        tracker: ITracker,
        context_size: int = SUGGESTION_CONTEXT_SIZE,
        timeout: float | None = None,
    ):
        self._llm = llm_provider
        self._store = store
        self._storage = storage
        self._tracker = tracker
        self._context_size = context_size
        self._timeout = call_timeout() if timeout is None else timeout

    async def suggest(
        self, conversation_id: str, messages: list[Message] | None = None
    ) -> str:
        """Suggest a reply to the last inbound message in view.

        ``messages`` is the caller's visible history; without it the persisted
        history is used. Raises NoContext when the last ``context_size``
        messages hold no inbound message.
        """
        conversation = await self._store.select(conversation_id)

        if messages is None:
            messages = await self._storage.get_messages(
                conversation_id, limit=self._context_size
            )
        window = messages[-self._context_size:]

        last_inbound = next(
            (m for m in reversed(window) if m.direction is Direction.INBOUND), None
        )
        if last_inbound is None:
            raise NoContext("Wait for an incoming message to get a suggestion")

        context = "\n".join(
            f"{'Customer' if m.direction is Direction.INBOUND else 'You'}: {_describe(m)}"
            for m in window
        )
        prompt = PROMPT_TEMPLATE.format(
            context=context,
            message_content=_describe(last_inbound),
            platform=conversation.platform.value,
        )

        try:
            suggestion = await with_timeout(
                self._llm.complete(
                    messages=[{"role": "user", "content": prompt}],
                    system=SYSTEM_PROMPT,
                    max_tokens=150,
                    temperature=0.7,
                ),
                self._timeout,
                "reply suggestion",
            )
        except TransportError:
            raise
        except Exception as e:
            logger.error(
                "Suggestion failed: %s",
                e,
                extra={"conversation_id": conversation_id},
            )
            raise TransportError(f"Could not generate a suggestion: {e}") from e

        suggestion = suggestion.strip()
        await self._tracker.track(
            event_type="suggestion_generated",
            actor="suggestion_assistant",
            data={
                "conversation_id": conversation_id,
                "context_length": len(window),
                "suggestion_length": len(suggestion),
            },
        )
        return suggestion
