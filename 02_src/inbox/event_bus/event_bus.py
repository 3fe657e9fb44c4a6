"""EventBus implementation for backend change notifications."""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import BusMessage, Topic

logger = get_logger(__name__)


TopicHandler = Callable[[BusMessage], Awaitable[None]]
PayloadFilter = Callable[[dict], bool]


@dataclass(eq=False)
class Subscription:
    """Handle returned by subscribe(); pass it back to unsubscribe()."""

    topic: Topic
    handler: TopicHandler
    where: PayloadFilter | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, message: BusMessage) -> bool:
        return self.where is None or self.where(message.payload)


class IEventBus(Protocol):
    """In-memory pub/sub for change notifications."""

    def subscribe(
        self, topic: Topic, handler: TopicHandler, where: PayloadFilter | None = None
    ) -> Subscription:
        """Subscribe a handler to a topic, optionally filtered on the payload."""
        ...

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription. Unknown subscriptions are ignored."""
        ...

    async def publish(self, message: BusMessage) -> None:
        """Publish BusMessage to every matching subscriber."""
        ...


class EventBus:
    """In-memory pub/sub event bus."""

    def __init__(self):
        self._subscribers: dict[Topic, list[Subscription]] = {
            topic: [] for topic in Topic
        }

    def subscribe(
        self, topic: Topic, handler: TopicHandler, where: PayloadFilter | None = None
    ) -> Subscription:
        """Subscribe a handler to a topic, optionally filtered on the payload."""
        subscription = Subscription(topic=topic, handler=handler, where=where)
        self._subscribers[topic].append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription. Unknown subscriptions are ignored."""
        subscribers = self._subscribers[subscription.topic]
        if subscription in subscribers:
            subscribers.remove(subscription)

    def subscriber_count(self, topic: Topic) -> int:
        return len(self._subscribers[topic])

    async def publish(self, message: BusMessage) -> None:
        """Publish BusMessage to every matching subscriber."""
        if not message.id:
            message.id = str(uuid.uuid4())

        # Snapshot, handlers may unsubscribe while running
        targets = [s for s in self._subscribers[message.topic] if s.matches(message)]
        if not targets:
            return

        results = await asyncio.gather(
            *[s.handler(message) for s in targets],
            return_exceptions=True,
        )

        for subscription, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.error(
                    "Error in %s handler %s: %s",
                    message.topic.value,
                    subscription.id,
                    result,
                )
