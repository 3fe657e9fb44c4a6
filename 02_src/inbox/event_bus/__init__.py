"""EventBus module."""

from .event_bus import EventBus, IEventBus, PayloadFilter, Subscription, TopicHandler

__all__ = ["EventBus", "IEventBus", "PayloadFilter", "Subscription", "TopicHandler"]
