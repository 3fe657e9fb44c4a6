"""Realtime module."""

from .subscriber import RealtimeSubscriber, SubscriberState
from .transport import (
    BusChannel,
    BusRealtimeTransport,
    IRealtimeChannel,
    IRealtimeTransport,
)

__all__ = [
    "BusChannel",
    "BusRealtimeTransport",
    "IRealtimeChannel",
    "IRealtimeTransport",
    "RealtimeSubscriber",
    "SubscriberState",
]
