"""Delivery module."""

from .adapters import (
    HttpSendMessageAdapter,
    IDeliveryAdapter,
    LoopbackAdapter,
    TelegramAdapter,
    TwilioWhatsAppAdapter,
)
from .router import DeliveryRouter

__all__ = [
    "DeliveryRouter",
    "HttpSendMessageAdapter",
    "IDeliveryAdapter",
    "LoopbackAdapter",
    "TelegramAdapter",
    "TwilioWhatsAppAdapter",
]
