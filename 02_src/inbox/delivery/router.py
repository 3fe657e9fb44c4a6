"""DeliveryRouter implementation."""

from ..logging_config import get_logger
from ..models import Conversation, DeliveryReceipt, Platform
from .adapters import IDeliveryAdapter

logger = get_logger(__name__)


class DeliveryRouter:
    """Generic send-message boundary: picks the adapter for a conversation's platform."""

    def __init__(
        self,
        adapters: dict[Platform, IDeliveryAdapter] | None = None,
        default: IDeliveryAdapter | None = None,
    ):
        self._adapters: dict[Platform, IDeliveryAdapter] = dict(adapters or {})
        self._default = default

    def register(self, platform: Platform, adapter: IDeliveryAdapter) -> None:
        self._adapters[platform] = adapter

    def adapter_for(self, platform: Platform) -> IDeliveryAdapter | None:
        return self._adapters.get(platform, self._default)

    @property
    def platforms(self) -> list[Platform]:
        return list(self._adapters)

    async def deliver(
        self,
        conversation: Conversation,
        text: str | None,
        media_url: str | None = None,
        media_type: str | None = None,
    ) -> DeliveryReceipt:
        """Deliver through the platform adapter; unknown platforms fail."""
        adapter = self.adapter_for(conversation.platform)
        if adapter is None:
            return DeliveryReceipt(
                success=False,
                error=f"Unsupported platform: {conversation.platform.value}",
            )

        return await adapter.deliver(
            conversation, text, media_url=media_url, media_type=media_type
        )

    async def aclose(self) -> None:
        """Close adapters that hold HTTP clients."""
        seen = set()
        for adapter in [*self._adapters.values(), self._default]:
            if adapter is None or id(adapter) in seen:
                continue
            seen.add(id(adapter))
            close = getattr(adapter, "aclose", None)
            if close is not None:
                await close()
