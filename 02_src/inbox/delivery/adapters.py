"""Platform delivery adapters.

Adapters never raise for a failed delivery: transport and API errors are
reported as a failed DeliveryReceipt.
"""

import os
import uuid
from typing import Protocol

import httpx

from ..logging_config import get_logger
from ..models import Conversation, DeliveryReceipt

logger = get_logger(__name__)


class IDeliveryAdapter(Protocol):
    """Performs the actual outbound transmission for a platform."""

    async def deliver(
        self,
        conversation: Conversation,
        text: str | None,
        media_url: str | None = None,
        media_type: str | None = None,
    ) -> DeliveryReceipt:
        """Send the payload to the conversation's participant."""
        ...


def _json_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    if isinstance(body, dict):
        detail = body.get("error") or body.get("description") or body.get("message")
        if detail:
            return f"HTTP {response.status_code}: {detail}"
    return f"HTTP {response.status_code}"


class HttpSendMessageAdapter:
    """Generic "send-message" function that hides platform specifics.

    POSTs ``{conversation_id, text_content, media_url, media_type}`` and
    expects ``{"success": true, "platform_message_id": ...}``.
    """

    def __init__(
        self,
        endpoint: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self._endpoint = endpoint or os.getenv("SEND_MESSAGE_URL")
        if not self._endpoint:
            raise ValueError("SEND_MESSAGE_URL environment variable not set")
        self._token = token or os.getenv("SEND_MESSAGE_TOKEN", "")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def deliver(
        self,
        conversation: Conversation,
        text: str | None,
        media_url: str | None = None,
        media_type: str | None = None,
    ) -> DeliveryReceipt:
        payload = {"conversation_id": conversation.id, "text_content": text}
        if media_url:
            payload["media_url"] = media_url
            payload["media_type"] = media_type

        try:
            response = await self._client.post(
                self._endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.HTTPError as e:
            return DeliveryReceipt(success=False, error=f"send-message unreachable: {e}")

        if response.status_code >= 400:
            return DeliveryReceipt(success=False, error=_error_detail(response))

        body = _json_body(response)
        if not body.get("success"):
            return DeliveryReceipt(success=False, error=body.get("error") or "Failed to send message")

        message = body.get("message") or {}
        return DeliveryReceipt(
            success=True,
            platform_message_id=body.get("platform_message_id")
            or message.get("platform_message_id"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class TelegramAdapter:
    """Telegram Bot API: sendMessage, or sendPhoto with a caption for media."""

    def __init__(
        self,
        bot_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        api_base: str = "https://api.telegram.org",
    ):
        self._bot_token = bot_token or os.getenv("TELEGRAM_BOT_TOKEN")
        if not self._bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable not set")
        self._api_base = api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=30.0)

    async def deliver(
        self,
        conversation: Conversation,
        text: str | None,
        media_url: str | None = None,
        media_type: str | None = None,
    ) -> DeliveryReceipt:
        chat_id = conversation.platform_conversation_id or conversation.participant_id
        if media_url:
            method = "sendPhoto" if media_type == "image" else "sendDocument"
            field = "photo" if media_type == "image" else "document"
            payload = {"chat_id": chat_id, field: media_url}
            if text:
                payload["caption"] = text
        else:
            method = "sendMessage"
            payload = {"chat_id": chat_id, "text": text}

        url = f"{self._api_base}/bot{self._bot_token}/{method}"
        try:
            response = await self._client.post(url, json=payload)
        except httpx.HTTPError as e:
            return DeliveryReceipt(success=False, error=f"Telegram unreachable: {e}")

        if response.status_code >= 400:
            return DeliveryReceipt(success=False, error=_error_detail(response))

        body = _json_body(response)
        if not body.get("ok"):
            return DeliveryReceipt(success=False, error=body.get("description", "Telegram error"))

        return DeliveryReceipt(
            success=True, platform_message_id=str(body.get("result", {}).get("message_id", ""))
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class TwilioWhatsAppAdapter:
    """Twilio Messages API for WhatsApp numbers."""

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        client: httpx.AsyncClient | None = None,
        api_base: str = "https://api.twilio.com",
    ):
        self._account_sid = account_sid or os.getenv("TWILIO_ACCOUNT_SID")
        self._auth_token = auth_token or os.getenv("TWILIO_AUTH_TOKEN")
        self._from_number = from_number or os.getenv("TWILIO_WHATSAPP_NUMBER")
        if not (self._account_sid and self._auth_token and self._from_number):
            raise ValueError(
                "TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_WHATSAPP_NUMBER must be set"
            )
        self._api_base = api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=30.0)

    @staticmethod
    def _whatsapp(number: str) -> str:
        return number if number.startswith("whatsapp:") else f"whatsapp:{number}"

    async def deliver(
        self,
        conversation: Conversation,
        text: str | None,
        media_url: str | None = None,
        media_type: str | None = None,
    ) -> DeliveryReceipt:
        form = {
            "From": self._whatsapp(self._from_number),
            "To": self._whatsapp(conversation.participant_id),
            "Body": text or "",
        }
        if media_url:
            form["MediaUrl"] = media_url

        url = f"{self._api_base}/2010-04-01/Accounts/{self._account_sid}/Messages.json"
        try:
            response = await self._client.post(
                url, data=form, auth=(self._account_sid, self._auth_token)
            )
        except httpx.HTTPError as e:
            return DeliveryReceipt(success=False, error=f"Twilio unreachable: {e}")

        if response.status_code >= 400:
            return DeliveryReceipt(success=False, error=_error_detail(response))

        return DeliveryReceipt(success=True, platform_message_id=_json_body(response).get("sid"))

    async def aclose(self) -> None:
        await self._client.aclose()


class LoopbackAdapter:
    """Accepts every delivery without leaving the process; for local runs."""

    def __init__(self):
        self.delivered: list[dict] = []

    async def deliver(
        self,
        conversation: Conversation,
        text: str | None,
        media_url: str | None = None,
        media_type: str | None = None,
    ) -> DeliveryReceipt:
        platform_message_id = f"loopback-{uuid.uuid4()}"
        self.delivered.append(
            {
                "conversation_id": conversation.id,
                "text": text,
                "media_url": media_url,
                "media_type": media_type,
                "platform_message_id": platform_message_id,
            }
        )
        logger.info(
            "Loopback delivery to %s",
            conversation.display_name,
            extra={"conversation_id": conversation.id, "platform": conversation.platform.value},
        )
        return DeliveryReceipt(success=True, platform_message_id=platform_message_id)
