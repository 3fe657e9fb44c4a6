"""Attachment storage backends."""

import os
import time
from pathlib import Path
from typing import Protocol

import httpx

from ..config import ATTACHMENTS_DIR
from ..errors import TransportError, UnsupportedMediaType
from ..logging_config import get_logger
from ..models import Attachment, UploadedMedia, media_type_for

logger = get_logger(__name__)


class IAttachmentStorage(Protocol):
    """Durable storage for uploaded attachments."""

    async def store(self, attachment: Attachment, conversation_id: str) -> UploadedMedia:
        """Store the file and return its durable reference."""
        ...


def _object_path(attachment: Attachment, conversation_id: str) -> str:
    safe_name = Path(attachment.name).name or "attachment.bin"
    return f"{conversation_id}/{int(time.time() * 1000)}_{safe_name}"


class HttpAttachmentStorage:
    """Multipart upload to an attachment endpoint, authorized with a bearer token.

    The endpoint answers ``{"success": true, "url": ..., "path": ...,
    "mediaType": ...}`` or ``{"error": ...}``.
    """

    def __init__(
        self,
        upload_url: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self._upload_url = upload_url or os.getenv("ATTACHMENT_UPLOAD_URL")
        if not self._upload_url:
            raise ValueError("ATTACHMENT_UPLOAD_URL environment variable not set")
        self._token = token or os.getenv("ATTACHMENT_UPLOAD_TOKEN", "")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def store(self, attachment: Attachment, conversation_id: str) -> UploadedMedia:
        try:
            response = await self._client.post(
                self._upload_url,
                headers={"Authorization": f"Bearer {self._token}"},
                data={"conversation_id": conversation_id},
                files={"file": (attachment.name, attachment.data, attachment.mime_type)},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Attachment upload failed: {e}") from e

        if response.status_code == 415:
            raise UnsupportedMediaType(f"Storage rejected {attachment.mime_type}")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("url"):
            error = body.get("error") or f"HTTP {response.status_code}"
            raise TransportError(f"Attachment upload failed: {error}")

        return UploadedMedia(
            url=body["url"],
            media_type=body.get("mediaType") or media_type_for(attachment.mime_type),
            mime_type=attachment.mime_type,
            file_name=attachment.name,
            size=attachment.size,
            path=body.get("path"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class LocalAttachmentStorage:
    """Writes attachments under the data directory; for local runs."""

    def __init__(self, root: str | Path | None = None, base_url: str | None = None):
        self._root = Path(root) if root else ATTACHMENTS_DIR
        self._base_url = base_url

    async def store(self, attachment: Attachment, conversation_id: str) -> UploadedMedia:
        relative = _object_path(attachment, conversation_id)
        target = self._root / relative
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(attachment.data)
        except OSError as e:
            raise TransportError(f"Could not write attachment: {e}") from e

        url = f"{self._base_url.rstrip('/')}/{relative}" if self._base_url else target.as_uri()
        return UploadedMedia(
            url=url,
            media_type=media_type_for(attachment.mime_type),
            mime_type=attachment.mime_type,
            file_name=attachment.name,
            size=attachment.size,
            path=relative,
        )
