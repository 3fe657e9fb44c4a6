"""AttachmentUploader implementation."""

import uuid
from contextlib import contextmanager
from typing import Iterator

from ..config import (
    ALLOWED_MIME_PREFIXES,
    ALLOWED_MIME_TYPES,
    MAX_ATTACHMENT_BYTES,
    call_timeout,
)
from ..errors import TooLarge, TransportError, UnsupportedMediaType, with_timeout
from ..logging_config import get_logger
from ..models import Attachment, UploadedMedia
from ..tracker import ITracker
from .backends import IAttachmentStorage

logger = get_logger(__name__)


class PreviewRegistry:
    """Local preview handles for attachments still being composed.

    Every handle created must be released, when the attachment is cleared or
    after a successful send.
    """

    def __init__(self):
        self._previews: dict[str, Attachment] = {}

    def create(self, attachment: Attachment) -> str:
        url = f"blob:{uuid.uuid4()}"
        self._previews[url] = attachment
        return url

    def get(self, url: str) -> Attachment | None:
        return self._previews.get(url)

    def release(self, url: str | None) -> None:
        if url is not None:
            self._previews.pop(url, None)

    def release_all(self) -> None:
        self._previews.clear()

    @property
    def live_count(self) -> int:
        return len(self._previews)

    @contextmanager
    def preview(self, attachment: Attachment) -> Iterator[str]:
        url = self.create(attachment)
        try:
            yield url
        finally:
            self.release(url)


class AttachmentUploader:
    """Validates attachments and hands them to attachment storage."""

    def __init__(
        self,
        storage: IAttachmentStorage,
        tracker: ITracker,
        max_bytes: int = MAX_ATTACHMENT_BYTES,
        timeout: float | None = None,
    ):
        self._storage = storage
        self._tracker = tracker
        self._max_bytes = max_bytes
        self._timeout = call_timeout() if timeout is None else timeout
        self.previews = PreviewRegistry()

    def validate(self, attachment: Attachment) -> None:
        """Raise TooLarge or UnsupportedMediaType before any upload attempt."""
        if attachment.size > self._max_bytes:
            raise TooLarge(
                f"{attachment.name} is {attachment.size} bytes, "
                f"limit is {self._max_bytes} bytes"
            )
        mime_type = attachment.mime_type.lower()
        if not (
            mime_type.startswith(ALLOWED_MIME_PREFIXES) or mime_type in ALLOWED_MIME_TYPES
        ):
            raise UnsupportedMediaType(f"{attachment.mime_type} is not supported")

    async def upload(self, attachment: Attachment, conversation_id: str) -> UploadedMedia:
        """Validate and store an attachment, returning its durable URL."""
        self.validate(attachment)

        logger.info(
            "Uploading %s (%s bytes, %s)",
            attachment.name,
            attachment.size,
            attachment.mime_type,
            extra={"conversation_id": conversation_id},
        )
        try:
            media = await with_timeout(
                self._storage.store(attachment, conversation_id),
                self._timeout,
                "attachment upload",
            )
        except (TransportError, UnsupportedMediaType):
            raise
        except Exception as e:
            raise TransportError(f"Attachment upload failed: {e}") from e

        await self._tracker.track(
            event_type="attachment_uploaded",
            actor="attachment_uploader",
            data={
                "conversation_id": conversation_id,
                "file_name": attachment.name,
                "size": attachment.size,
                "media_type": media.media_type,
            },
        )
        return media
