"""Error taxonomy for the inbox core.

Components raise these; the conversation view and the HTTP routes catch them
and turn them into notifications or status codes. Nothing here is retried
automatically.
"""

import asyncio
from typing import Awaitable, TypeVar

T = TypeVar("T")


class InboxError(Exception):
    """Base class for all inbox failures."""

    code = "inbox_error"
    title = "Something went wrong"


class NotFound(InboxError):
    """Referenced conversation has no backing record."""

    code = "not_found"
    title = "Conversation not found"


class ValidationError(InboxError):
    """Request rejected before any collaborator was contacted."""

    code = "validation_failed"
    title = "Nothing to send"


class TransportError(InboxError):
    """Transport failure on a read or write."""

    code = "transport_error"
    title = "Connection problem"


class LoadError(TransportError):
    """Message history could not be loaded."""

    code = "load_failed"
    title = "Could not load messages"


class Timeout(TransportError):
    """An external call exceeded its deadline."""

    code = "timeout"
    title = "The request timed out"


class UploadFailed(InboxError):
    """Attachment could not be stored; the send was aborted."""

    code = "upload_failed"
    title = "Attachment upload failed"


class TooLarge(UploadFailed):
    """Attachment exceeds the size cap."""

    code = "too_large"
    title = "Attachment is too large"


class UnsupportedMediaType(UploadFailed):
    """Attachment MIME type is not accepted by storage."""

    code = "unsupported_media_type"
    title = "Attachment type not supported"


class DeliveryFailed(InboxError):
    """Platform adapter reported a failed delivery."""

    code = "delivery_failed"
    title = "Message not sent"


class NoContext(InboxError):
    """Suggestion requested without an inbound message in view."""

    code = "no_context"
    title = "No incoming message"


class DispatchInProgress(InboxError):
    """A send is already in flight for this view."""

    code = "dispatch_in_progress"
    title = "Already sending"


async def with_timeout(awaitable: Awaitable[T], timeout: float | None, operation: str) -> T:
    """Await with a deadline, raising Timeout instead of asyncio.TimeoutError."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise Timeout(f"{operation} timed out after {timeout}s") from e
