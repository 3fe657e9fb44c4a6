"""Messaging API routes."""

import base64
import binascii
from datetime import datetime

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...models import Attachment, Message


class AttachmentPayload(BaseModel):
    """Attachment carried inline as base64."""

    name: str
    mime_type: str
    data: str


class SendRequest(BaseModel):
    """Request model for sending a message."""

    text: str | None = None
    attachment: AttachmentPayload | None = None


class MessageResponse(BaseModel):
    """Response model for message."""

    id: str
    conversation_id: str
    direction: str
    message_type: str
    text_content: str | None
    media_url: str | None
    media_type: str | None
    platform_message_id: str | None
    sender_id: str
    sender_name: str | None
    sender_username: str | None
    is_read: bool
    sent_at: datetime


class SendResponse(BaseModel):
    message: MessageResponse
    persisted: bool


class SuggestionResponse(BaseModel):
    suggestion: str


def message_to_dict(message: Message) -> dict:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "direction": message.direction.value,
        "message_type": message.type.value,
        "text_content": message.text_content,
        "media_url": message.media_url,
        "media_type": message.media_type,
        "platform_message_id": message.platform_message_id,
        "sender_id": message.sender_id,
        "sender_name": message.sender_name,
        "sender_username": message.sender_username,
        "is_read": message.is_read,
        "sent_at": message.sent_at,
    }


def decode_attachment(payload: AttachmentPayload) -> Attachment:
    try:
        data = base64.b64decode(payload.data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Attachment data is not valid base64")
    return Attachment(name=payload.name, mime_type=payload.mime_type, data=data)


def create_messaging_router(app: Application) -> APIRouter:
    """Create messaging router."""
    router = APIRouter(prefix="/api/conversations", tags=["messaging"])

    @router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
    async def list_messages(
        conversation_id: str,
        limit: int | None = Query(None, ge=1, le=1000, description="Newest N messages"),
    ) -> list[dict]:
        """Message history, oldest first."""
        await app.conversations.select(conversation_id)
        messages = await app.storage.get_messages(conversation_id, limit=limit)
        return [message_to_dict(m) for m in messages]

    @router.post("/{conversation_id}/messages", response_model=SendResponse)
    async def send_message(conversation_id: str, request: SendRequest) -> dict:
        """Upload, deliver and record an outbound message."""
        attachment = decode_attachment(request.attachment) if request.attachment else None
        result = await app.dispatcher.send(conversation_id, request.text, attachment)
        return {"message": message_to_dict(result.message), "persisted": result.persisted}

    @router.post("/{conversation_id}/suggestion", response_model=SuggestionResponse)
    async def suggest_reply(conversation_id: str) -> dict:
        """Draft a reply to the latest inbound message."""
        assistant = app.assistant
        if assistant is None:
            raise HTTPException(status_code=503, detail="Reply suggestions are not configured")
        suggestion = await assistant.suggest(conversation_id)
        return {"suggestion": suggestion}

    return router
