"""Inbound webhook routes for platform integrations."""

from datetime import datetime, timezone

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import Application
from ...models import InboundMessage
from .messaging import MessageResponse, message_to_dict


class InboundRequest(BaseModel):
    """Normalized inbound message posted by a platform integration."""

    platform: str
    platform_conversation_id: str
    participant_id: str
    sent_at: datetime | None = None
    text_content: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    platform_message_id: str | None = None
    participant_name: str | None = None
    participant_username: str | None = None
    id: str | None = None


def create_webhooks_router(app: Application) -> APIRouter:
    """Create webhooks router."""
    router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

    @router.post("/inbound", response_model=MessageResponse)
    async def receive_inbound(request: InboundRequest) -> dict:
        sent_at = request.sent_at or datetime.now(timezone.utc)
        if sent_at.tzinfo is None:
            sent_at = sent_at.replace(tzinfo=timezone.utc)
        inbound = InboundMessage(
            platform=request.platform,
            platform_conversation_id=request.platform_conversation_id,
            participant_id=request.participant_id,
            sent_at=sent_at,
            text_content=request.text_content,
            media_url=request.media_url,
            media_type=request.media_type,
            platform_message_id=request.platform_message_id,
            participant_name=request.participant_name,
            participant_username=request.participant_username,
            id=request.id,
        )
        try:
            message = await app.ingestor.ingest(inbound)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return message_to_dict(message)

    return router
