"""Conversation list and state API routes."""

from datetime import datetime

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...models import Conversation, ConversationFilters, ConversationStatus, Platform


class TeamTagResponse(BaseModel):
    team_id: str
    name: str
    color: str


class ConversationResponse(BaseModel):
    """Response model for a conversation."""

    id: str
    platform: str
    platform_conversation_id: str
    participant_id: str
    participant_name: str | None
    participant_username: str | None
    display_name: str
    status: str
    archived: bool
    tags: list[str]
    teams: list[TeamTagResponse]
    last_message_at: datetime
    last_message_text: str | None
    last_message_direction: str | None
    created_at: datetime


class StatsResponse(BaseModel):
    unread_count: int
    read_count: int
    archived_count: int


class TagsRequest(BaseModel):
    """Request model for adding tags."""

    tags: list[str] = Field(min_length=1)


class TagsResponse(BaseModel):
    tags: list[str]


class ArchiveRequest(BaseModel):
    archived: bool = True


def conversation_to_dict(conversation: Conversation) -> dict:
    return {
        "id": conversation.id,
        "platform": conversation.platform.value,
        "platform_conversation_id": conversation.platform_conversation_id,
        "participant_id": conversation.participant_id,
        "participant_name": conversation.participant_name,
        "participant_username": conversation.participant_username,
        "display_name": conversation.display_name,
        "status": conversation.status.value,
        "archived": conversation.archived,
        "tags": conversation.tags,
        "teams": [
            {"team_id": t.team_id, "name": t.name, "color": t.color}
            for t in conversation.teams
        ],
        "last_message_at": conversation.last_message_at,
        "last_message_text": conversation.last_message_text,
        "last_message_direction": conversation.last_message_direction,
        "created_at": conversation.created_at,
    }


def create_conversations_router(app: Application) -> APIRouter:
    """Create conversations router."""
    router = APIRouter(prefix="/api/conversations", tags=["conversations"])

    @router.get("", response_model=list[ConversationResponse])
    async def list_conversations(
        status: list[str] | None = Query(None, description="unread and/or read"),
        platform: list[str] | None = Query(None, description="Filter by platform"),
        tag: list[str] | None = Query(None, description="Filter by tag"),
        search: str | None = Query(None, description="Participant or preview text"),
        include_archived: bool = Query(False),
    ) -> list[dict]:
        """List conversations, most recent activity first."""
        try:
            filters = ConversationFilters(
                status=[ConversationStatus(s) for s in status] if status else None,
                platform=[Platform(p) for p in platform] if platform else None,
                tags=tag,
                search=search,
                include_archived=include_archived,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        conversations = await app.conversations.list(filters)
        return [conversation_to_dict(c) for c in conversations]

    @router.get("/stats", response_model=StatsResponse)
    async def get_stats() -> dict:
        """Unread, read and archived counters."""
        stats = await app.conversations.stats()
        return {
            "unread_count": stats.unread_count,
            "read_count": stats.read_count,
            "archived_count": stats.archived_count,
        }

    @router.get("/{conversation_id}", response_model=ConversationResponse)
    async def get_conversation(conversation_id: str) -> dict:
        conversation = await app.conversations.select(conversation_id)
        return conversation_to_dict(conversation)

    @router.post("/{conversation_id}/read", response_model=ConversationResponse)
    async def mark_read(conversation_id: str) -> dict:
        """Mark the conversation and its messages read."""
        await app.conversations.mark_read(conversation_id)
        return conversation_to_dict(await app.conversations.select(conversation_id))

    @router.post("/{conversation_id}/unread", response_model=ConversationResponse)
    async def mark_unread(conversation_id: str) -> dict:
        await app.conversations.mark_unread(conversation_id)
        return conversation_to_dict(await app.conversations.select(conversation_id))

    @router.post("/{conversation_id}/tags", response_model=TagsResponse)
    async def add_tags(conversation_id: str, request: TagsRequest) -> dict:
        tags = await app.conversations.add_tags(conversation_id, request.tags)
        return {"tags": tags}

    @router.delete("/{conversation_id}/tags/{tag}", response_model=TagsResponse)
    async def remove_tag(conversation_id: str, tag: str) -> dict:
        tags = await app.conversations.remove_tag(conversation_id, tag)
        return {"tags": tags}

    @router.post("/{conversation_id}/archive", response_model=ConversationResponse)
    async def archive(conversation_id: str, request: ArchiveRequest) -> dict:
        """Archive or restore a conversation."""
        await app.conversations.archive(conversation_id, request.archived)
        return conversation_to_dict(await app.conversations.select(conversation_id))

    return router
