"""Conversation view module."""

from .conversation_view import ConversationView

__all__ = ["ConversationView"]
