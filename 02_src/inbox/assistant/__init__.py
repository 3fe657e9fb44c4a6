"""Reply assistant module."""

from .suggestion import ISuggestionAssistant, SuggestionAssistant

__all__ = ["ISuggestionAssistant", "SuggestionAssistant"]
