"""Tests for LLMProvider."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from inbox.llm import DEFAULT_MODEL, LLMProvider


class TestLLMProviderInit:
    """Tests for LLMProvider initialization."""

    def test_init_with_api_key(self, monkeypatch):
        """Test initialization with API key."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")
        monkeypatch.delenv("LLM_MODEL", raising=False)

        with patch("inbox.llm.llm_provider.anthropic.AsyncAnthropic"):
            provider = LLMProvider()
            assert provider.model == DEFAULT_MODEL

    def test_model_from_env(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")
        monkeypatch.setenv("LLM_MODEL", "claude-test")

        with patch("inbox.llm.llm_provider.anthropic.AsyncAnthropic"):
            assert LLMProvider().model == "claude-test"

    def test_init_without_api_key(self, monkeypatch):
        """Test initialization without API key raises error."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with patch("inbox.llm.llm_provider.anthropic.AsyncAnthropic"):
            with pytest.raises(ValueError):
                LLMProvider()


class TestLLMProviderComplete:
    """Tests for LLMProvider.complete() method."""

    async def test_complete_returns_response(self, monkeypatch):
        """Test that complete() joins the text blocks of the response."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")

        mock_client = Mock()
        mock_response = Mock()
        mock_response.content = [Mock(type="text", text="Sure, "), Mock(type="text", text="happy to help.")]
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        with patch(
            "inbox.llm.llm_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = LLMProvider()
            response = await provider.complete(
                messages=[{"role": "user", "content": "Hello"}]
            )

            assert response == "Sure, happy to help."

    async def test_complete_sends_correct_format(self, monkeypatch):
        """Test that optional arguments are only sent when given."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")

        mock_client = Mock()
        mock_response = Mock()
        mock_response.content = [Mock(type="text", text="ok")]
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        with patch(
            "inbox.llm.llm_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = LLMProvider(model="claude-test")
            await provider.complete(
                messages=[{"role": "user", "content": "Hello"}],
                system="Be brief",
                max_tokens=150,
                temperature=0.7,
            )
            await provider.complete(messages=[{"role": "user", "content": "Hi"}])

        first, second = mock_client.messages.create.call_args_list
        assert first.kwargs == {
            "model": "claude-test",
            "messages": [{"role": "user", "content": "Hello"}],
            "max_tokens": 150,
            "system": "Be brief",
            "temperature": 0.7,
        }
        assert "system" not in second.kwargs
        assert "temperature" not in second.kwargs

    async def test_complete_wraps_errors(self, monkeypatch):
        """Test that API errors are raised as RuntimeError."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")

        mock_client = Mock()
        mock_client.messages.create = AsyncMock(side_effect=Exception("overloaded"))

        with patch(
            "inbox.llm.llm_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = LLMProvider()
            with pytest.raises(RuntimeError, match="LLM API error"):
                await provider.complete(messages=[{"role": "user", "content": "Hello"}])
