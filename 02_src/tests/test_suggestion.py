"""Tests for SuggestionAssistant."""

import asyncio

import pytest

from inbox.assistant import SuggestionAssistant
from inbox.errors import NoContext, NotFound, Timeout, TransportError
from inbox.models import Direction


@pytest.fixture
def assistant(mock_llm, store, storage, tracker):
    return SuggestionAssistant(mock_llm, store, storage, tracker, timeout=1)


class TestSuggestionContext:
    """Tests for context selection."""

    async def test_suggests_from_last_inbound(self, assistant, mock_llm, make_conversation, make_message):
        """Test that the prompt carries the window and the last inbound message."""
        await make_conversation("conv-1")
        messages = [
            make_message("m1", offset=0, text="Hi, is the jacket in stock?"),
            make_message("m2", offset=10, direction=Direction.OUTBOUND, text="Yes it is!"),
            make_message("m3", offset=20, text="Do you ship to Lisbon?"),
        ]
        mock_llm.complete.return_value = "  Yes, we ship to Lisbon in 3-5 days.  "

        suggestion = await assistant.suggest("conv-1", messages)

        assert suggestion == "Yes, we ship to Lisbon in 3-5 days."
        kwargs = mock_llm.complete.call_args.kwargs
        prompt = kwargs["messages"][0]["content"]
        assert '"Do you ship to Lisbon?"' in prompt
        assert "You: Yes it is!" in prompt
        assert "PLATFORM: whatsapp" in prompt
        assert kwargs["max_tokens"] == 150

    async def test_window_is_last_five(self, assistant, mock_llm, make_conversation, make_message):
        await make_conversation("conv-1")
        messages = [make_message(f"m{i}", offset=i, text=f"question {i}") for i in range(8)]

        await assistant.suggest("conv-1", messages)

        prompt = mock_llm.complete.call_args.kwargs["messages"][0]["content"]
        assert "question 2" not in prompt
        assert "question 3" in prompt

    async def test_no_inbound_raises(self, assistant, mock_llm, make_conversation, make_message):
        """Test that only-outbound history raises NoContext without calling the LLM."""
        await make_conversation("conv-1")
        messages = [make_message("m1", direction=Direction.OUTBOUND, text="Hello!")]

        with pytest.raises(NoContext):
            await assistant.suggest("conv-1", messages)
        mock_llm.complete.assert_not_called()

    async def test_inbound_outside_window(self, assistant, make_conversation, make_message):
        await make_conversation("conv-1")
        messages = [make_message("m0", offset=0, text="old question")] + [
            make_message(f"o{i}", offset=i + 1, direction=Direction.OUTBOUND, text="reply")
            for i in range(5)
        ]

        with pytest.raises(NoContext):
            await assistant.suggest("conv-1", messages)

    async def test_uses_stored_history(self, assistant, mock_llm, storage, make_conversation, make_message):
        await make_conversation("conv-1")
        await storage.save_message(make_message("m1", text="Where is my order?"))

        await assistant.suggest("conv-1")

        prompt = mock_llm.complete.call_args.kwargs["messages"][0]["content"]
        assert "Where is my order?" in prompt

    async def test_unknown_conversation(self, assistant):
        with pytest.raises(NotFound):
            await assistant.suggest("missing", [])


class TestSuggestionFailures:
    """Tests for LLM failures."""

    async def test_llm_error(self, assistant, mock_llm, make_conversation, make_message):
        await make_conversation("conv-1")
        mock_llm.complete.side_effect = RuntimeError("LLM API error: overloaded")

        with pytest.raises(TransportError):
            await assistant.suggest("conv-1", [make_message("m1")])

    async def test_llm_timeout(self, mock_llm, store, storage, tracker, make_conversation, make_message):
        await make_conversation("conv-1")

        async def slow(**kwargs):
            await asyncio.sleep(10)

        mock_llm.complete.side_effect = slow
        assistant = SuggestionAssistant(mock_llm, store, storage, tracker, timeout=0.01)

        with pytest.raises(Timeout):
            await assistant.suggest("conv-1", [make_message("m1")])

    async def test_default_timeout_from_env(
        self, mock_llm, store, storage, tracker, make_conversation, make_message, monkeypatch
    ):
        monkeypatch.setenv("INBOX_CALL_TIMEOUT", "0.01")
        await make_conversation("conv-1")

        async def slow(**kwargs):
            await asyncio.sleep(10)

        mock_llm.complete.side_effect = slow
        assistant = SuggestionAssistant(mock_llm, store, storage, tracker)

        with pytest.raises(Timeout):
            await assistant.suggest("conv-1", [make_message("m1")])

    async def test_tracks_suggestion(self, assistant, storage, make_conversation, make_message):
        await make_conversation("conv-1")
        await assistant.suggest("conv-1", [make_message("m1")])

        events = await storage.get_trace_events(event_types=["suggestion_generated"])
        assert events[0].data["context_length"] == 1
