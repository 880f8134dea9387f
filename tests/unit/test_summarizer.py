"""Unit tests for agent_session_core.compaction.summarizer.

Tests cover rendering events for a prompt, the compaction event builder,
the offline extractive summarizer and the LLM-backed summarizer.
"""
from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from agent_session_core.compaction.summarizer import (
    COMPACTION_AUTHOR,
    DEFAULT_PROMPT_TEMPLATE,
    ExtractiveEventsSummarizer,
    LlmEventsSummarizer,
    build_compaction_event,
    render_events_for_summary,
)
from agent_session_core.session.event import Content, Event, EventActions, Part


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _text_event(author: str, text: str, timestamp: float) -> Event:
    return Event(
        invocation_id=f"inv-{timestamp}",
        author=author,
        timestamp=timestamp,
        content=Content(role="user" if author == "user" else "model", parts=[Part.from_text(text)]),
    )


_CONVERSATION = [
    _text_event("user", "I need to migrate the billing database to PostgreSQL. It runs MySQL today.", 1.0),
    _text_event("agent", "Migrating billing requires a schema export first. Then we validate the row counts.", 2.0),
    _text_event("user", "Great. Please also keep the invoices table read-only during the migration.", 3.0),
]


# ---------------------------------------------------------------------------
# render_events_for_summary / build_compaction_event
# ---------------------------------------------------------------------------


class TestRenderEventsForSummary:
    def test_author_prefixed_lines(self) -> None:
        rendered = render_events_for_summary(
            [_text_event("user", "hello", 1.0), _text_event("agent", "hi there", 2.0)]
        )
        assert rendered == "user: hello\nagent: hi there"

    def test_skips_events_without_text(self) -> None:
        events = [
            Event(author="agent", actions=EventActions(state_delta={"a": 1})),
            Event(
                author="agent",
                content=Content(parts=[Part.from_function_call("lookup", {}, id="c1")]),
            ),
        ]
        assert render_events_for_summary(events) == ""

    def test_skips_compactions(self) -> None:
        first = _text_event("user", "hello", 1.0)
        compaction = build_compaction_event([first], "old summary")
        assert render_events_for_summary([first, compaction]) == "user: hello"


class TestBuildCompactionEvent:
    def test_covers_range(self) -> None:
        event = build_compaction_event(_CONVERSATION, "summary")
        assert event.author == COMPACTION_AUTHOR
        assert event.actions.compaction is not None
        assert event.actions.compaction.start_timestamp == 1.0
        assert event.actions.compaction.end_timestamp == 3.0
        assert event.actions.compaction.compacted_content.text() == "summary"

    def test_timestamp_not_before_range_end(self) -> None:
        future = _text_event("user", "later", 10_000_000_000.0)
        event = build_compaction_event([future], "summary")
        assert event.timestamp == 10_000_000_000.0


# ---------------------------------------------------------------------------
# ExtractiveEventsSummarizer
# ---------------------------------------------------------------------------


class TestExtractiveEventsSummarizer:
    def test_invalid_budget(self) -> None:
        with pytest.raises(ValueError, match="max_tokens"):
            ExtractiveEventsSummarizer(max_tokens=0)

    def test_lines_keep_author_and_order(self) -> None:
        summary = ExtractiveEventsSummarizer().summarize_text(_CONVERSATION)
        lines = summary.splitlines()
        assert lines
        assert all(line.split(": ", 1)[0] in {"user", "agent"} for line in lines)
        assert lines[0].startswith("user: ")

    def test_budget_limits_output(self) -> None:
        small = ExtractiveEventsSummarizer(max_tokens=10).summarize_text(_CONVERSATION)
        large = ExtractiveEventsSummarizer(max_tokens=500).summarize_text(_CONVERSATION)
        assert len(small.splitlines()) < len(large.splitlines())

    def test_sentences_per_event_cap(self) -> None:
        summary = ExtractiveEventsSummarizer(max_sentences_per_event=1).summarize_text(
            _CONVERSATION
        )
        assert len(summary.splitlines()) == 3

    def test_sentences_come_from_input(self) -> None:
        summary = ExtractiveEventsSummarizer().summarize_text(_CONVERSATION)
        source = " ".join(event.content.text() for event in _CONVERSATION if event.content)
        for line in summary.splitlines():
            assert line.split(": ", 1)[1] in source

    @pytest.mark.asyncio
    async def test_returns_compaction_event(self) -> None:
        event = await ExtractiveEventsSummarizer().maybe_summarize_events(_CONVERSATION)
        assert event is not None
        assert event.is_compaction
        assert event.content is not None and "billing" in event.content.text()

    @pytest.mark.asyncio
    async def test_no_text_returns_none(self) -> None:
        events = [Event(author="agent", actions=EventActions(state_delta={"a": 1}))]
        assert await ExtractiveEventsSummarizer().maybe_summarize_events(events) is None

    @pytest.mark.asyncio
    async def test_empty_returns_none(self) -> None:
        assert await ExtractiveEventsSummarizer().maybe_summarize_events([]) is None


# ---------------------------------------------------------------------------
# LlmEventsSummarizer
# ---------------------------------------------------------------------------


class TestLlmEventsSummarizer:
    def test_template_requires_placeholder(self) -> None:
        async def generate(prompt: str) -> str:
            return prompt

        with pytest.raises(ValueError, match="conversation_history"):
            LlmEventsSummarizer(generate, prompt_template="no placeholder")

    def test_prompt_contains_history(self) -> None:
        async def generate(prompt: str) -> str:
            return prompt

        summarizer = LlmEventsSummarizer(generate)
        prompt = summarizer.build_prompt([_text_event("user", "hello", 1.0)])
        assert prompt.startswith(DEFAULT_PROMPT_TEMPLATE.split("{", 1)[0])
        assert prompt.endswith("user: hello")

    @pytest.mark.asyncio
    async def test_awaitable_generator(self) -> None:
        prompts: list[str] = []

        async def generate(prompt: str) -> str:
            prompts.append(prompt)
            return "The user wants a PostgreSQL migration."

        event = await LlmEventsSummarizer(generate).maybe_summarize_events(_CONVERSATION)
        assert event is not None
        assert event.content is not None
        assert event.content.text() == "The user wants a PostgreSQL migration."
        assert len(prompts) == 1

    @pytest.mark.asyncio
    async def test_streaming_generator(self) -> None:
        async def generate(prompt: str) -> AsyncIterator[str]:
            for chunk in ("Part one. ", "Part two."):
                yield chunk

        event = await LlmEventsSummarizer(generate).maybe_summarize_events(_CONVERSATION)
        assert event is not None
        assert event.content is not None
        assert event.content.text() == "Part one. Part two."

    @pytest.mark.asyncio
    async def test_blank_output_returns_none(self) -> None:
        async def generate(prompt: str) -> str:
            return "   "

        assert await LlmEventsSummarizer(generate).maybe_summarize_events(_CONVERSATION) is None

    @pytest.mark.asyncio
    async def test_no_text_skips_generator(self) -> None:
        called: list[str] = []

        async def generate(prompt: str) -> str:
            called.append(prompt)
            return "x"

        events = [Event(author="agent", actions=EventActions(state_delta={"a": 1}))]
        assert await LlmEventsSummarizer(generate).maybe_summarize_events(events) is None
        assert called == []

    @pytest.mark.asyncio
    async def test_generator_errors_propagate(self) -> None:
        async def generate(prompt: str) -> str:
            raise ConnectionError("offline")

        with pytest.raises(ConnectionError):
            await LlmEventsSummarizer(generate).maybe_summarize_events(_CONVERSATION)
