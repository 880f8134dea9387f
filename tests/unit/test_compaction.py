"""Unit tests for agent_session_core.compaction.engine and config.

Tests cover the sliding-window trigger and overlap, exclusion of already
compacted and rewound events, explicit compaction, and the handling of
failed or empty summaries.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

import pytest

from agent_session_core.compaction.config import CompactionConfig
from agent_session_core.compaction.engine import CompactionEngine, last_compacted_end
from agent_session_core.compaction.summarizer import (
    COMPACTION_AUTHOR,
    BaseEventsSummarizer,
    build_compaction_event,
)
from agent_session_core.session.event import Content, Event, EventActions, Part
from agent_session_core.session.event_log import EventLog
from agent_session_core.session.manager import SessionService
from agent_session_core.session.model import Session
from agent_session_core.storage.memory import InMemoryBackend


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class RecordingSummarizer(BaseEventsSummarizer):
    """Summarizes every run as the joined invocation ids it was given."""

    def __init__(self) -> None:
        self.runs: list[list[Event]] = []

    async def maybe_summarize_events(self, events: Sequence[Event]) -> Event | None:
        self.runs.append(list(events))
        ids = sorted({event.invocation_id for event in events})
        return build_compaction_event(events, "summary of " + ",".join(ids))


class FailingSummarizer(BaseEventsSummarizer):
    async def maybe_summarize_events(self, events: Sequence[Event]) -> Event | None:
        raise RuntimeError("model unavailable")


class EmptySummarizer(BaseEventsSummarizer):
    async def maybe_summarize_events(self, events: Sequence[Event]) -> Event | None:
        return None


@pytest.fixture()
def service() -> SessionService:
    return SessionService(InMemoryBackend())


@pytest.fixture()
def session(service: SessionService) -> Session:
    return service.create_session("app", "u1", session_id="s1")


def _say(service: SessionService, session: Session, invocation_id: str, timestamp: float) -> None:
    service.append_event(
        session,
        Event(
            invocation_id=invocation_id,
            author="user",
            timestamp=timestamp,
            content=Content(parts=[Part.from_text(f"message {invocation_id}")]),
        ),
    )


def _invocation_ids(events: Sequence[Event]) -> list[str]:
    seen: list[str] = []
    for event in events:
        if event.invocation_id not in seen:
            seen.append(event.invocation_id)
    return seen


# ---------------------------------------------------------------------------
# CompactionConfig
# ---------------------------------------------------------------------------


class TestCompactionConfig:
    def test_defaults(self) -> None:
        config = CompactionConfig()
        assert config.compaction_interval == 5
        assert config.overlap_size == 1

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="compaction_interval"):
            CompactionConfig(compaction_interval=0)

    def test_overlap_must_be_non_negative(self) -> None:
        with pytest.raises(ValueError, match="overlap_size"):
            CompactionConfig(overlap_size=-1)


# ---------------------------------------------------------------------------
# Sliding window
# ---------------------------------------------------------------------------


class TestSlidingWindow:
    @pytest.mark.asyncio
    async def test_not_triggered_below_interval(
        self, service: SessionService, session: Session
    ) -> None:
        engine = CompactionEngine(service, RecordingSummarizer(), CompactionConfig(3, 1))
        _say(service, session, "inv1", 1.0)
        _say(service, session, "inv2", 2.0)
        assert await engine.run_sliding_window(session) is None

    @pytest.mark.asyncio
    async def test_triggered_at_interval(self, service: SessionService, session: Session) -> None:
        summarizer = RecordingSummarizer()
        engine = CompactionEngine(service, summarizer, CompactionConfig(2, 1))
        _say(service, session, "inv1", 1.0)
        _say(service, session, "inv2", 2.0)

        event = await engine.run_sliding_window(session)

        assert event is not None
        assert event.author == COMPACTION_AUTHOR
        assert event.actions.compaction is not None
        assert event.actions.compaction.start_timestamp == 1.0
        assert event.actions.compaction.end_timestamp == 2.0
        assert _invocation_ids(summarizer.runs[0]) == ["inv1", "inv2"]
        assert session.events[-1].id == event.id

    @pytest.mark.asyncio
    async def test_overlap_reincludes_previous_invocation(
        self, service: SessionService, session: Session
    ) -> None:
        summarizer = RecordingSummarizer()
        engine = CompactionEngine(service, summarizer, CompactionConfig(2, 1))
        _say(service, session, "inv1", 1.0)
        _say(service, session, "inv2", 2.0)
        await engine.run_sliding_window(session)

        _say(service, session, "inv3", 3.0)
        assert await engine.run_sliding_window(session) is None
        _say(service, session, "inv4", 4.0)
        second = await engine.run_sliding_window(session)

        assert second is not None
        assert _invocation_ids(summarizer.runs[1]) == ["inv2", "inv3", "inv4"]
        assert all(not event.is_compaction for event in summarizer.runs[1])
        assert second.actions.compaction is not None
        assert second.actions.compaction.start_timestamp == 2.0

    @pytest.mark.asyncio
    async def test_zero_overlap(self, service: SessionService, session: Session) -> None:
        summarizer = RecordingSummarizer()
        engine = CompactionEngine(service, summarizer, CompactionConfig(2, 0))
        for index in range(1, 5):
            _say(service, session, f"inv{index}", float(index))
            await engine.run_sliding_window(session)
        assert [_invocation_ids(run) for run in summarizer.runs] == [
            ["inv1", "inv2"],
            ["inv3", "inv4"],
        ]

    @pytest.mark.asyncio
    async def test_invocations_without_content_not_counted(
        self, service: SessionService, session: Session
    ) -> None:
        engine = CompactionEngine(service, RecordingSummarizer(), CompactionConfig(2, 0))
        _say(service, session, "inv1", 1.0)
        service.append_event(
            session,
            Event(
                invocation_id="state-only",
                author="agent",
                timestamp=2.0,
                actions=EventActions(state_delta={"a": 1}),
            ),
        )
        assert engine.select_sliding_window(session) == []

    @pytest.mark.asyncio
    async def test_rewound_invocations_not_counted(
        self, service: SessionService, session: Session
    ) -> None:
        summarizer = RecordingSummarizer()
        engine = CompactionEngine(service, summarizer, CompactionConfig(2, 0))
        _say(service, session, "inv1", 1.0)
        _say(service, session, "inv2", 2.0)
        service.append_event(
            session,
            Event(
                invocation_id="rw",
                author="user",
                timestamp=3.0,
                actions=EventActions(rewind_before_invocation_id="inv2"),
            ),
        )
        assert await engine.run_sliding_window(session) is None

        _say(service, session, "inv3", 4.0)
        await engine.run_sliding_window(session)
        assert _invocation_ids(summarizer.runs[0]) == ["inv1", "inv3"]


# ---------------------------------------------------------------------------
# Explicit compaction
# ---------------------------------------------------------------------------


class TestCompact:
    @pytest.mark.asyncio
    async def test_compacts_everything_new(self, service: SessionService, session: Session) -> None:
        summarizer = RecordingSummarizer()
        engine = CompactionEngine(service, summarizer)
        _say(service, session, "inv1", 1.0)
        _say(service, session, "inv2", 2.0)

        event = await engine.compact(session)

        assert event is not None
        assert _invocation_ids(summarizer.runs[0]) == ["inv1", "inv2"]

    @pytest.mark.asyncio
    async def test_second_pass_excludes_compacted_events(
        self, service: SessionService, session: Session
    ) -> None:
        summarizer = RecordingSummarizer()
        engine = CompactionEngine(service, summarizer)
        _say(service, session, "inv1", 1.0)
        await engine.compact(session)

        assert await engine.compact(session) is None
        _say(service, session, "inv2", 2.0)
        await engine.compact(session)
        assert _invocation_ids(summarizer.runs[1]) == ["inv2"]

    @pytest.mark.asyncio
    async def test_empty_session(self, service: SessionService, session: Session) -> None:
        engine = CompactionEngine(service, RecordingSummarizer())
        assert await engine.compact(session) is None


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestSummarizerFailures:
    @pytest.mark.asyncio
    async def test_failure_keeps_raw_events(
        self,
        service: SessionService,
        session: Session,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        engine = CompactionEngine(service, FailingSummarizer(), CompactionConfig(1, 0))
        _say(service, session, "inv1", 1.0)

        with caplog.at_level(logging.WARNING):
            assert await engine.run_sliding_window(session) is None

        stored = service.get_session("app", "u1", "s1")
        assert len(stored.events) == 1
        assert not any(event.is_compaction for event in stored.events)
        assert "model unavailable" in caplog.text

    @pytest.mark.asyncio
    async def test_none_summary_skips(
        self,
        service: SessionService,
        session: Session,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        engine = CompactionEngine(service, EmptySummarizer(), CompactionConfig(1, 0))
        _say(service, session, "inv1", 1.0)
        with caplog.at_level(logging.INFO):
            assert await engine.compact(session) is None
        assert len(session.events) == 1
        assert "no summary" in caplog.text


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestLastCompactedEnd:
    def test_zero_without_compactions(self) -> None:
        assert last_compacted_end([Event(author="user")]) == 0.0

    def test_newest_compaction_wins(self) -> None:
        session = Session(app_name="app", user_id="u1")
        log = EventLog(session)
        first = Event(author="user", timestamp=1.0, content=Content(parts=[Part.from_text("a")]))
        second = Event(author="user", timestamp=5.0, content=Content(parts=[Part.from_text("b")]))
        log.append(build_compaction_event([first], "one"))
        log.append(build_compaction_event([first, second], "two"))
        assert last_compacted_end(session.events) == 5.0
