"""Unit tests for agent_session_core.context.assembler.

Tests cover compaction substitution, the rewind-before-compaction
ordering, contained-compaction pruning, branch filtering, token budgets
and rendering.
"""
from __future__ import annotations

import pytest

from agent_session_core.context.assembler import ContextAssembler, is_visible_on_branch
from agent_session_core.session.event import (
    Content,
    Event,
    EventActions,
    EventCompaction,
    Part,
)
from agent_session_core.session.event_log import EventLog
from agent_session_core.session.model import Session


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session() -> tuple[Session, EventLog]:
    session = Session(app_name="app", user_id="u1")
    return session, EventLog(session)


def _say(
    invocation_id: str, timestamp: float, text: str | None = None, branch: str | None = None
) -> Event:
    return Event(
        invocation_id=invocation_id,
        author="user",
        timestamp=timestamp,
        branch=branch,
        content=Content(parts=[Part.from_text(text or f"message {invocation_id}")]),
    )


def _compaction(start: float, end: float, summary: str, timestamp: float) -> Event:
    return Event(
        invocation_id=f"compaction-{summary}",
        author="system",
        timestamp=timestamp,
        actions=EventActions(
            compaction=EventCompaction(
                start_timestamp=start,
                end_timestamp=end,
                compacted_content=Content(role="model", parts=[Part.from_text(summary)]),
            )
        ),
    )


def _texts(events: list[Event]) -> list[str]:
    return [event.content.text() for event in events if event.content is not None]


# ---------------------------------------------------------------------------
# Compaction substitution
# ---------------------------------------------------------------------------


class TestCompactionSubstitution:
    def test_no_compactions_returns_visible_events(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0))
        log.append(_say("inv2", 2.0))
        assert _texts(ContextAssembler().assemble(session)) == ["message inv1", "message inv2"]

    def test_summary_replaces_covered_events(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0))
        log.append(_say("inv2", 2.0))
        log.append(_compaction(1.0, 2.0, "S1", 2.5))
        log.append(_say("inv3", 3.0))

        context = ContextAssembler().assemble(session)

        assert _texts(context) == ["S1", "message inv3"]
        assert context[0].author == "system"
        assert context[0].timestamp == 2.0

    def test_summary_emitted_at_first_covered_position(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0))
        log.append(_say("inv2", 2.0))
        log.append(_say("inv3", 3.0))
        log.append(_compaction(2.0, 3.0, "S", 3.5))
        assert _texts(ContextAssembler().assemble(session)) == ["message inv1", "S"]

    def test_contained_compaction_dropped(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0))
        log.append(_say("inv2", 2.0))
        log.append(_compaction(1.0, 2.0, "inner", 2.5))
        log.append(_say("inv3", 3.0))
        log.append(_compaction(1.0, 3.0, "outer", 3.5))
        assert _texts(ContextAssembler().assemble(session)) == ["outer"]

    def test_overlapping_compactions_each_emitted_once(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0))
        log.append(_say("inv2", 2.0))
        log.append(_compaction(1.0, 2.0, "first", 2.5))
        log.append(_say("inv3", 3.0))
        log.append(_compaction(2.0, 3.0, "second", 3.5))
        log.append(_say("inv4", 4.0))
        assert _texts(ContextAssembler().assemble(session)) == [
            "first",
            "second",
            "message inv4",
        ]

    def test_compaction_does_not_hide_later_events(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0))
        log.append(_compaction(1.0, 1.0, "S", 1.5))
        log.append(_say("inv2", 1.0))
        assert _texts(ContextAssembler().assemble(session)) == ["S", "message inv2"]


# ---------------------------------------------------------------------------
# Rewind interaction
# ---------------------------------------------------------------------------


class TestRewindBeforeCompaction:
    def test_rewound_summary_not_resurrected(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0))
        log.append(_say("inv2", 2.0, "secret plan"))
        log.append(_compaction(1.0, 2.0, "summary mentioning secret plan", 2.5))
        log.append(
            Event(
                invocation_id="rw",
                author="user",
                timestamp=3.0,
                actions=EventActions(rewind_before_invocation_id="inv2"),
            )
        )

        context = ContextAssembler().assemble(session)

        assert _texts(context) == ["message inv1"]

    def test_as_of_sees_pre_rewind_view(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0))
        log.append(_say("inv2", 2.0))
        log.append(
            Event(
                invocation_id="rw",
                author="user",
                timestamp=3.0,
                actions=EventActions(rewind_before_invocation_id="inv2"),
            )
        )
        assembler = ContextAssembler()
        assert _texts(assembler.assemble(session, as_of=2.0)) == ["message inv1", "message inv2"]
        assert _texts(assembler.assemble(session)) == ["message inv1"]


# ---------------------------------------------------------------------------
# Branches
# ---------------------------------------------------------------------------


class TestBranches:
    def test_is_visible_on_branch(self) -> None:
        event = _say("i", 1.0, branch="root")
        assert is_visible_on_branch(event, "root.child")
        assert is_visible_on_branch(event, "root")
        assert not is_visible_on_branch(_say("i", 1.0, branch="root.other"), "root.child")
        assert is_visible_on_branch(_say("i", 1.0), "anything")
        assert is_visible_on_branch(event, None)

    def test_prefix_must_end_at_segment(self) -> None:
        assert not is_visible_on_branch(_say("i", 1.0, branch="root.a"), "root.ab")

    def test_branch_filter(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0, "shared"))
        log.append(_say("inv2", 2.0, "from a", branch="root.a"))
        log.append(_say("inv3", 3.0, "from b", branch="root.b"))
        context = ContextAssembler().assemble(session, branch="root.a")
        assert _texts(context) == ["shared", "from a"]


# ---------------------------------------------------------------------------
# Budgets and content filtering
# ---------------------------------------------------------------------------


class TestBudget:
    def test_events_without_content_skipped(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0))
        log.append(Event(author="agent", timestamp=2.0, actions=EventActions(state_delta={"a": 1})))
        assert len(ContextAssembler().assemble(session)) == 1

    def test_oldest_events_evicted(self) -> None:
        session, log = _session()
        for index in range(5):
            log.append(_say(f"inv{index}", float(index), "x" * 80))
        context = ContextAssembler(max_tokens=50).assemble(session)
        assert _texts(context) == ["x" * 80, "x" * 80]
        assert context[-1].invocation_id == "inv4"

    def test_newest_event_always_kept(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0, "y" * 400))
        context = ContextAssembler(max_tokens=1).assemble(session)
        assert len(context) == 1

    def test_invalid_budget(self) -> None:
        with pytest.raises(ValueError, match="max_tokens"):
            ContextAssembler(max_tokens=0)

    def test_iter_context_is_fresh_each_call(self) -> None:
        session, log = _session()
        log.append(_say("inv1", 1.0))
        assembler = ContextAssembler()
        first = list(assembler.iter_context(session))
        log.append(_say("inv2", 2.0))
        assert len(first) == 1
        assert len(list(assembler.iter_context(session))) == 2


# ---------------------------------------------------------------------------
# render
# ---------------------------------------------------------------------------


class TestRender:
    def test_text_blocks(self) -> None:
        events = [_say("inv1", 1.0, "hello"), _say("inv2", 2.0, "again")]
        assert ContextAssembler().render(events) == "user: hello\n\nuser: again"

    def test_function_parts(self) -> None:
        event = Event(
            author="agent",
            content=Content(
                role="model",
                parts=[
                    Part.from_function_call("lookup", {"id": 7}, id="c1"),
                    Part.from_function_response("lookup", {"found": True}, id="c1"),
                ],
            ),
        )
        rendered = ContextAssembler().render([event])
        assert rendered == 'agent: [call lookup({"id": 7})] [response lookup: {"found": true}]'

    def test_custom_separator(self) -> None:
        rendered = ContextAssembler(role_separator=" > ").render([_say("i", 1.0, "hi")])
        assert rendered == "user > hi"
