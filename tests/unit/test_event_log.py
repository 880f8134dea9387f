"""Unit tests for agent_session_core.session.event_log.

Tests cover the state fold, temp-key stripping, partial events, the
rewind visibility filter and the point-in-time projections.
"""
from __future__ import annotations

from agent_session_core.session.event import Event, EventActions
from agent_session_core.session.event_log import EventLog, filter_rewound_events
from agent_session_core.session.model import Session


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _event(invocation_id: str, timestamp: float, **delta: object) -> Event:
    return Event(
        invocation_id=invocation_id,
        author="agent",
        timestamp=timestamp,
        actions=EventActions(state_delta=dict(delta)),
    )


def _rewind(target: str, timestamp: float) -> Event:
    return Event(
        invocation_id=f"rewind-{timestamp}",
        author="user",
        timestamp=timestamp,
        actions=EventActions(rewind_before_invocation_id=target),
    )


def _log() -> EventLog:
    return EventLog(Session(app_name="app", user_id="u1"))


# ---------------------------------------------------------------------------
# append
# ---------------------------------------------------------------------------


class TestEventLogAppend:
    def test_state_is_fold_of_deltas(self) -> None:
        log = _log()
        log.append(_event("i1", 1.0, color="red"))
        log.append(_event("i2", 2.0, color="blue", shape="circle"))
        log.append(_event("i3", 3.0, shape=None))
        assert log.session.state == {"color": "blue"}

    def test_state_matches_state_at(self) -> None:
        log = _log()
        log.append(_event("i1", 1.0, a=1))
        log.append(_event("i2", 2.0, b=2, a=None))
        assert log.state_at() == log.session.state

    def test_temp_keys_stripped_from_stored_event(self) -> None:
        log = _log()
        stored = log.append(_event("i1", 1.0, **{"temp:scratch": 1, "keep": 2}))
        assert stored.actions.state_delta == {"keep": 2}
        assert "temp:scratch" not in log.session.state

    def test_original_event_unchanged_when_stripped(self) -> None:
        log = _log()
        event = _event("i1", 1.0, **{"temp:scratch": 1})
        log.append(event)
        assert event.actions.state_delta == {"temp:scratch": 1}

    def test_event_without_temp_keys_stored_as_is(self) -> None:
        log = _log()
        event = _event("i1", 1.0, a=1)
        assert log.append(event) is event

    def test_partial_event_not_stored(self) -> None:
        log = _log()
        partial = Event(author="agent", partial=True, actions=EventActions(state_delta={"a": 1}))
        returned = log.append(partial)
        assert returned is partial
        assert len(log) == 0
        assert log.session.state == {}

    def test_last_update_time_tracks_newest(self) -> None:
        log = _log()
        log.append(_event("i1", 5.0))
        log.append(_event("i2", 3.0))
        assert log.session.last_update_time == 5.0

    def test_repr(self) -> None:
        log = _log()
        log.append(_event("i1", 1.0))
        assert "events=1" in repr(log)


# ---------------------------------------------------------------------------
# Visibility filter
# ---------------------------------------------------------------------------


class TestFilterRewoundEvents:
    def test_no_markers_keeps_everything(self) -> None:
        events = [_event("i1", 1.0), _event("i2", 2.0)]
        assert filter_rewound_events(events) == events

    def test_marker_hides_target_onwards(self) -> None:
        events = [
            _event("i1", 1.0),
            _event("i2", 2.0),
            _event("i2", 2.5),
            _event("i3", 3.0),
            _rewind("i2", 4.0),
        ]
        visible = filter_rewound_events(events)
        assert [e.invocation_id for e in visible] == ["i1"]

    def test_events_after_marker_visible(self) -> None:
        events = [_event("i1", 1.0), _event("i2", 2.0), _rewind("i2", 3.0), _event("i4", 4.0)]
        visible = filter_rewound_events(events)
        assert [e.invocation_id for e in visible] == ["i1", "i4"]

    def test_later_rewind_cannot_reveal(self) -> None:
        events = [
            _event("i1", 1.0),
            _event("i2", 2.0),
            _event("i3", 3.0),
            _rewind("i2", 4.0),
            _event("i5", 5.0),
            _rewind("i5", 6.0),
        ]
        visible = filter_rewound_events(events)
        assert [e.invocation_id for e in visible] == ["i1"]

    def test_nested_rewind_hides_more(self) -> None:
        events = [
            _event("i1", 1.0),
            _event("i2", 2.0),
            _event("i3", 3.0),
            _rewind("i3", 4.0),
            _rewind("i1", 5.0),
        ]
        assert filter_rewound_events(events) == []

    def test_marker_with_unknown_target_only_hides_itself(self) -> None:
        events = [_event("i1", 1.0), _rewind("missing", 2.0)]
        assert [e.invocation_id for e in filter_rewound_events(events)] == ["i1"]


class TestEffectiveEvents:
    def test_fresh_generator_each_call(self) -> None:
        log = _log()
        log.append(_event("i1", 1.0))
        first = list(log.effective_events())
        log.append(_event("i2", 2.0))
        second = list(log.effective_events())
        assert len(first) == 1
        assert len(second) == 2

    def test_as_of_ignores_later_marker(self) -> None:
        log = _log()
        log.append(_event("i1", 1.0))
        log.append(_event("i2", 2.0))
        log.append(_rewind("i2", 3.0))
        assert [e.invocation_id for e in log.effective_events(as_of=2.0)] == ["i1", "i2"]
        assert [e.invocation_id for e in log.effective_events()] == ["i1"]

    def test_raw_events_keep_everything(self) -> None:
        log = _log()
        log.append(_event("i1", 1.0))
        log.append(_rewind("i1", 2.0))
        assert len(list(log.raw_events())) == 2
        assert list(log.effective_events()) == []


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------


class TestProjections:
    def test_index_of_invocation(self) -> None:
        log = _log()
        log.append(_event("i1", 1.0))
        log.append(_event("i2", 2.0))
        log.append(_event("i2", 3.0))
        assert log.index_of_invocation("i2") == 1
        assert log.index_of_invocation("zzz") is None

    def test_events_for_invocation(self) -> None:
        log = _log()
        log.append(_event("i1", 1.0))
        log.append(_event("i2", 2.0))
        log.append(_event("i2", 3.0))
        assert len(log.events_for_invocation("i2")) == 2

    def test_state_at_prefix(self) -> None:
        log = _log()
        log.append(_event("i1", 1.0, color="red"))
        log.append(_event("i2", 2.0, color="blue"))
        assert log.state_at(1) == {"color": "red"}
        assert log.state_at(0) == {}

    def test_artifact_versions(self) -> None:
        log = _log()
        log.append(Event(author="agent", actions=EventActions(artifact_delta={"a.txt": 0})))
        log.append(Event(author="agent", actions=EventActions(artifact_delta={"a.txt": 1, "b.txt": 0})))
        assert log.artifact_versions(1) == {"a.txt": 0}
        assert log.artifact_versions() == {"a.txt": 1, "b.txt": 0}

    def test_iter_yields_raw(self) -> None:
        log = _log()
        log.append(_event("i1", 1.0))
        assert [e.invocation_id for e in log] == ["i1"]
