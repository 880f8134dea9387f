"""Append-only event log with a derived state projection.

``EventLog`` wraps a ``Session`` and is the only code path that mutates
its ``events`` and ``state``.  The state is a projection: the fold of
every event's ``state_delta`` in append order, ``None`` deleting a key.

Rewind markers do not delete history.  ``effective_events`` walks the log
and hides everything a rewind marker reverted, while ``raw_events``
returns the full audit trail.

Classes
-------
- EventLog  — append/fold/filter facade over a Session
"""
from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import Any

from agent_session_core.session.event import Event
from agent_session_core.session.model import Session
from agent_session_core.session.state import apply_delta, strip_temp_keys

logger = logging.getLogger(__name__)


def filter_rewound_events(events: Sequence[Event]) -> list[Event]:
    """Return the events still visible after applying every rewind marker.

    The log is walked from newest to oldest.  When a rewind marker is met,
    the walk jumps to just before the first event of the marker's target
    invocation, so everything between that event and the marker (inclusive)
    is hidden.  Because the jump happens on the already-filtered walk, a
    later rewind can only hide more, never re-reveal.
    """
    visible: list[Event] = []
    index = len(events) - 1
    while index >= 0:
        event = events[index]
        target = event.actions.rewind_before_invocation_id
        if target:
            for candidate in range(index):
                if events[candidate].invocation_id == target:
                    index = candidate
                    break
        else:
            visible.append(event)
        index -= 1
    visible.reverse()
    return visible


class EventLog:
    """Ordered, append-only view of a session's events.

    Parameters
    ----------
    session:
        The session whose ``events`` and ``state`` this log owns.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append(self, event: Event) -> Event:
        """Append ``event``, folding its state delta into the session state.

        Partial (streaming) events are returned unchanged and never stored.
        ``temp:`` keys are removed from the stored event's ``state_delta``.

        Returns
        -------
        Event
            The event as stored.
        """
        if event.partial:
            return event

        stored = event
        if event.actions.state_delta:
            trimmed = strip_temp_keys(event.actions.state_delta)
            if len(trimmed) != len(event.actions.state_delta):
                actions = event.actions.model_copy(update={"state_delta": trimmed})
                stored = event.model_copy(update={"actions": actions})

        apply_delta(self._session.state, stored.actions.state_delta)
        self._session.events.append(stored)
        self._session.last_update_time = max(self._session.last_update_time, stored.timestamp)

        logger.debug(
            "EventLog: appended event %r (invocation=%r) to session %r",
            stored.id,
            stored.invocation_id,
            self._session.id,
        )
        return stored

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def raw_events(self) -> Iterator[Event]:
        """Yield every stored event in append order, rewound ones included."""
        yield from list(self._session.events)

    def effective_events(self, as_of: float | None = None) -> Iterator[Event]:
        """Yield the events visible for context assembly.

        Each call returns a fresh generator over the log as it is at that
        moment.  Rewind markers and the events they revert are omitted.

        Parameters
        ----------
        as_of:
            When given, only events with ``timestamp <= as_of`` are
            considered, so a rewind marker appended later has no effect.
        """
        events = self._session.events
        if as_of is not None:
            events = [event for event in events if event.timestamp <= as_of]
        yield from filter_rewound_events(events)

    def events_for_invocation(self, invocation_id: str) -> list[Event]:
        """Return the stored events belonging to ``invocation_id``."""
        return [event for event in self._session.events if event.invocation_id == invocation_id]

    def index_of_invocation(self, invocation_id: str) -> int | None:
        """Return the index of the first event of ``invocation_id``, if any."""
        for index, event in enumerate(self._session.events):
            if event.invocation_id == invocation_id:
                return index
        return None

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def state_at(self, index: int | None = None) -> dict[str, Any]:
        """Return the folded state of ``events[:index]`` (all events if None)."""
        events = self._session.events if index is None else self._session.events[:index]
        state: dict[str, Any] = {}
        for event in events:
            apply_delta(state, event.actions.state_delta)
        return state

    def artifact_versions(self, upto: int | None = None) -> dict[str, int]:
        """Return the latest recorded version per filename in ``events[:upto]``."""
        events = self._session.events if upto is None else self._session.events[:upto]
        versions: dict[str, int] = {}
        for event in events:
            versions.update(event.actions.artifact_delta)
        return versions

    def __len__(self) -> int:
        return len(self._session.events)

    def __iter__(self) -> Iterator[Event]:
        return self.raw_events()

    def __repr__(self) -> str:
        return f"EventLog(session={self._session.id!r}, events={len(self._session.events)})"
