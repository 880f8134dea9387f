"""Compaction engine.

Summarizes runs of events into compaction events so that context
assembly can send a summary instead of the raw history.  Compaction never
removes events; it appends one event whose ``actions.compaction`` names
the covered timestamp range.

Selection works on the rewind-filtered view of the log, so a rewound
range is never summarized.

Classes
-------
- CompactionEngine  — sliding-window and explicit compaction
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from agent_session_core.compaction.config import CompactionConfig
from agent_session_core.compaction.summarizer import BaseEventsSummarizer
from agent_session_core.session.event import Event
from agent_session_core.session.event_log import EventLog
from agent_session_core.session.manager import SessionService
from agent_session_core.session.model import Session

logger = logging.getLogger(__name__)


def last_compacted_end(events: Sequence[Event]) -> float:
    """Return the end timestamp of the newest compaction in ``events`` (0.0 if none)."""
    for event in reversed(events):
        if event.actions.compaction is not None:
            return event.actions.compaction.end_timestamp
    return 0.0


def _invocation_latest_timestamps(events: Sequence[Event]) -> dict[str, float]:
    # Insertion order is first-appearance order of each invocation.
    latest: dict[str, float] = {}
    for event in events:
        if event.is_compaction or event.content is None or not event.invocation_id:
            continue
        latest[event.invocation_id] = max(latest.get(event.invocation_id, 0.0), event.timestamp)
    return latest


class CompactionEngine:
    """Runs compaction against sessions owned by a ``SessionService``.

    Parameters
    ----------
    session_service:
        Writer of the compaction events.
    summarizer:
        Produces the compaction event for a run of events.
    config:
        Sliding-window trigger settings.
    """

    def __init__(
        self,
        session_service: SessionService,
        summarizer: BaseEventsSummarizer,
        config: CompactionConfig | None = None,
    ) -> None:
        self._session_service = session_service
        self._summarizer = summarizer
        self._config = config or CompactionConfig()

    @property
    def config(self) -> CompactionConfig:
        return self._config

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_sliding_window(self, session: Session) -> list[Event]:
        """Return the events the next sliding-window compaction would cover.

        Empty when fewer than ``compaction_interval`` invocations finished
        after the newest compaction.  Only invocations with content are
        counted; compaction events are never selected.
        """
        events = list(EventLog(session).effective_events())
        if not events:
            return []

        boundary = last_compacted_end(events)
        latest = _invocation_latest_timestamps(events)
        invocation_ids = list(latest)
        new_ids = [inv for inv in invocation_ids if latest[inv] > boundary]
        if len(new_ids) < self._config.compaction_interval:
            return []

        start_position = max(0, invocation_ids.index(new_ids[0]) - self._config.overlap_size)
        start_id = invocation_ids[start_position]
        end_id = new_ids[-1]

        first = next(i for i, event in enumerate(events) if event.invocation_id == start_id)
        last = max(i for i, event in enumerate(events) if event.invocation_id == end_id)
        return [event for event in events[first : last + 1] if not event.is_compaction]

    def select_uncompacted(self, session: Session) -> list[Event]:
        """Return the visible events newer than the newest compaction."""
        events = list(EventLog(session).effective_events())
        boundary = last_compacted_end(events)
        return [
            event
            for event in events
            if not event.is_compaction and event.timestamp > boundary
        ]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def run_sliding_window(self, session: Session) -> Event | None:
        """Compact ``session`` if the sliding-window trigger has fired.

        Returns
        -------
        Event | None
            The appended compaction event, or None when nothing was
            compacted (trigger not reached, or summarization skipped).
        """
        window = self.select_sliding_window(session)
        if not window:
            logger.debug("CompactionEngine: sliding window not reached for session %r", session.id)
            return None
        return await self._summarize_and_append(session, window)

    async def compact(self, session: Session) -> Event | None:
        """Compact every visible event newer than the newest compaction."""
        events = self.select_uncompacted(session)
        if not events:
            return None
        return await self._summarize_and_append(session, events)

    async def _summarize_and_append(self, session: Session, events: list[Event]) -> Event | None:
        try:
            compaction_event = await self._summarizer.maybe_summarize_events(events)
        except Exception as exc:
            logger.warning(
                "CompactionEngine: summarizer %s failed for session %r; keeping raw events: %s",
                type(self._summarizer).__name__,
                session.id,
                exc,
            )
            return None

        if compaction_event is None:
            logger.info(
                "CompactionEngine: summarizer returned no summary for session %r", session.id
            )
            return None
        if compaction_event.actions.compaction is None:
            logger.warning(
                "CompactionEngine: summarizer returned event %r without a compaction; ignored",
                compaction_event.id,
            )
            return None

        stored = self._session_service.append_event(session, compaction_event)
        compaction = compaction_event.actions.compaction
        logger.info(
            "CompactionEngine: compacted %d events of session %r (%.3f..%.3f)",
            len(events),
            session.id,
            compaction.start_timestamp,
            compaction.end_timestamp,
        )
        return stored
