"""Context assembly.

Builds the list of events sent to the model for one invocation:

1. rewind filter — events reverted by a rewind marker are hidden;
2. branch filter — only events on the current branch or its ancestors;
3. compaction substitution — raw events covered by a compaction are
   replaced, at the position of the first covered event, by the
   compaction's summary.

The rewind filter runs first, so a summary can never bring back content
a rewind has hidden.

Classes
-------
- ContextAssembler  — produce, budget and render the model context
"""
from __future__ import annotations

import json
from collections.abc import Iterator, Sequence

from agent_session_core.session.event import Event
from agent_session_core.session.event_log import EventLog
from agent_session_core.session.model import Session


def _estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per ~4 characters."""
    return max(1, len(text) // 4)


def is_visible_on_branch(event: Event, branch: str | None) -> bool:
    """Return True if ``event`` belongs to ``branch`` or one of its ancestors."""
    if branch is None or not event.branch:
        return True
    return branch == event.branch or branch.startswith(f"{event.branch}.")


def _drop_contained_compactions(events: Sequence[Event]) -> list[Event]:
    compactions = [event for event in events if event.is_compaction]
    kept: list[Event] = []
    for position, event in enumerate(compactions):
        current = event.actions.compaction
        assert current is not None
        contained = any(
            later.actions.compaction.start_timestamp <= current.start_timestamp
            and current.end_timestamp <= later.actions.compaction.end_timestamp
            for later in compactions[position + 1 :]
            if later.actions.compaction is not None
        )
        if not contained:
            kept.append(event)
    return kept


class ContextAssembler:
    """Turn a session's log into the event sequence seen by the model.

    Parameters
    ----------
    max_tokens:
        Optional budget.  When the assembled context is larger, the oldest
        events are dropped until it fits; the newest event is always kept.
    role_separator:
        Placed between the author and the text in ``render``.
    """

    def __init__(self, max_tokens: int | None = None, role_separator: str = ": ") -> None:
        if max_tokens is not None and max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {max_tokens!r}.")
        self.max_tokens = max_tokens
        self.role_separator = role_separator

    def iter_context(
        self,
        session: Session,
        *,
        branch: str | None = None,
        as_of: float | None = None,
    ) -> Iterator[Event]:
        """Yield the context events of ``session`` in log order.

        Each call starts a fresh pass over the log.  Events without content
        are omitted.
        """
        visible = [
            event
            for event in EventLog(session).effective_events(as_of=as_of)
            if is_visible_on_branch(event, branch)
        ]
        compactions = _drop_contained_compactions(visible)
        positions = {event.id: index for index, event in enumerate(visible)}
        emitted: set[str] = set()

        for index, event in enumerate(visible):
            if event.is_compaction:
                continue
            covering = [
                compaction
                for compaction in compactions
                if positions[compaction.id] > index
                and compaction.actions.compaction is not None
                and compaction.actions.compaction.covers(event.timestamp)
            ]
            if covering:
                latest = covering[-1]
                if latest.id not in emitted:
                    emitted.add(latest.id)
                    yield self._summary_event(latest)
                continue
            if event.content is not None:
                yield event

    def assemble(
        self,
        session: Session,
        *,
        branch: str | None = None,
        as_of: float | None = None,
    ) -> list[Event]:
        """Return the context as a list, trimmed to ``max_tokens`` if set."""
        events = list(self.iter_context(session, branch=branch, as_of=as_of))
        if self.max_tokens is None:
            return events
        costs = [_estimate_tokens(self.render([event])) for event in events]
        total = sum(costs)
        start = 0
        while total > self.max_tokens and start < len(events) - 1:
            total -= costs[start]
            start += 1
        return events[start:]

    def render(self, events: Sequence[Event]) -> str:
        """Render events as ``author: text`` blocks separated by blank lines.

        Function calls and responses are rendered inline as
        ``[call name(args)]`` and ``[response name: result]``.
        """
        blocks: list[str] = []
        for event in events:
            if event.content is None:
                continue
            pieces: list[str] = []
            for part in event.content.parts:
                if part.text:
                    pieces.append(part.text)
                elif part.function_call is not None:
                    args = json.dumps(part.function_call.args, sort_keys=True, default=str)
                    pieces.append(f"[call {part.function_call.name}({args})]")
                elif part.function_response is not None:
                    response = json.dumps(
                        part.function_response.response, sort_keys=True, default=str
                    )
                    pieces.append(f"[response {part.function_response.name}: {response}]")
            if pieces:
                blocks.append(f"{event.author}{self.role_separator}{' '.join(pieces)}")
        return "\n\n".join(blocks)

    @staticmethod
    def _summary_event(compaction_event: Event) -> Event:
        compaction = compaction_event.actions.compaction
        assert compaction is not None
        return compaction_event.model_copy(
            update={
                "content": compaction.compacted_content,
                "timestamp": compaction.end_timestamp,
            }
        )
