"""Rewind engine.

Rewinding never deletes history.  It appends one marker event whose
``state_delta`` and ``artifact_delta`` make the derived session state and
the session's artifacts look as they did immediately before a target
invocation.  ``filter_rewound_events`` then hides the reverted range from
context assembly.

Only session-scoped state and session-scoped artifacts are reverted;
``app:``/``user:`` state and ``user:`` artifacts are shared beyond the
session and are left alone.

Classes
-------
- RewindEngine             — plans and appends rewind markers
- InvocationNotFoundError  — the target invocation is unknown or already hidden
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from agent_session_core.artifacts.base import (
    Artifact,
    BaseArtifactStore,
    inaccessible_artifact,
    is_user_scoped,
)
from agent_session_core.session.event import Event, EventActions, new_invocation_id
from agent_session_core.session.event_log import EventLog, filter_rewound_events
from agent_session_core.session.manager import NotFoundError, SessionService
from agent_session_core.session.model import Session
from agent_session_core.session.state import session_scoped

logger = logging.getLogger(__name__)

REWIND_AUTHOR = "user"


class InvocationNotFoundError(NotFoundError):
    """Raised when a rewind target is not a visible invocation of the session."""

    def __init__(self, invocation_id: str, session_id: str, reason: str = "not found") -> None:
        self.invocation_id = invocation_id
        self.session_id = session_id
        super().__init__(f"Invocation {invocation_id!r} {reason} in session {session_id!r}.")


def _would_reveal_hidden_events(session: Session, invocation_id: str) -> bool:
    visible = {event.id for event in filter_rewound_events(session.events)}
    probe = Event(
        author=REWIND_AUTHOR,
        actions=EventActions(rewind_before_invocation_id=invocation_id),
    )
    after = filter_rewound_events([*session.events, probe])
    return any(event.id not in visible for event in after)


def compute_state_revert_delta(
    current: Mapping[str, Any], target: Mapping[str, Any]
) -> dict[str, Any]:
    """Return the delta that turns ``current`` into ``target``.

    Only session-scoped keys are considered.  Keys missing from ``target``
    map to ``None``; changed keys map to their ``target`` value.
    """
    current_session = session_scoped(current)
    target_session = session_scoped(target)
    delta: dict[str, Any] = {}
    for key, value in target_session.items():
        if key not in current_session or current_session[key] != value:
            delta[key] = value
    for key in current_session:
        if key not in target_session:
            delta[key] = None
    return delta


class RewindEngine:
    """Reverts a session to the point before a given invocation.

    Parameters
    ----------
    session_service:
        Source of the session and sole writer of the marker event.
    artifact_store:
        Store holding the session's artifacts.  Required only when the
        reverted range touched session-scoped artifacts.
    """

    def __init__(
        self,
        session_service: SessionService,
        artifact_store: BaseArtifactStore | None = None,
    ) -> None:
        self._session_service = session_service
        self._artifact_store = artifact_store

    async def rewind_before(
        self,
        app_name: str,
        user_id: str,
        session_id: str,
        invocation_id: str,
    ) -> Event:
        """Append a marker reverting everything from ``invocation_id`` onward.

        Every lookup and artifact read happens before anything is written,
        so a failing lookup or read leaves the session and the artifact
        store untouched.  Restored artifact versions are then saved one at
        a time before the marker is appended: if a later save fails, the
        versions saved before it stay in the store but no marker is
        appended, so the session events and derived state are unchanged.

        Returns
        -------
        Event
            The appended rewind marker.

        Raises
        ------
        ValueError
            If ``invocation_id`` is empty, or artifacts must be reverted but
            no artifact store was configured.
        SessionNotFoundError
            If the session does not exist.
        InvocationNotFoundError
            If no event carries ``invocation_id``, or rewinding to it would
            make events hidden by an earlier rewind visible again.
        """
        if not invocation_id:
            raise ValueError("rewind_before requires a target invocation id.")

        session = self._session_service.get_session(app_name, user_id, session_id)
        log = EventLog(session)
        index = log.index_of_invocation(invocation_id)
        if index is None:
            raise InvocationNotFoundError(invocation_id, session_id)
        if _would_reveal_hidden_events(session, invocation_id):
            raise InvocationNotFoundError(invocation_id, session_id, reason="was already rewound")

        state_delta = compute_state_revert_delta(session.state, log.state_at(index))
        restorations = await self._plan_artifact_restorations(session, log, index)

        artifact_delta: dict[str, int] = {}
        for filename, artifact in restorations.items():
            artifact_delta[filename] = await self._save(session, filename, artifact)

        marker = Event(
            invocation_id=new_invocation_id(),
            author=REWIND_AUTHOR,
            actions=EventActions(
                rewind_before_invocation_id=invocation_id,
                state_delta=state_delta,
                artifact_delta=artifact_delta,
            ),
        )
        stored = self._session_service.append_event(session, marker)
        logger.info(
            "RewindEngine: rewound session %r before invocation %r (%d state keys, %d artifacts)",
            session_id,
            invocation_id,
            len(state_delta),
            len(artifact_delta),
        )
        return stored

    async def _plan_artifact_restorations(
        self, session: Session, log: EventLog, index: int
    ) -> dict[str, Artifact]:
        versions_at_target = log.artifact_versions(upto=index)
        touched: list[str] = []
        for event in session.events[index:]:
            for filename in event.actions.artifact_delta:
                if not is_user_scoped(filename) and filename not in touched:
                    touched.append(filename)
        if not touched:
            return {}
        if self._artifact_store is None:
            raise ValueError(
                f"Rewinding session {session.id!r} must restore artifacts "
                f"{sorted(touched)!r} but no artifact store is configured."
            )

        restorations: dict[str, Artifact] = {}
        for filename in touched:
            version = versions_at_target.get(filename)
            if version is None:
                restorations[filename] = inaccessible_artifact()
                continue
            artifact = await self._artifact_store.load_artifact(
                app_name=session.app_name,
                user_id=session.user_id,
                session_id=session.id,
                filename=filename,
                version=version,
            )
            restorations[filename] = artifact if artifact is not None else inaccessible_artifact()
        return restorations

    async def _save(self, session: Session, filename: str, artifact: Artifact) -> int:
        assert self._artifact_store is not None
        return await self._artifact_store.save_artifact(
            app_name=session.app_name,
            user_id=session.user_id,
            session_id=session.id,
            filename=filename,
            artifact=artifact,
        )
