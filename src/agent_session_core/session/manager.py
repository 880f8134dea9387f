"""Session lifecycle management.

Provides ``SessionService``, the sole writer of persisted session data.
Sessions, shared ``app:`` state and shared ``user:`` state are each
stored as separate records in a pluggable ``StorageBackend``; every
``get_session`` returns a fresh copy with the shared scopes merged in.

Classes
-------
- GetSessionConfig    — event filters applied by ``get_session``
- SessionService      — create / get / append / list / delete sessions
- NotFoundError       — base for failed lookups
- SessionNotFoundError
- StaleSessionError
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from agent_session_core.session.event import Event, EventActions, new_invocation_id
from agent_session_core.session.event_log import EventLog
from agent_session_core.session.model import Session
from agent_session_core.session.serializer import SessionSerializer
from agent_session_core.session.state import (
    apply_delta,
    extract_state_delta,
    merge_state,
    session_scoped,
)
from agent_session_core.storage.base import StorageBackend

logger = logging.getLogger(__name__)

_SESSION_KEY_PREFIX = "session"
_APP_STATE_KEY_PREFIX = "app_state"
_USER_STATE_KEY_PREFIX = "user_state"

SEED_EVENT_AUTHOR = "system"


class NotFoundError(KeyError):
    """Base class for lookups of sessions, invocations or plugins that fail."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class SessionNotFoundError(NotFoundError):
    """Raised when a requested session does not exist in the backend."""

    def __init__(self, app_name: str, user_id: str, session_id: str) -> None:
        self.app_name = app_name
        self.user_id = user_id
        self.session_id = session_id
        super().__init__(
            f"Session {session_id!r} not found for app {app_name!r}, user {user_id!r}."
        )


class StaleSessionError(ValueError):
    """Raised when appending through a session object older than the stored copy."""

    def __init__(self, session_id: str, held: float, stored: float) -> None:
        self.session_id = session_id
        super().__init__(
            f"Session {session_id!r} is stale: last_update_time={held} "
            f"but the stored session was updated at {stored}. Reload it first."
        )


@dataclass(frozen=True)
class GetSessionConfig:
    """Filters applied to the events of a session returned by ``get_session``.

    Parameters
    ----------
    num_recent_events:
        Keep only this many of the most recent events.
    after_timestamp:
        Keep only events with ``timestamp >= after_timestamp``.
    """

    num_recent_events: int | None = None
    after_timestamp: float | None = None


class SessionService:
    """Create, load, append to, list, and delete sessions.

    All persistence operations are delegated to the supplied
    ``StorageBackend``.  Serialization is handled by ``SessionSerializer``.
    Stored sessions hold only their session-scoped state; ``app:`` and
    ``user:`` keys live in shared records so that every session of the same
    app (or app and user) observes the same values.

    Parameters
    ----------
    backend:
        The storage backend to use for persistence.
    serializer:
        Optional custom serializer.  Defaults to a ``SessionSerializer``
        with checksum validation enabled.
    """

    def __init__(
        self,
        backend: StorageBackend,
        serializer: SessionSerializer | None = None,
    ) -> None:
        self._backend = backend
        self._serializer = serializer or SessionSerializer()

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def _session_prefix(app_name: str, user_id: str | None = None) -> str:
        if user_id is None:
            return f"{_SESSION_KEY_PREFIX}:{app_name}:"
        return f"{_SESSION_KEY_PREFIX}:{app_name}:{user_id}:"

    def _session_key(self, app_name: str, user_id: str, session_id: str) -> str:
        return f"{self._session_prefix(app_name, user_id)}{session_id}"

    @staticmethod
    def _app_state_key(app_name: str) -> str:
        return f"{_APP_STATE_KEY_PREFIX}:{app_name}"

    @staticmethod
    def _user_state_key(app_name: str, user_id: str) -> str:
        return f"{_USER_STATE_KEY_PREFIX}:{app_name}:{user_id}"

    # ------------------------------------------------------------------
    # Shared state records
    # ------------------------------------------------------------------

    def _load_scope(self, key: str) -> dict[str, Any]:
        if not self._backend.exists(key):
            return {}
        return json.loads(self._backend.load(key))

    def _save_scope(self, key: str, delta: dict[str, Any]) -> None:
        if not delta:
            return
        current = self._load_scope(key)
        apply_delta(current, delta)
        self._backend.save(key, json.dumps(current, sort_keys=True))

    def get_app_state(self, app_name: str) -> dict[str, Any]:
        """Return the shared ``app:`` state of ``app_name`` (prefixes removed)."""
        return self._load_scope(self._app_state_key(app_name))

    def get_user_state(self, app_name: str, user_id: str) -> dict[str, Any]:
        """Return the shared ``user:`` state of one user (prefixes removed)."""
        return self._load_scope(self._user_state_key(app_name, user_id))

    # ------------------------------------------------------------------
    # Session records
    # ------------------------------------------------------------------

    def _load_stored(self, app_name: str, user_id: str, session_id: str) -> Session:
        key = self._session_key(app_name, user_id, session_id)
        if not self._backend.exists(key):
            raise SessionNotFoundError(app_name, user_id, session_id)
        return self._serializer.from_json(self._backend.load(key))

    def _store(self, session: Session) -> None:
        stored = session.model_copy(update={"state": session_scoped(session.state)})
        raw = self._serializer.to_json(stored)
        self._backend.save(self._session_key(session.app_name, session.user_id, session.id), raw)

    def _with_shared_state(self, session: Session) -> Session:
        session.state = merge_state(
            self.get_app_state(session.app_name),
            self.get_user_state(session.app_name, session.user_id),
            session_scoped(session.state),
        )
        return session

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    def create_session(
        self,
        app_name: str,
        user_id: str,
        *,
        state: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> Session:
        """Create, persist and return a new session.

        A non-empty ``state`` is recorded as a seed event authored by
        ``"system"`` so that the session state remains the fold of its
        events.  ``app:`` and ``user:`` keys in ``state`` update the shared
        scopes; ``temp:`` keys are discarded.

        Raises
        ------
        ValueError
            If ``session_id`` is already in use for this app and user.
        """
        session_id = (session_id or "").strip() or str(uuid4())
        if self.session_exists(app_name, user_id, session_id):
            raise ValueError(
                f"Session {session_id!r} already exists for app {app_name!r}, user {user_id!r}."
            )

        session = Session(id=session_id, app_name=app_name, user_id=user_id)
        self._store(session)
        logger.debug("SessionService: created session %r (%s/%s)", session_id, app_name, user_id)

        session = self._with_shared_state(session)
        if state:
            seed = Event(
                invocation_id=new_invocation_id(),
                author=SEED_EVENT_AUTHOR,
                actions=EventActions(state_delta=dict(state)),
            )
            self.append_event(session, seed)
        return session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_session(
        self,
        app_name: str,
        user_id: str,
        session_id: str,
        config: GetSessionConfig | None = None,
    ) -> Session:
        """Load a session with shared state merged in.

        The returned object is an independent copy: mutating it never
        changes stored data.  Use ``append_event`` for that.

        Raises
        ------
        SessionNotFoundError
            If the session does not exist.
        """
        session = self._load_stored(app_name, user_id, session_id)
        if config is not None:
            events = session.events
            if config.after_timestamp is not None:
                events = [event for event in events if event.timestamp >= config.after_timestamp]
            if config.num_recent_events is not None:
                count = max(config.num_recent_events, 0)
                events = events[len(events) - count:] if count else []
            session.events = list(events)
        return self._with_shared_state(session)

    def session_exists(self, app_name: str, user_id: str, session_id: str) -> bool:
        return self._backend.exists(self._session_key(app_name, user_id, session_id))

    def list_sessions(self, app_name: str, user_id: str | None = None) -> list[Session]:
        """Return the sessions of an app (optionally one user) without events.

        Results are sorted by session id.
        """
        sessions: list[Session] = []
        for key in self._backend.keys(self._session_prefix(app_name, user_id)):
            session = self._serializer.from_json(self._backend.load(key))
            session.events = []
            sessions.append(self._with_shared_state(session))
        return sorted(sessions, key=lambda s: s.id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append_event(self, session: Session, event: Event) -> Event:
        """Append ``event`` to ``session`` and persist it.

        The event is folded into both the caller's ``session`` object and the
        stored copy.  Partial events are returned unchanged and never stored.

        Returns
        -------
        Event
            The event as stored, with ``temp:`` keys removed from its delta.

        Raises
        ------
        SessionNotFoundError
            If the session no longer exists.
        StaleSessionError
            If the stored session has been updated since ``session`` was
            loaded.
        """
        if event.partial:
            return event

        stored_session = self._load_stored(session.app_name, session.user_id, session.id)
        if stored_session.last_update_time > session.last_update_time:
            raise StaleSessionError(
                session.id, session.last_update_time, stored_session.last_update_time
            )

        stored_event = EventLog(stored_session).append(event)
        EventLog(session).append(stored_event)

        deltas = extract_state_delta(stored_event.actions.state_delta)
        self._save_scope(self._app_state_key(session.app_name), deltas.app)
        self._save_scope(self._user_state_key(session.app_name, session.user_id), deltas.user)
        self._store(stored_session)

        logger.debug(
            "SessionService: appended event %r to session %r (%d events)",
            stored_event.id,
            session.id,
            len(stored_session.events),
        )
        return stored_event

    def delete_session(self, app_name: str, user_id: str, session_id: str) -> None:
        """Remove a session.  Shared app and user state is kept.

        Raises
        ------
        SessionNotFoundError
            If the session does not exist.
        """
        key = self._session_key(app_name, user_id, session_id)
        if not self._backend.exists(key):
            raise SessionNotFoundError(app_name, user_id, session_id)
        self._backend.delete(key)
        logger.debug("SessionService: deleted session %r", session_id)
