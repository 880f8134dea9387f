"""Key/value session state with prefix-based scoping.

Keys are partitioned into four scopes by prefix:

- ``app:``   shared across every session of an application
- ``user:``  shared across every session of one user
- ``temp:``  invocation-local, never persisted
- no prefix  session-scoped

Classes
-------
- StateScope   — enum of the four scopes
- StateDeltas  — a delta split by persisted scope
- State        — current value plus pending-commit delta
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

APP_PREFIX = "app:"
USER_PREFIX = "user:"
TEMP_PREFIX = "temp:"


class StateScope(str, Enum):
    """Persistence breadth of a state key, derived from its prefix."""

    APP = "app"
    USER = "user"
    TEMP = "temp"
    SESSION = "session"


def scope_of(key: str) -> StateScope:
    """Return the scope a key belongs to.

    Prefixes are checked from most to least specific: ``app:``, ``user:``,
    ``temp:``; anything else is session-scoped.
    """
    if key.startswith(APP_PREFIX):
        return StateScope.APP
    if key.startswith(USER_PREFIX):
        return StateScope.USER
    if key.startswith(TEMP_PREFIX):
        return StateScope.TEMP
    return StateScope.SESSION


def strip_temp_keys(delta: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``delta`` without ``temp:`` keys."""
    return {key: value for key, value in delta.items() if scope_of(key) is not StateScope.TEMP}


def session_scoped(state: Mapping[str, Any]) -> dict[str, Any]:
    """Return only the session-scoped (unprefixed) entries of ``state``."""
    return {key: value for key, value in state.items() if scope_of(key) is StateScope.SESSION}


def apply_delta(target: dict[str, Any], delta: Mapping[str, Any]) -> None:
    """Fold ``delta`` into ``target`` in place; a ``None`` value deletes the key."""
    for key, value in delta.items():
        if value is None:
            target.pop(key, None)
        else:
            target[key] = value


@dataclass
class StateDeltas:
    """A state delta split into its persisted scopes.

    App and user keys are stored with their prefix removed.  ``temp:`` keys
    are dropped.
    """

    app: dict[str, Any] = field(default_factory=dict)
    user: dict[str, Any] = field(default_factory=dict)
    session: dict[str, Any] = field(default_factory=dict)


def extract_state_delta(delta: Mapping[str, Any] | None) -> StateDeltas:
    """Split ``delta`` into app, user and session deltas."""
    deltas = StateDeltas()
    if not delta:
        return deltas
    for key, value in delta.items():
        scope = scope_of(key)
        if scope is StateScope.APP:
            deltas.app[key[len(APP_PREFIX):]] = value
        elif scope is StateScope.USER:
            deltas.user[key[len(USER_PREFIX):]] = value
        elif scope is StateScope.SESSION:
            deltas.session[key] = value
    return deltas


def merge_state(
    app_state: Mapping[str, Any],
    user_state: Mapping[str, Any],
    session_state: Mapping[str, Any],
) -> dict[str, Any]:
    """Combine scoped stores into one prefixed state mapping."""
    merged: dict[str, Any] = dict(session_state)
    for key, value in app_state.items():
        merged[APP_PREFIX + key] = value
    for key, value in user_state.items():
        merged[USER_PREFIX + key] = value
    return merged


class State:
    """A state mapping that tracks its own uncommitted delta.

    Reads see the delta first, then the base value.  Writes go to both, so
    the delta is exactly the set of mutations made through this object.  A
    deletion is recorded as ``None`` in the delta, matching the delete
    convention of event ``state_delta`` maps.

    Parameters
    ----------
    value:
        The base state.  A shallow copy is taken.
    delta:
        An initial pending delta.
    """

    def __init__(
        self,
        value: Mapping[str, Any] | None = None,
        delta: Mapping[str, Any] | None = None,
    ) -> None:
        self._value: dict[str, Any] = dict(value or {})
        self._delta: dict[str, Any] = dict(delta or {})

    def __getitem__(self, key: str) -> Any:
        if key in self._delta:
            value = self._delta[key]
            if value is None:
                raise KeyError(key)
            return value
        return self._value[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._value[key] = value
        self._delta[key] = value

    def __delitem__(self, key: str) -> None:
        if key not in self:
            raise KeyError(key)
        self._value.pop(key, None)
        self._delta[key] = None

    def __contains__(self, key: object) -> bool:
        if key in self._delta:
            return self._delta[key] is not None
        return key in self._value

    def __iter__(self) -> Iterator[str]:
        return iter(self.to_dict())

    def __len__(self) -> int:
        return len(self.to_dict())

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for ``key`` or ``default`` when absent."""
        try:
            return self[key]
        except KeyError:
            return default

    def setdefault(self, key: str, default: Any = None) -> Any:
        """Return the value for ``key``, setting it to ``default`` first if absent."""
        if key in self:
            return self[key]
        self[key] = default
        return default

    def update(self, delta: Mapping[str, Any]) -> None:
        """Apply every entry of ``delta`` as a write (``None`` deletes)."""
        for key, value in delta.items():
            if value is None:
                self._value.pop(key, None)
                self._delta[key] = None
            else:
                self[key] = value

    def has_delta(self) -> bool:
        """Return True if any mutation is pending."""
        return bool(self._delta)

    @property
    def delta(self) -> dict[str, Any]:
        """A copy of the pending delta."""
        return dict(self._delta)

    def to_dict(self) -> dict[str, Any]:
        """Return the merged current state without deleted keys."""
        merged = dict(self._value)
        apply_delta(merged, self._delta)
        return merged

    def __repr__(self) -> str:
        return f"State(keys={len(self)}, pending={len(self._delta)})"
