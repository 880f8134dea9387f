"""Session record codec.

A stored session is one document holding the session identity, its
derived state and the full event log, rewound events included.  Every
document carries ``schema_version`` and a SHA-256 ``checksum`` over the
identity, state and events, so that a reader can refuse documents it does
not understand or that were edited by hand.

Classes
-------
- SessionSerializer   — Session <-> JSON / YAML documents
- SchemaVersionError  — unsupported ``schema_version``
"""
from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, Literal

import yaml

from agent_session_core.session.model import Session

SerializationFormat = Literal["json", "yaml"]

_SUPPORTED_SCHEMA_VERSIONS: frozenset[str] = frozenset({"1.0"})


class SchemaVersionError(ValueError):
    """Raised when a document declares a schema version this reader cannot load."""

    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(
            f"Session document has schema_version {version!r}; "
            f"this reader understands {sorted(_SUPPORTED_SCHEMA_VERSIONS)}."
        )


def _dump_yaml(data: dict[str, Any]) -> str:
    return yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=True)


class SessionSerializer:
    """Encode and decode ``Session`` records.

    Parameters
    ----------
    validate_checksum:
        When True (default), decoding recomputes the checksum and raises
        ``ValueError`` if it differs from the stored one.
    indent:
        JSON indentation.  None writes a single line.
    """

    def __init__(self, validate_checksum: bool = True, *, indent: int | None = 2) -> None:
        self.validate_checksum = validate_checksum
        self.indent = indent

    def _encode(self, session: Session) -> dict[str, Any]:
        session.compute_checksum()
        return session.model_dump(mode="json")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def serialize(self, session: Session, format: SerializationFormat = "json") -> str:
        """Encode ``session`` in ``format``, refreshing its checksum first."""
        dump, _ = self._codec(format)
        return dump(self._encode(session))

    def deserialize(self, raw: str, format: SerializationFormat = "json") -> Session:
        """Decode a document written by ``serialize``.

        Raises
        ------
        SchemaVersionError
            If the document's ``schema_version`` is not supported.
        ValueError
            If the document is not a mapping, repeats an event id, or fails
            checksum validation.
        json.JSONDecodeError, yaml.YAMLError
            If ``raw`` is not valid in ``format``.
        """
        _, load = self._codec(format)
        data = load(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Session document must be a mapping, got {type(data).__name__}.")
        return self._decode(data)

    def to_json(self, session: Session) -> str:
        return self.serialize(session, "json")

    def from_json(self, raw: str) -> Session:
        return self.deserialize(raw, "json")

    def to_yaml(self, session: Session) -> str:
        return self.serialize(session, "yaml")

    def from_yaml(self, raw: str) -> Session:
        return self.deserialize(raw, "yaml")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _codec(
        self, format: str
    ) -> tuple[Callable[[dict[str, Any]], str], Callable[[str], Any]]:
        if format == "json":
            return self._dump_json, json.loads
        if format == "yaml":
            return _dump_yaml, yaml.safe_load
        raise ValueError(f"Unknown serialization format {format!r}; use \"json\" or \"yaml\".")

    def _dump_json(self, data: dict[str, Any]) -> str:
        return json.dumps(data, indent=self.indent)

    def _decode(self, data: dict[str, Any]) -> Session:
        version = str(data.get("schema_version", ""))
        if version not in _SUPPORTED_SCHEMA_VERSIONS:
            raise SchemaVersionError(version)

        session = Session.model_validate(data)

        seen: set[str] = set()
        for event in session.events:
            if event.id in seen:
                raise ValueError(f"Session {session.id!r} repeats event id {event.id!r}.")
            seen.add(event.id)

        if self.validate_checksum and session.checksum:
            stored = session.checksum
            computed = session.compute_checksum()
            if stored != computed:
                raise ValueError(
                    f"Checksum mismatch for session {session.id!r}: "
                    f"stored={stored!r} computed={computed!r}"
                )
        return session
