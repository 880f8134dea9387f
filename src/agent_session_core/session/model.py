"""Session domain model.

Classes
-------
- Session  — identity, derived state and the ordered event list
"""
from __future__ import annotations

import hashlib
import json
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from agent_session_core.session.event import Event


class Session(BaseModel):
    """One multi-turn conversation owned by a session service.

    ``state`` is a materialized projection of ``events`` (plus the shared
    ``app:``/``user:`` scopes merged in by the session service).  It must
    only ever change through ``EventLog.append``.

    Parameters
    ----------
    id:
        Session identifier, unique within ``(app_name, user_id)``.
    app_name:
        The application the session belongs to.
    user_id:
        The user the session belongs to.
    state:
        Current derived key/value state.
    events:
        The append-only event log.
    last_update_time:
        Timestamp of the most recently appended event.
    schema_version:
        Serialized schema version.
    checksum:
        SHA-256 of the canonical JSON (excluding this field).
    """

    SCHEMA_VERSION: ClassVar[str] = "1.0"

    id: str = Field(default_factory=lambda: str(uuid4()))
    app_name: str
    user_id: str
    state: dict[str, Any] = Field(default_factory=dict)
    events: list[Event] = Field(default_factory=list)
    last_update_time: float = 0.0
    schema_version: str = "1.0"
    checksum: str = ""

    model_config = {"frozen": False}

    def _canonical_dict(self) -> dict[str, object]:
        data = self.model_dump(mode="json")
        data.pop("checksum", None)
        return data  # type: ignore[return-value]

    def compute_checksum(self) -> str:
        """Compute, store and return the SHA-256 checksum of this session."""
        canonical_json = json.dumps(self._canonical_dict(), sort_keys=True)
        digest = hashlib.sha256(canonical_json.encode()).hexdigest()
        self.checksum = digest
        return digest

    def verify_checksum(self) -> bool:
        """Return True if the stored checksum matches the computed one."""
        return self.checksum == self.compute_checksum()

    @model_validator(mode="after")
    def _ensure_schema_version(self) -> "Session":
        if not self.schema_version:
            self.schema_version = self.SCHEMA_VERSION
        return self
