"""Session subpackage.

Provides the event-sourced session model: immutable events, the derived
key/value state, the append-only event log and the session service that
persists them.

Public surface
--------------
- Event, EventActions, Content, Part  — history records
- State                              — state with a pending-delta buffer
- Session                            — identity, state and events
- EventLog                           — append / fold / visibility filter
- SessionService                     — create / get / append / list / delete
- SessionSerializer                  — JSON/YAML round-trip with schema versioning
"""
from __future__ import annotations

from agent_session_core.session.event import (
    Blob,
    Content,
    Event,
    EventActions,
    EventCompaction,
    FileData,
    FunctionCall,
    FunctionResponse,
    Part,
    ToolConfirmation,
)
from agent_session_core.session.event_log import EventLog, filter_rewound_events
from agent_session_core.session.manager import (
    GetSessionConfig,
    NotFoundError,
    SessionNotFoundError,
    SessionService,
    StaleSessionError,
)
from agent_session_core.session.model import Session
from agent_session_core.session.serializer import SchemaVersionError, SessionSerializer
from agent_session_core.session.state import State, StateScope

__all__ = [
    "Blob",
    "Content",
    "Event",
    "EventActions",
    "EventCompaction",
    "EventLog",
    "FileData",
    "FunctionCall",
    "FunctionResponse",
    "GetSessionConfig",
    "NotFoundError",
    "Part",
    "SchemaVersionError",
    "Session",
    "SessionNotFoundError",
    "SessionSerializer",
    "SessionService",
    "StaleSessionError",
    "State",
    "StateScope",
    "ToolConfirmation",
    "filter_rewound_events",
]
