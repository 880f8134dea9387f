"""agent-session-core — Event-sourced session state for LLM agents.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import agent_session_core
>>> agent_session_core.__version__
'0.1.0'
"""
from __future__ import annotations

# Session core
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
    merge_event_actions,
    new_event_id,
    new_invocation_id,
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
from agent_session_core.session.state import State, StateScope, scope_of

# Storage backends
from agent_session_core.storage.base import StorageBackend
from agent_session_core.storage.filesystem import FilesystemBackend
from agent_session_core.storage.memory import InMemoryBackend

# Artifacts
from agent_session_core.artifacts.base import (
    INACCESSIBLE_MIME_TYPE,
    Artifact,
    BaseArtifactStore,
    inaccessible_artifact,
)
from agent_session_core.artifacts.memory import InMemoryArtifactStore

# Tools and plugins
from agent_session_core.tools.base import BaseTool
from agent_session_core.tools.context import ConfirmationStatus, InvocationContext, ToolContext
from agent_session_core.tools.function_tool import FunctionTool
from agent_session_core.plugins.base import BasePlugin
from agent_session_core.plugins.logging_plugin import LoggingPlugin
from agent_session_core.plugins.manager import (
    PluginAlreadyRegisteredError,
    PluginManager,
    PluginNotFoundError,
)

# Engines
from agent_session_core.functions.orchestrator import (
    REQUEST_CONFIRMATION_FUNCTION_CALL_NAME,
    REQUEST_CREDENTIAL_FUNCTION_CALL_NAME,
    FunctionCallOrchestrator,
    ToolNotFoundError,
    collect_tool_confirmations,
    generate_auth_event,
    generate_request_confirmation_event,
    merge_parallel_function_response_events,
)
from agent_session_core.rewind.engine import (
    InvocationNotFoundError,
    RewindEngine,
    compute_state_revert_delta,
)
from agent_session_core.compaction.config import CompactionConfig
from agent_session_core.compaction.engine import CompactionEngine
from agent_session_core.compaction.summarizer import (
    BaseEventsSummarizer,
    ExtractiveEventsSummarizer,
    LlmEventsSummarizer,
    render_events_for_summary,
)
from agent_session_core.context.assembler import ContextAssembler

# Settings and convenience
from agent_session_core.settings import CoreSettings, load_settings
from agent_session_core.convenience import SessionRuntime

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Session core
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
    "merge_event_actions",
    "new_event_id",
    "new_invocation_id",
    "scope_of",
    # Storage
    "FilesystemBackend",
    "InMemoryBackend",
    "StorageBackend",
    # Artifacts
    "INACCESSIBLE_MIME_TYPE",
    "Artifact",
    "BaseArtifactStore",
    "InMemoryArtifactStore",
    "inaccessible_artifact",
    # Tools and plugins
    "BasePlugin",
    "BaseTool",
    "ConfirmationStatus",
    "FunctionTool",
    "InvocationContext",
    "LoggingPlugin",
    "PluginAlreadyRegisteredError",
    "PluginManager",
    "PluginNotFoundError",
    "ToolContext",
    # Engines
    "REQUEST_CONFIRMATION_FUNCTION_CALL_NAME",
    "REQUEST_CREDENTIAL_FUNCTION_CALL_NAME",
    "BaseEventsSummarizer",
    "CompactionConfig",
    "CompactionEngine",
    "ContextAssembler",
    "ExtractiveEventsSummarizer",
    "FunctionCallOrchestrator",
    "InvocationNotFoundError",
    "LlmEventsSummarizer",
    "RewindEngine",
    "ToolNotFoundError",
    "collect_tool_confirmations",
    "compute_state_revert_delta",
    "generate_auth_event",
    "generate_request_confirmation_event",
    "merge_parallel_function_response_events",
    "render_events_for_summary",
    # Settings and convenience
    "CoreSettings",
    "SessionRuntime",
    "load_settings",
]
