"""Function-call execution for model turns."""
from __future__ import annotations

from agent_session_core.functions.orchestrator import (
    REQUEST_CONFIRMATION_FUNCTION_CALL_NAME,
    REQUEST_CREDENTIAL_FUNCTION_CALL_NAME,
    FunctionCallOrchestrator,
    ToolConfirmationResume,
    ToolNotFoundError,
    collect_tool_confirmations,
    generate_auth_event,
    generate_request_confirmation_event,
    merge_parallel_function_response_events,
)

__all__ = [
    "REQUEST_CONFIRMATION_FUNCTION_CALL_NAME",
    "REQUEST_CREDENTIAL_FUNCTION_CALL_NAME",
    "FunctionCallOrchestrator",
    "ToolConfirmationResume",
    "ToolNotFoundError",
    "collect_tool_confirmations",
    "generate_auth_event",
    "generate_request_confirmation_event",
    "merge_parallel_function_response_events",
]
