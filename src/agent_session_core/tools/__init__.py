"""Tool contract and the per-call execution context."""
from __future__ import annotations

from agent_session_core.session.event import ToolConfirmation
from agent_session_core.tools.base import BaseTool
from agent_session_core.tools.context import ConfirmationStatus, InvocationContext, ToolContext
from agent_session_core.tools.function_tool import FunctionTool

__all__ = [
    "BaseTool",
    "ConfirmationStatus",
    "FunctionTool",
    "InvocationContext",
    "ToolConfirmation",
    "ToolContext",
]
