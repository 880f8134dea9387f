"""A plugin that logs every lifecycle hook and never intercepts."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from agent_session_core.plugins.base import BasePlugin

if TYPE_CHECKING:
    from agent_session_core.session.event import Event
    from agent_session_core.tools.base import BaseTool
    from agent_session_core.tools.context import InvocationContext, ToolContext

logger = logging.getLogger(__name__)


class LoggingPlugin(BasePlugin):
    """Log run, event and tool hooks at DEBUG (tool errors at WARNING)."""

    def __init__(self, name: str = "logging") -> None:
        super().__init__(name)

    async def before_run_callback(self, *, invocation_context: InvocationContext) -> Any:
        logger.debug(
            "run start: invocation=%s session=%s",
            invocation_context.invocation_id,
            invocation_context.session.id,
        )
        return None

    async def on_event_callback(
        self, *, invocation_context: InvocationContext, event: Event
    ) -> Event | None:
        logger.debug("event %s from %s (invocation=%s)", event.id, event.author, event.invocation_id)
        return None

    async def after_run_callback(self, *, invocation_context: InvocationContext) -> None:
        logger.debug("run end: invocation=%s", invocation_context.invocation_id)

    async def before_tool_callback(
        self, *, tool: BaseTool, tool_args: dict[str, Any], tool_context: ToolContext
    ) -> dict[str, Any] | None:
        logger.debug(
            "tool %s start: call=%s args=%r", tool.name, tool_context.function_call_id, tool_args
        )
        return None

    async def after_tool_callback(
        self,
        *,
        tool: BaseTool,
        tool_args: dict[str, Any],
        tool_context: ToolContext,
        result: dict[str, Any],
    ) -> dict[str, Any] | None:
        logger.debug(
            "tool %s done: call=%s result=%r", tool.name, tool_context.function_call_id, result
        )
        return None

    async def on_tool_error_callback(
        self,
        *,
        tool: BaseTool,
        tool_args: dict[str, Any],
        tool_context: ToolContext,
        error: Exception,
    ) -> dict[str, Any] | None:
        logger.warning(
            "tool %s failed: call=%s error=%s", tool.name, tool_context.function_call_id, error
        )
        return None
