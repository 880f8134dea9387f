"""Plugin hook interface.

A plugin observes or intercepts the run lifecycle, model calls and tool
calls.  Every hook is a coroutine that returns ``None`` to let processing
continue; any other value short-circuits the chain and replaces the
default behaviour (for example, a ``before_tool_callback`` result is used
as the tool's result and the tool is not run).

Classes
-------
- BasePlugin  — no-op implementations of every hook
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from agent_session_core.session.event import Event
    from agent_session_core.tools.base import BaseTool
    from agent_session_core.tools.context import InvocationContext, ToolContext


class BasePlugin:
    """Base class for plugins; override only the hooks you need.

    Parameters
    ----------
    name:
        Unique name within a ``PluginManager``.
    """

    def __init__(self, name: str) -> None:
        if not name:
            raise ValueError("Plugin name must be non-empty.")
        self.name = name

    # Run lifecycle

    async def before_run_callback(self, *, invocation_context: InvocationContext) -> Any:
        return None

    async def on_event_callback(
        self, *, invocation_context: InvocationContext, event: Event
    ) -> Event | None:
        return None

    async def after_run_callback(self, *, invocation_context: InvocationContext) -> None:
        return None

    # Model calls

    async def before_model_callback(
        self, *, invocation_context: InvocationContext, llm_request: Any
    ) -> Any:
        return None

    async def after_model_callback(
        self, *, invocation_context: InvocationContext, llm_response: Any
    ) -> Any:
        return None

    async def on_model_error_callback(
        self, *, invocation_context: InvocationContext, llm_request: Any, error: Exception
    ) -> Any:
        return None

    # Tool calls

    async def before_tool_callback(
        self, *, tool: BaseTool, tool_args: dict[str, Any], tool_context: ToolContext
    ) -> dict[str, Any] | None:
        return None

    async def after_tool_callback(
        self,
        *,
        tool: BaseTool,
        tool_args: dict[str, Any],
        tool_context: ToolContext,
        result: dict[str, Any],
    ) -> dict[str, Any] | None:
        return None

    async def on_tool_error_callback(
        self,
        *,
        tool: BaseTool,
        tool_args: dict[str, Any],
        tool_context: ToolContext,
        error: Exception,
    ) -> dict[str, Any] | None:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
