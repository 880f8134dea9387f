"""Wrap a plain Python function as a tool.

Classes
-------
- FunctionTool  — adapts a sync or async callable to ``BaseTool``
"""
from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from agent_session_core.tools.base import BaseTool, ConfirmationPredicate
from agent_session_core.tools.context import ToolContext

_TOOL_CONTEXT_PARAM = "tool_context"


class FunctionTool(BaseTool):
    """A tool backed by a Python function.

    Call arguments are passed as keyword arguments.  A parameter named
    ``tool_context`` receives the call's ``ToolContext``.  Arguments the
    function does not accept are dropped unless it takes ``**kwargs``.

    Sync functions run in a worker thread (``asyncio.to_thread``), so sibling
    calls that block still overlap.  A sync tool that touches shared objects
    other than its own ``tool_context`` must be thread-safe.

    Parameters
    ----------
    func:
        Sync function, coroutine function, or async generator function.
    name:
        Defaults to ``func.__name__``.
    description:
        Defaults to the first line of the docstring.
    require_confirmation:
        See ``BaseTool``.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
        require_confirmation: bool | ConfirmationPredicate = False,
    ) -> None:
        doc = inspect.getdoc(func) or ""
        super().__init__(
            name or func.__name__,
            description if description is not None else doc.split("\n", 1)[0],
            require_confirmation=require_confirmation,
        )
        self.func = func
        self._signature = inspect.signature(func)

    def _bind_args(self, args: dict[str, Any], tool_context: ToolContext) -> dict[str, Any]:
        params = self._signature.parameters
        accepts_kwargs = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values())
        kwargs = {
            key: value
            for key, value in args.items()
            if key != _TOOL_CONTEXT_PARAM and (accepts_kwargs or key in params)
        }
        if _TOOL_CONTEXT_PARAM in params:
            kwargs[_TOOL_CONTEXT_PARAM] = tool_context
        return kwargs

    async def run(self, *, args: dict[str, Any], tool_context: ToolContext) -> Any:
        kwargs = self._bind_args(args, tool_context)
        if inspect.iscoroutinefunction(self.func) or inspect.isasyncgenfunction(self.func):
            result = self.func(**kwargs)
        else:
            result = await asyncio.to_thread(self.func, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
