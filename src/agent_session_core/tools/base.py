"""Abstract tool contract.

Classes
-------
- BaseTool  — name, description, confirmation requirement and ``run``
"""
from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from agent_session_core.tools.context import ToolContext

ConfirmationPredicate = Callable[[dict[str, Any]], Union[bool, Awaitable[bool]]]


class BaseTool(ABC):
    """A callable capability exposed to the model.

    Parameters
    ----------
    name:
        Name the model uses in function calls.
    description:
        Human-readable description.
    require_confirmation:
        ``True`` to always ask the user before running, or a predicate over
        the call arguments (sync or async) deciding per call.
    """

    def __init__(
        self,
        name: str,
        description: str = "",
        *,
        require_confirmation: bool | ConfirmationPredicate = False,
    ) -> None:
        if not name:
            raise ValueError("Tool name must be non-empty.")
        self.name = name
        self.description = description
        self.require_confirmation = require_confirmation

    async def needs_confirmation(self, args: dict[str, Any]) -> bool:
        """Return True if a call with ``args`` must be confirmed first."""
        if callable(self.require_confirmation):
            decision = self.require_confirmation(args)
            if inspect.isawaitable(decision):
                decision = await decision
            return bool(decision)
        return bool(self.require_confirmation)

    @abstractmethod
    async def run(self, *, args: dict[str, Any], tool_context: ToolContext) -> Any:
        """Execute the tool.

        May return a value, or an async iterator whose last item is the
        result.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
