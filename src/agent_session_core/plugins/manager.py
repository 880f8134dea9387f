"""Ordered plugin chain with short-circuit dispatch.

Plugins run in registration order.  For each hook the first plugin that
returns a value other than ``None`` wins and the remaining plugins are
skipped.  A plugin that raises aborts the chain with ``RuntimeError``.

Third-party plugins can be discovered through ``importlib.metadata``
entry points:

.. code-block:: toml

    [project.entry-points."agent_session_core.plugins"]
    audit = "my_package.plugins:AuditPlugin"

Classes
-------
- PluginManager                 — registry and dispatcher
- PluginNotFoundError           — lookup of an unknown plugin name
- PluginAlreadyRegisteredError  — duplicate plugin name
"""
from __future__ import annotations

import importlib.metadata
import logging
from typing import TYPE_CHECKING, Any

from agent_session_core.plugins.base import BasePlugin
from agent_session_core.session.manager import NotFoundError

if TYPE_CHECKING:
    from agent_session_core.session.event import Event
    from agent_session_core.tools.base import BaseTool
    from agent_session_core.tools.context import InvocationContext, ToolContext

logger = logging.getLogger(__name__)

ENTRYPOINT_GROUP = "agent_session_core.plugins"


class PluginNotFoundError(NotFoundError):
    """Raised when a plugin name is not registered."""

    def __init__(self, plugin_name: str) -> None:
        self.plugin_name = plugin_name
        super().__init__(f"Plugin {plugin_name!r} is not registered.")


class PluginAlreadyRegisteredError(ValueError):
    """Raised when registering a second plugin under an existing name."""

    def __init__(self, plugin_name: str) -> None:
        self.plugin_name = plugin_name
        super().__init__(f"Plugin {plugin_name!r} is already registered.")


class PluginManager:
    """Holds plugins in registration order and dispatches hooks to them.

    Parameters
    ----------
    plugins:
        Plugins to register immediately, in order.
    """

    def __init__(self, plugins: list[BasePlugin] | None = None) -> None:
        self._plugins: list[BasePlugin] = []
        for plugin in plugins or []:
            self.register(plugin)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, plugin: BasePlugin) -> BasePlugin:
        """Append ``plugin`` to the chain and return it.

        Raises
        ------
        TypeError
            If ``plugin`` is not a ``BasePlugin``.
        PluginAlreadyRegisteredError
            If a plugin with the same name is already registered.
        """
        if not isinstance(plugin, BasePlugin):
            raise TypeError(
                f"Cannot register {plugin!r}: it is not a BasePlugin subclass instance."
            )
        if plugin.name in self:
            raise PluginAlreadyRegisteredError(plugin.name)
        self._plugins.append(plugin)
        logger.debug("PluginManager: registered plugin %r", plugin.name)
        return plugin

    def deregister(self, name: str) -> None:
        plugin = self.get(name)
        self._plugins.remove(plugin)
        logger.debug("PluginManager: deregistered plugin %r", name)

    def get(self, name: str) -> BasePlugin:
        """Return the plugin registered under ``name``.

        Raises
        ------
        PluginNotFoundError
            If no such plugin is registered.
        """
        for plugin in self._plugins:
            if plugin.name == name:
                return plugin
        raise PluginNotFoundError(name)

    def list_plugins(self) -> list[str]:
        """Return plugin names in dispatch order."""
        return [plugin.name for plugin in self._plugins]

    def load_entrypoints(self, group: str = ENTRYPOINT_GROUP) -> None:
        """Instantiate and register plugin classes advertised under ``group``.

        Each entry point must load a ``BasePlugin`` subclass that can be
        constructed without arguments.  Names already registered are
        skipped; entry points that fail to load are logged and skipped.
        """
        for entry_point in importlib.metadata.entry_points(group=group):
            if entry_point.name in self:
                logger.debug("PluginManager: entry point %r already registered", entry_point.name)
                continue
            try:
                plugin_cls = entry_point.load()
            except Exception:
                logger.exception("PluginManager: failed to load entry point %r", entry_point.name)
                continue
            if not (isinstance(plugin_cls, type) and issubclass(plugin_cls, BasePlugin)):
                logger.warning(
                    "PluginManager: entry point %r does not provide a BasePlugin subclass",
                    entry_point.name,
                )
                continue
            plugin = plugin_cls()
            if plugin.name != entry_point.name:
                plugin.name = entry_point.name
            self.register(plugin)

    def __contains__(self, name: object) -> bool:
        return any(plugin.name == name for plugin in self._plugins)

    def __len__(self) -> int:
        return len(self._plugins)

    def __repr__(self) -> str:
        return f"PluginManager(plugins={self.list_plugins()!r})"

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _run_callbacks(self, callback_name: str, **kwargs: Any) -> Any:
        for plugin in self._plugins:
            callback = getattr(plugin, callback_name)
            try:
                result = await callback(**kwargs)
            except Exception as exc:
                logger.error(
                    "PluginManager: plugin %r raised in %s: %s", plugin.name, callback_name, exc
                )
                raise RuntimeError(
                    f"Error in plugin {plugin.name!r} during {callback_name}: {exc}"
                ) from exc
            if result is not None:
                logger.debug(
                    "PluginManager: plugin %r short-circuited %s", plugin.name, callback_name
                )
                return result
        return None

    async def run_before_run_callback(self, *, invocation_context: InvocationContext) -> Any:
        return await self._run_callbacks(
            "before_run_callback", invocation_context=invocation_context
        )

    async def run_on_event_callback(
        self, *, invocation_context: InvocationContext, event: Event
    ) -> Event | None:
        return await self._run_callbacks(
            "on_event_callback", invocation_context=invocation_context, event=event
        )

    async def run_after_run_callback(self, *, invocation_context: InvocationContext) -> None:
        await self._run_callbacks("after_run_callback", invocation_context=invocation_context)

    async def run_before_model_callback(
        self, *, invocation_context: InvocationContext, llm_request: Any
    ) -> Any:
        return await self._run_callbacks(
            "before_model_callback", invocation_context=invocation_context, llm_request=llm_request
        )

    async def run_after_model_callback(
        self, *, invocation_context: InvocationContext, llm_response: Any
    ) -> Any:
        return await self._run_callbacks(
            "after_model_callback", invocation_context=invocation_context, llm_response=llm_response
        )

    async def run_on_model_error_callback(
        self, *, invocation_context: InvocationContext, llm_request: Any, error: Exception
    ) -> Any:
        return await self._run_callbacks(
            "on_model_error_callback",
            invocation_context=invocation_context,
            llm_request=llm_request,
            error=error,
        )

    async def run_before_tool_callback(
        self, *, tool: BaseTool, tool_args: dict[str, Any], tool_context: ToolContext
    ) -> dict[str, Any] | None:
        return await self._run_callbacks(
            "before_tool_callback", tool=tool, tool_args=tool_args, tool_context=tool_context
        )

    async def run_after_tool_callback(
        self,
        *,
        tool: BaseTool,
        tool_args: dict[str, Any],
        tool_context: ToolContext,
        result: dict[str, Any],
    ) -> dict[str, Any] | None:
        return await self._run_callbacks(
            "after_tool_callback",
            tool=tool,
            tool_args=tool_args,
            tool_context=tool_context,
            result=result,
        )

    async def run_on_tool_error_callback(
        self,
        *,
        tool: BaseTool,
        tool_args: dict[str, Any],
        tool_context: ToolContext,
        error: Exception,
    ) -> dict[str, Any] | None:
        return await self._run_callbacks(
            "on_tool_error_callback",
            tool=tool,
            tool_args=tool_args,
            tool_context=tool_context,
            error=error,
        )
