"""Plugin chain: ordered hooks around runs, model calls and tool calls."""
from __future__ import annotations

from agent_session_core.plugins.base import BasePlugin
from agent_session_core.plugins.logging_plugin import LoggingPlugin
from agent_session_core.plugins.manager import (
    ENTRYPOINT_GROUP,
    PluginAlreadyRegisteredError,
    PluginManager,
    PluginNotFoundError,
)

__all__ = [
    "ENTRYPOINT_GROUP",
    "BasePlugin",
    "LoggingPlugin",
    "PluginAlreadyRegisteredError",
    "PluginManager",
    "PluginNotFoundError",
]
