"""Record storage backends used by the session service."""
from __future__ import annotations

from agent_session_core.storage.base import StorageBackend
from agent_session_core.storage.filesystem import FilesystemBackend
from agent_session_core.storage.memory import InMemoryBackend

__all__ = ["FilesystemBackend", "InMemoryBackend", "StorageBackend"]
