"""Versioned artifact storage consumed by tools and the rewind engine."""
from __future__ import annotations

from agent_session_core.artifacts.base import (
    INACCESSIBLE_MIME_TYPE,
    Artifact,
    BaseArtifactStore,
    inaccessible_artifact,
)
from agent_session_core.artifacts.memory import InMemoryArtifactStore

__all__ = [
    "INACCESSIBLE_MIME_TYPE",
    "Artifact",
    "BaseArtifactStore",
    "InMemoryArtifactStore",
    "inaccessible_artifact",
]
