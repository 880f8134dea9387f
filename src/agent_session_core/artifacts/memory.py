"""In-memory artifact store.

Classes
-------
- InMemoryArtifactStore  — dict-backed versioned storage guarded by asyncio.Lock
"""
from __future__ import annotations

import asyncio
import logging

from agent_session_core.artifacts.base import Artifact, BaseArtifactStore, is_user_scoped

logger = logging.getLogger(__name__)

_USER_NAMESPACE = "user"


class InMemoryArtifactStore(BaseArtifactStore):
    """Ephemeral artifact store backed by a dict of version lists.

    An ``asyncio.Lock`` guards all mutations so that tool calls running
    concurrently never allocate the same version number twice.
    """

    def __init__(self) -> None:
        self._artifacts: dict[tuple[str, str, str, str], list[Artifact]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    @staticmethod
    def _key(app_name: str, user_id: str, session_id: str, filename: str) -> tuple[str, str, str, str]:
        namespace = _USER_NAMESPACE if is_user_scoped(filename) else f"session/{session_id}"
        return (app_name, user_id, namespace, filename)

    async def save_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        artifact: Artifact,
    ) -> int:
        key = self._key(app_name, user_id, session_id, filename)
        async with self._lock:
            versions = self._artifacts.setdefault(key, [])
            versions.append(artifact)
            version = len(versions) - 1
        logger.debug("InMemoryArtifactStore: saved %r version %d", filename, version)
        return version

    async def load_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        version: int | None = None,
    ) -> Artifact | None:
        async with self._lock:
            versions = self._artifacts.get(self._key(app_name, user_id, session_id, filename))
            if not versions:
                return None
            if version is None:
                return versions[-1]
            if 0 <= version < len(versions):
                return versions[version]
            return None

    async def list_artifact_keys(
        self, *, app_name: str, user_id: str, session_id: str
    ) -> list[str]:
        session_namespace = f"session/{session_id}"
        async with self._lock:
            return sorted(
                filename
                for (app, user, namespace, filename) in self._artifacts
                if app == app_name
                and user == user_id
                and namespace in (session_namespace, _USER_NAMESPACE)
            )

    async def list_versions(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
    ) -> list[int]:
        async with self._lock:
            versions = self._artifacts.get(self._key(app_name, user_id, session_id, filename), [])
            return list(range(len(versions)))

    async def delete_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
    ) -> None:
        async with self._lock:
            self._artifacts.pop(self._key(app_name, user_id, session_id, filename), None)

    def __len__(self) -> int:
        return len(self._artifacts)

    def __repr__(self) -> str:
        return f"InMemoryArtifactStore(files={len(self._artifacts)})"
