"""Artifact model and the abstract artifact store contract.

An artifact is a named, versioned binary blob.  Filenames starting with
``user:`` are scoped to the user and shared by all of their sessions;
every other filename is scoped to one session.  Each save creates a new
version; versions of one filename start at 0 and are gapless.

Classes
-------
- Artifact           — payload plus MIME type
- BaseArtifactStore  — abstract async store
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

USER_ARTIFACT_PREFIX = "user:"

# Written in place of an artifact that did not exist at a rewind target.
INACCESSIBLE_MIME_TYPE = "application/octet-stream"


class Artifact(BaseModel):
    """One version of an artifact."""

    data: bytes = b""
    mime_type: str = "text/plain"

    model_config = {"frozen": True}

    @classmethod
    def from_text(cls, text: str, mime_type: str = "text/plain") -> Artifact:
        return cls(data=text.encode("utf-8"), mime_type=mime_type)

    @property
    def is_inaccessible(self) -> bool:
        """True for the empty marker written by a rewind."""
        return not self.data and self.mime_type == INACCESSIBLE_MIME_TYPE


def inaccessible_artifact() -> Artifact:
    """Return the marker that makes a filename unreadable from now on."""
    return Artifact(data=b"", mime_type=INACCESSIBLE_MIME_TYPE)


def is_user_scoped(filename: str) -> bool:
    return filename.startswith(USER_ARTIFACT_PREFIX)


class BaseArtifactStore(ABC):
    """Async, append-only, versioned artifact storage."""

    @abstractmethod
    async def save_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        artifact: Artifact,
    ) -> int:
        """Store ``artifact`` as a new version and return that version number."""

    @abstractmethod
    async def load_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        version: int | None = None,
    ) -> Artifact | None:
        """Return the given version (latest when None), or None if absent."""

    @abstractmethod
    async def list_artifact_keys(
        self, *, app_name: str, user_id: str, session_id: str
    ) -> list[str]:
        """Return the sorted filenames visible to a session, ``user:`` files included."""

    @abstractmethod
    async def list_versions(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
    ) -> list[int]:
        """Return every stored version of ``filename`` in ascending order."""

    @abstractmethod
    async def delete_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
    ) -> None:
        """Remove every version of ``filename``."""
