"""Abstract base class for record storage backends.

The session service persists three kinds of records through a backend:
serialized sessions, shared ``app:`` state and shared ``user:`` state.
Every record is a UTF-8 string (JSON) stored under a flat string key.

Classes
-------
- StorageBackend  — abstract base for all backends
"""
from __future__ import annotations

from abc import ABC, abstractmethod


class StorageBackend(ABC):
    """Key/value store for raw record payloads.

    Backends are used by one writer at a time; the session service does
    not lock around them.
    """

    @abstractmethod
    def save(self, key: str, payload: str) -> None:
        """Persist ``payload`` under ``key``, overwriting any previous value."""

    @abstractmethod
    def load(self, key: str) -> str:
        """Return the payload stored under ``key``.

        Raises
        ------
        KeyError
            If nothing is stored under ``key``.
        """

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """Return every stored key starting with ``prefix``, sorted."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``.

        Raises
        ------
        KeyError
            If nothing is stored under ``key``.
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return True if a payload is stored under ``key``."""
