"""In-memory record backend.

All data is lost when the process exits; used by tests and by hosts that
keep sessions only for the lifetime of one process.

Classes
-------
- InMemoryBackend  — dict-backed ephemeral storage
"""
from __future__ import annotations

from agent_session_core.storage.base import StorageBackend


class InMemoryBackend(StorageBackend):
    """Dict-backed record storage.

    Parameters
    ----------
    initial_data:
        Optional pre-populated mapping of keys to payloads (copied).
    """

    def __init__(self, initial_data: dict[str, str] | None = None) -> None:
        self._records: dict[str, str] = dict(initial_data or {})

    def save(self, key: str, payload: str) -> None:
        self._records[key] = payload

    def load(self, key: str) -> str:
        try:
            return self._records[key]
        except KeyError:
            raise KeyError(f"Record {key!r} not found in InMemoryBackend.") from None

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(key for key in self._records if key.startswith(prefix))

    def delete(self, key: str) -> None:
        try:
            del self._records[key]
        except KeyError:
            raise KeyError(f"Record {key!r} not found in InMemoryBackend.") from None

    def exists(self, key: str) -> bool:
        return key in self._records

    def clear(self) -> None:
        """Remove every record."""
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"InMemoryBackend(records={len(self._records)})"
