"""Filesystem record backend.

Each record is one JSON file named after its key.  Keys may contain any
characters; they are percent-encoded into safe file names so that no key
can escape the storage directory.

Classes
-------
- FilesystemBackend  — JSON-file-per-record storage
"""
from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import quote, unquote

from agent_session_core.storage.base import StorageBackend

logger = logging.getLogger(__name__)

_DEFAULT_STORAGE_DIR: Path = Path.home() / ".agent-session-core"
_FILE_EXTENSION = ".json"


class FilesystemBackend(StorageBackend):
    """Stores each record as ``<storage_dir>/<encoded key>.json``.

    Parameters
    ----------
    storage_dir:
        Root directory for record files.  Defaults to
        ``~/.agent-session-core/``.  Created on first write.
    """

    def __init__(self, storage_dir: str | Path | None = None) -> None:
        self._storage_dir: Path = (
            Path(storage_dir) if storage_dir is not None else _DEFAULT_STORAGE_DIR
        )

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    def _path_for(self, key: str) -> Path:
        # quote() with no safe characters also encodes "/" and ".."
        return self._storage_dir / f"{quote(key, safe='')}{_FILE_EXTENSION}"

    def save(self, key: str, payload: str) -> None:
        self._storage_dir.mkdir(parents=True, exist_ok=True)
        path = self._path_for(key)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(path)
        logger.debug("FilesystemBackend: wrote %s", path)

    def load(self, key: str) -> str:
        path = self._path_for(key)
        if not path.exists():
            raise KeyError(f"Record {key!r} not found at {path}")
        return path.read_text(encoding="utf-8")

    def keys(self, prefix: str = "") -> list[str]:
        if not self._storage_dir.exists():
            return []
        found = [
            unquote(path.name[: -len(_FILE_EXTENSION)])
            for path in self._storage_dir.glob(f"*{_FILE_EXTENSION}")
            if path.is_file()
        ]
        return sorted(key for key in found if key.startswith(prefix))

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        if not path.exists():
            raise KeyError(f"Record {key!r} not found at {path}")
        path.unlink()

    def exists(self, key: str) -> bool:
        return self._path_for(key).exists()

    def __repr__(self) -> str:
        return f"FilesystemBackend(storage_dir={str(self._storage_dir)!r})"
