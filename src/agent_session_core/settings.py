"""Runtime settings loaded from YAML.

Example ``agent-session-core.yaml``::

    storage: filesystem
    storage_dir: ./sessions
    app_name: support-bot
    log_level: INFO
    compaction_interval: 4
    compaction_overlap_size: 1

Classes
-------
- CoreSettings  — validated settings model
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from agent_session_core.compaction.config import CompactionConfig

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "agent-session-core.yaml"

_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


class CoreSettings(BaseModel):
    """Settings shared by the CLI and embedding hosts.

    Parameters
    ----------
    storage:
        Session record backend: ``"memory"`` or ``"filesystem"``.
    storage_dir:
        Directory of the filesystem backend.  None selects the backend's
        default directory.
    app_name:
        Application name used when a command does not name one.
    log_level:
        Root log level installed by the CLI.
    compaction_interval:
        Invocations per sliding-window compaction.
    compaction_overlap_size:
        Invocations re-included at the start of each window.
    """

    storage: Literal["memory", "filesystem"] = "filesystem"
    storage_dir: str | None = None
    app_name: str = "default"
    log_level: str = "WARNING"
    compaction_interval: int = Field(default=5, ge=1)
    compaction_overlap_size: int = Field(default=1, ge=0)

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}")
        return level

    def compaction_config(self) -> CompactionConfig:
        return CompactionConfig(
            compaction_interval=self.compaction_interval,
            overlap_size=self.compaction_overlap_size,
        )


def load_settings(path: str | Path | None = None) -> CoreSettings:
    """Load settings from a YAML file.

    A missing file yields the defaults.  An empty file is treated the same.

    Raises
    ------
    ValueError
        If the document is not a mapping.
    pydantic.ValidationError
        If a value is invalid.
    """
    settings_path = Path(path) if path is not None else Path(DEFAULT_SETTINGS_FILE)
    if not settings_path.exists():
        logger.debug("No settings file at %s; using defaults", settings_path)
        return CoreSettings()

    data = yaml.safe_load(settings_path.read_text(encoding="utf-8"))
    if data is None:
        return CoreSettings()
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {settings_path} must contain a mapping.")
    return CoreSettings.model_validate(data)
