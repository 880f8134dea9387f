"""Compaction configuration."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CompactionConfig:
    """Sliding-window compaction settings.

    Parameters
    ----------
    compaction_interval:
        Number of new invocations that triggers a compaction.
    overlap_size:
        Number of already-compacted invocations re-included at the start of
        the next window so that consecutive summaries share context.
    """

    compaction_interval: int = 5
    overlap_size: int = 1

    def __post_init__(self) -> None:
        if self.compaction_interval < 1:
            raise ValueError(
                f"compaction_interval must be >= 1, got {self.compaction_interval}"
            )
        if self.overlap_size < 0:
            raise ValueError(f"overlap_size must be >= 0, got {self.overlap_size}")
