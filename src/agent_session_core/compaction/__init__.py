"""Compaction: summarize long histories for context assembly."""
from __future__ import annotations

from agent_session_core.compaction.config import CompactionConfig
from agent_session_core.compaction.engine import CompactionEngine
from agent_session_core.compaction.summarizer import (
    BaseEventsSummarizer,
    ExtractiveEventsSummarizer,
    LlmEventsSummarizer,
    build_compaction_event,
    render_events_for_summary,
)

__all__ = [
    "BaseEventsSummarizer",
    "CompactionConfig",
    "CompactionEngine",
    "ExtractiveEventsSummarizer",
    "LlmEventsSummarizer",
    "build_compaction_event",
    "render_events_for_summary",
]
