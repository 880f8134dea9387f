"""Context assembly for model calls."""
from __future__ import annotations

from agent_session_core.context.assembler import ContextAssembler, is_visible_on_branch

__all__ = ["ContextAssembler", "is_visible_on_branch"]
