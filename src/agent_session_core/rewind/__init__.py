"""Rewind: revert a session to before an invocation without deleting history."""
from __future__ import annotations

from agent_session_core.rewind.engine import (
    InvocationNotFoundError,
    RewindEngine,
    compute_state_revert_delta,
)

__all__ = ["InvocationNotFoundError", "RewindEngine", "compute_state_revert_delta"]
