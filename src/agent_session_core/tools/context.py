"""Invocation and per-call tool contexts.

``InvocationContext`` carries everything one agent turn shares: the
session, the artifact store, the plugin chain and invocation-local
``temp:`` state.  ``ToolContext`` is created once per function call and
owns that call's private state-delta buffer, so concurrently running
tools never write to a shared mutable map.

Classes
-------
- ConfirmationStatus  — NOT_REQUIRED / PENDING / APPROVED / REJECTED
- InvocationContext   — state shared by one invocation
- ToolContext         — per-call state buffer and side-effect recorder
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agent_session_core.artifacts.base import Artifact, BaseArtifactStore
from agent_session_core.plugins.manager import PluginManager
from agent_session_core.session.event import EventActions, ToolConfirmation, new_invocation_id
from agent_session_core.session.model import Session
from agent_session_core.session.state import State

logger = logging.getLogger(__name__)


class ConfirmationStatus(str, Enum):
    """Where a tool call stands in the confirmation flow."""

    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class InvocationContext:
    """State shared by every tool call of one invocation.

    Parameters
    ----------
    session:
        The session the invocation runs against.  Read-only for tools; their
        writes are buffered per call and reach the session only through an
        appended event.
    invocation_id:
        Identifier stamped on every event the invocation produces.
    agent_name:
        Author of the events produced by the orchestrator.
    branch:
        Sub-conversation path of the running agent.
    artifact_store:
        Store used by artifact helpers on ``ToolContext``.
    plugin_manager:
        Ordered plugin chain.
    temp_state:
        Invocation-local ``temp:`` values; never persisted.
    """

    session: Session
    invocation_id: str = field(default_factory=new_invocation_id)
    agent_name: str = "agent"
    branch: str | None = None
    artifact_store: BaseArtifactStore | None = None
    plugin_manager: PluginManager = field(default_factory=PluginManager)
    temp_state: dict[str, Any] = field(default_factory=dict)
    end_invocation: bool = False

    def state_snapshot(self) -> dict[str, Any]:
        """Return the session state overlaid with the invocation's temp state."""
        snapshot = dict(self.session.state)
        snapshot.update(self.temp_state)
        return snapshot


class ToolContext:
    """Context handed to a tool for exactly one function call.

    Parameters
    ----------
    invocation_context:
        The shared invocation.
    function_call_id:
        Id of the call this context belongs to.
    tool_confirmation:
        The user's answer to an earlier confirmation request, if any.
    """

    def __init__(
        self,
        invocation_context: InvocationContext,
        *,
        function_call_id: str | None = None,
        tool_confirmation: ToolConfirmation | None = None,
    ) -> None:
        self._invocation_context = invocation_context
        self.function_call_id = function_call_id
        self.tool_confirmation = tool_confirmation
        self.actions = EventActions()
        self.state = State(invocation_context.state_snapshot())

    @property
    def invocation_context(self) -> InvocationContext:
        return self._invocation_context

    @property
    def invocation_id(self) -> str:
        return self._invocation_context.invocation_id

    @property
    def agent_name(self) -> str:
        return self._invocation_context.agent_name

    @property
    def session(self) -> Session:
        return self._invocation_context.session

    # ------------------------------------------------------------------
    # Confirmation and auth
    # ------------------------------------------------------------------

    def request_confirmation(self, *, hint: str = "", payload: Any = None) -> None:
        """Ask the user to confirm this call before it may proceed."""
        if not self.function_call_id:
            raise ValueError("request_confirmation needs a function_call_id.")
        self.actions.requested_tool_confirmations[self.function_call_id] = ToolConfirmation(
            hint=hint, payload=payload
        )

    def request_credential(self, auth_config: dict[str, Any]) -> None:
        """Ask the host to obtain credentials described by ``auth_config``."""
        if not self.function_call_id:
            raise ValueError("request_credential needs a function_call_id.")
        self.actions.requested_auth_configs[self.function_call_id] = dict(auth_config)

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def _artifact_store(self) -> BaseArtifactStore:
        store = self._invocation_context.artifact_store
        if store is None:
            raise ValueError("No artifact store is configured for this invocation.")
        return store

    async def save_artifact(self, filename: str, artifact: Artifact) -> int:
        """Save a new version of ``filename`` and record it in ``artifact_delta``."""
        session = self.session
        version = await self._artifact_store().save_artifact(
            app_name=session.app_name,
            user_id=session.user_id,
            session_id=session.id,
            filename=filename,
            artifact=artifact,
        )
        self.actions.artifact_delta[filename] = version
        return version

    async def load_artifact(self, filename: str, version: int | None = None) -> Artifact | None:
        session = self.session
        return await self._artifact_store().load_artifact(
            app_name=session.app_name,
            user_id=session.user_id,
            session_id=session.id,
            filename=filename,
            version=version,
        )

    async def list_artifacts(self) -> list[str]:
        session = self.session
        return await self._artifact_store().list_artifact_keys(
            app_name=session.app_name, user_id=session.user_id, session_id=session.id
        )

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def collect_actions(self) -> EventActions:
        """Return this call's actions with its buffered state delta.

        ``temp:`` writes are moved into the invocation's temp state here
        and left out of the returned delta.
        """
        state_delta: dict[str, Any] = {}
        for key, value in self.state.delta.items():
            if key.startswith("temp:"):
                if value is None:
                    self._invocation_context.temp_state.pop(key, None)
                else:
                    self._invocation_context.temp_state[key] = value
            else:
                state_delta[key] = value
        return self.actions.model_copy(update={"state_delta": state_delta})
