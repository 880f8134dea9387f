"""Convenience API for agent-session-core — quickstart wiring.

Example
-------
::

    from agent_session_core import SessionRuntime
    runtime = SessionRuntime(app_name="demo")
    session = runtime.create_session("alice", state={"topic": "billing"})
    runtime.append_user_message(session, "Hello!")
    print(runtime.render_context(session))

"""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from agent_session_core.artifacts.base import BaseArtifactStore
from agent_session_core.artifacts.memory import InMemoryArtifactStore
from agent_session_core.compaction.config import CompactionConfig
from agent_session_core.compaction.engine import CompactionEngine
from agent_session_core.compaction.summarizer import (
    BaseEventsSummarizer,
    ExtractiveEventsSummarizer,
)
from agent_session_core.context.assembler import ContextAssembler
from agent_session_core.functions.orchestrator import FunctionCallOrchestrator
from agent_session_core.plugins.manager import PluginManager
from agent_session_core.rewind.engine import RewindEngine
from agent_session_core.session.event import (
    Content,
    Event,
    Part,
    new_invocation_id,
    populate_client_function_call_ids,
)
from agent_session_core.session.manager import SessionService
from agent_session_core.session.model import Session
from agent_session_core.storage.base import StorageBackend
from agent_session_core.storage.memory import InMemoryBackend
from agent_session_core.tools.base import BaseTool
from agent_session_core.tools.context import InvocationContext


class SessionRuntime:
    """One object wiring the session service and the engines together.

    Defaults to in-memory storage and the extractive summarizer, so no
    configuration is required.

    Parameters
    ----------
    app_name:
        Application every session created here belongs to.
    backend:
        Session record backend.  Defaults to ``InMemoryBackend``.
    artifact_store:
        Defaults to ``InMemoryArtifactStore``.
    summarizer:
        Defaults to ``ExtractiveEventsSummarizer``.
    compaction_config:
        Sliding-window trigger.
    plugins:
        Plugin chain used for tool calls.
    """

    def __init__(
        self,
        app_name: str = "default",
        *,
        backend: StorageBackend | None = None,
        artifact_store: BaseArtifactStore | None = None,
        summarizer: BaseEventsSummarizer | None = None,
        compaction_config: CompactionConfig | None = None,
        plugins: PluginManager | None = None,
    ) -> None:
        self.app_name = app_name
        self.sessions = SessionService(backend or InMemoryBackend())
        self.artifacts = artifact_store or InMemoryArtifactStore()
        self.plugins = plugins or PluginManager()
        self.rewind = RewindEngine(self.sessions, self.artifacts)
        self.compaction = CompactionEngine(
            self.sessions, summarizer or ExtractiveEventsSummarizer(), compaction_config
        )
        self.assembler = ContextAssembler()

    def create_session(
        self, user_id: str, *, state: dict[str, Any] | None = None, session_id: str | None = None
    ) -> Session:
        return self.sessions.create_session(
            self.app_name, user_id, state=state, session_id=session_id
        )

    def get_session(self, user_id: str, session_id: str) -> Session:
        return self.sessions.get_session(self.app_name, user_id, session_id)

    def append_user_message(
        self, session: Session, text: str, *, invocation_id: str | None = None
    ) -> Event:
        """Append a user text message, starting a new invocation unless one is given."""
        event = Event(
            invocation_id=invocation_id or new_invocation_id(),
            author="user",
            content=Content(role="user", parts=[Part.from_text(text)]),
        )
        return self.sessions.append_event(session, event)

    async def run_tools(
        self,
        session: Session,
        function_call_event: Event,
        tools: Sequence[BaseTool],
        **orchestrator_options: Any,
    ) -> list[Event]:
        """Append ``function_call_event``, execute its calls and append every resulting event.

        Calls without an id are given a client id before the call event is
        appended, so the stored call, its response and any follow-up request
        share the same ids.  The call event must not already be in
        ``session``.

        Returns the events appended in reply: the merged response first, then
        any credential or confirmation request.
        """
        populate_client_function_call_ids(function_call_event)
        self.sessions.append_event(session, function_call_event)

        context = InvocationContext(
            session=session,
            invocation_id=function_call_event.invocation_id or new_invocation_id(),
            agent_name=function_call_event.author,
            branch=function_call_event.branch,
            artifact_store=self.artifacts,
            plugin_manager=self.plugins,
        )
        orchestrator = FunctionCallOrchestrator(tools, **orchestrator_options)
        response = await orchestrator.handle_function_calls(context, function_call_event)
        if response is None:
            return []
        appended = [self.sessions.append_event(session, response)]
        for follow_up in orchestrator.follow_up_events(context, function_call_event, response):
            appended.append(self.sessions.append_event(session, follow_up))
        return appended

    async def rewind_before(self, session: Session, invocation_id: str) -> Event:
        """Rewind ``session`` and refresh the caller's object from storage."""
        marker = await self.rewind.rewind_before(
            session.app_name, session.user_id, session.id, invocation_id
        )
        self._refresh(session)
        return marker

    async def maybe_compact(self, session: Session) -> Event | None:
        """Run the sliding-window trigger; a compaction is appended through ``session``."""
        return await self.compaction.run_sliding_window(session)

    def _refresh(self, session: Session) -> None:
        latest = self.get_session(session.user_id, session.id)
        session.state = latest.state
        session.events = latest.events
        session.last_update_time = latest.last_update_time

    def context(self, session: Session, *, branch: str | None = None) -> list[Event]:
        latest = self.get_session(session.user_id, session.id)
        return self.assembler.assemble(latest, branch=branch)

    def render_context(self, session: Session, *, branch: str | None = None) -> str:
        return self.assembler.render(self.context(session, branch=branch))
