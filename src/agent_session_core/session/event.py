"""Event, content and action models.

An ``Event`` is the atomic, immutable unit of session history.  Its
``actions`` carry every side effect the event has on derived state:
state and artifact deltas, pending confirmation/auth requests, rewind
markers and compaction summaries.

Classes
-------
- FunctionCall, FunctionResponse, Blob, FileData, Part, Content
- ToolConfirmation   — a pending or resolved tool-call confirmation
- EventCompaction    — a summarized range of events
- EventActions       — side effects attached to an event
- Event              — immutable history record
"""
from __future__ import annotations

import base64
import time
from collections.abc import Iterable
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

CLIENT_FUNCTION_CALL_ID_PREFIX = "afc-"


def new_event_id() -> str:
    """Return a fresh event identifier."""
    return str(uuid4())


def new_invocation_id() -> str:
    """Return a fresh invocation identifier."""
    return f"e-{uuid4()}"


def generate_client_function_call_id() -> str:
    return f"{CLIENT_FUNCTION_CALL_ID_PREFIX}{uuid4()}"


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class FunctionCall(BaseModel):
    """A model-requested tool invocation."""

    id: str | None = None
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class FunctionResponse(BaseModel):
    """The result of one function call, tagged with the call's id."""

    id: str | None = None
    name: str
    response: dict[str, Any] = Field(default_factory=dict)


class Blob(BaseModel):
    """Inline binary data.  ``data`` holds the base64-encoded payload."""

    mime_type: str
    data: str = ""

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str) -> Blob:
        return cls(mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"))

    def as_bytes(self) -> bytes:
        return base64.b64decode(self.data) if self.data else b""


class FileData(BaseModel):
    """A reference to externally stored data."""

    file_uri: str
    mime_type: str | None = None


class Part(BaseModel):
    """One element of a ``Content``: exactly one field is normally set."""

    text: str | None = None
    function_call: FunctionCall | None = None
    function_response: FunctionResponse | None = None
    inline_data: Blob | None = None
    file_data: FileData | None = None

    @classmethod
    def from_text(cls, text: str) -> Part:
        return cls(text=text)

    @classmethod
    def from_function_call(
        cls, name: str, args: dict[str, Any] | None = None, *, id: str | None = None
    ) -> Part:
        return cls(function_call=FunctionCall(id=id, name=name, args=args or {}))

    @classmethod
    def from_function_response(
        cls, name: str, response: dict[str, Any], *, id: str | None = None
    ) -> Part:
        return cls(function_response=FunctionResponse(id=id, name=name, response=response))


class Content(BaseModel):
    """A role-tagged, ordered list of parts."""

    role: str = "user"
    parts: list[Part] = Field(default_factory=list)

    def text(self) -> str:
        """Concatenate the text of every text part."""
        return "".join(part.text for part in self.parts if part.text)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class ToolConfirmation(BaseModel):
    """A confirmation request for one tool call, or the user's answer to it.

    Parameters
    ----------
    hint:
        Human-readable explanation of what is being confirmed.
    confirmed:
        The user's decision.  False while the request is still pending.
    payload:
        Optional structured data supplied with the decision.
    """

    hint: str = ""
    confirmed: bool = False
    payload: Any = None


class EventCompaction(BaseModel):
    """A summary standing in for the events in ``[start_timestamp, end_timestamp]``."""

    start_timestamp: float
    end_timestamp: float
    compacted_content: Content = Field(default_factory=lambda: Content(role="model"))

    def covers(self, timestamp: float) -> bool:
        return self.start_timestamp <= timestamp <= self.end_timestamp


class EventActions(BaseModel):
    """Side effects attached to an event.

    Parameters
    ----------
    state_delta:
        Partial state mutation; a ``None`` value deletes the key.
    artifact_delta:
        Filename to the artifact version this event produced.
    transfer_to_agent:
        Name of an agent control is handed to.
    escalate:
        Whether the agent escalates to its parent.
    skip_summarization:
        When True the model is not asked to summarize a function response.
    requested_auth_configs:
        Function-call id to the auth config a tool is waiting for.
    requested_tool_confirmations:
        Function-call id to the confirmation a tool is waiting for.
    rewind_before_invocation_id:
        Set only on rewind-marker events.
    compaction:
        Set only on compaction events.
    """

    state_delta: dict[str, Any] = Field(default_factory=dict)
    artifact_delta: dict[str, int] = Field(default_factory=dict)
    transfer_to_agent: str | None = None
    escalate: bool | None = None
    skip_summarization: bool | None = None
    requested_auth_configs: dict[str, dict[str, Any]] = Field(default_factory=dict)
    requested_tool_confirmations: dict[str, ToolConfirmation] = Field(default_factory=dict)
    rewind_before_invocation_id: str | None = None
    compaction: EventCompaction | None = None


def merge_event_actions(sources: Iterable[EventActions | None]) -> EventActions:
    """Merge several ``EventActions`` into one.

    Mapping fields are merged key by key in source order, so a later source
    wins on a shared key.  Scalar fields take the last value that is set.
    """
    merged = EventActions()
    for source in sources:
        if source is None:
            continue
        merged.state_delta.update(source.state_delta)
        merged.artifact_delta.update(source.artifact_delta)
        merged.requested_auth_configs.update(source.requested_auth_configs)
        merged.requested_tool_confirmations.update(source.requested_tool_confirmations)
        if source.skip_summarization is not None:
            merged.skip_summarization = source.skip_summarization
        if source.transfer_to_agent is not None:
            merged.transfer_to_agent = source.transfer_to_agent
        if source.escalate is not None:
            merged.escalate = source.escalate
    return merged


# ---------------------------------------------------------------------------
# Event
# ---------------------------------------------------------------------------


class Event(BaseModel):
    """An immutable record of something that happened in a session.

    Parameters
    ----------
    id:
        Unique event identifier.
    invocation_id:
        Groups the events produced by one agent-turn request.
    author:
        ``"user"`` or the name of the agent that produced the event.
    timestamp:
        Seconds since the epoch.
    branch:
        Dotted sub-conversation path, e.g. ``"root.researcher"``.
    content:
        The message payload, if any.
    actions:
        Side effects of this event.
    partial:
        True for an incomplete streaming chunk.
    turn_complete:
        True when the streaming turn has finished.
    long_running_tool_ids:
        Ids of function calls whose results arrive asynchronously.
    custom_metadata:
        Free-form annotations.
    """

    model_config = {"frozen": True}

    id: str = Field(default_factory=new_event_id)
    invocation_id: str = ""
    author: str
    timestamp: float = Field(default_factory=time.time)
    branch: str | None = None
    content: Content | None = None
    actions: EventActions = Field(default_factory=EventActions)
    partial: bool | None = None
    turn_complete: bool | None = None
    long_running_tool_ids: list[str] = Field(default_factory=list)
    custom_metadata: dict[str, Any] = Field(default_factory=dict)

    def get_function_calls(self) -> list[FunctionCall]:
        """Return the function calls in this event's content, in order."""
        if self.content is None:
            return []
        return [part.function_call for part in self.content.parts if part.function_call]

    def get_function_responses(self) -> list[FunctionResponse]:
        """Return the function responses in this event's content, in order."""
        if self.content is None:
            return []
        return [part.function_response for part in self.content.parts if part.function_response]

    @property
    def is_compaction(self) -> bool:
        return self.actions.compaction is not None

    @property
    def is_rewind(self) -> bool:
        return bool(self.actions.rewind_before_invocation_id)


def populate_client_function_call_ids(event: Event) -> None:
    """Assign a client-side id to every function call in ``event`` lacking one."""
    for function_call in event.get_function_calls():
        if not function_call.id:
            function_call.id = generate_client_function_call_id()
