"""Function-call orchestration.

Turns the function calls of one model turn into tool executions and a
single merged function-response event.

Per call, in order:

1. plugin ``before_tool_callback``, then the agent's before-callbacks;
   a plugin result replaces the tool run whenever it is not None (an
   empty dict included), while an agent callback result only does so
   when it is non-empty;
2. the confirmation gate (pending / approved / rejected); a confirmation
   predicate that raises is handled like a failing tool;
3. the tool itself, with errors routed to plugin ``on_tool_error_callback``,
   then the agent's on-error callbacks, then a default error result;
4. plugin ``after_tool_callback``, then the agent's after-callbacks, with
   the same None / non-empty distinction as step 1.  The on-error chain
   in step 3 follows it too.

Calls without an id get a client id (``afc-`` prefix) written into the
call event itself, so the event the caller stores and the responses agree.
All calls of a turn run concurrently.  Each call writes state into its own
``ToolContext`` buffer; buffers are merged in input order when the
response event is built.

Classes
-------
- FunctionCallOrchestrator   — tool table plus callback chains
- ToolConfirmationResume     — confirmations collected from user responses
- ToolNotFoundError          — a call names an unregistered tool
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from agent_session_core.session.event import (
    Content,
    Event,
    FunctionCall,
    Part,
    ToolConfirmation,
    generate_client_function_call_id,
    merge_event_actions,
    new_event_id,
    populate_client_function_call_ids,
)
from agent_session_core.tools.base import BaseTool
from agent_session_core.tools.context import ConfirmationStatus, InvocationContext, ToolContext

logger = logging.getLogger(__name__)

REQUEST_CREDENTIAL_FUNCTION_CALL_NAME = "adk_request_credential"
REQUEST_CONFIRMATION_FUNCTION_CALL_NAME = "adk_request_confirmation"

CONFIRMATION_REQUIRED_ERROR = "This tool call requires confirmation, please approve or reject."
CONFIRMATION_REJECTED_ERROR = "This tool call is rejected."

FUNCTION_RESPONSE_ROLE = "user"

CallbackResult = Union[dict[str, Any], None, Awaitable[Union[dict[str, Any], None]]]
BeforeToolCallback = Callable[[BaseTool, dict[str, Any], ToolContext], CallbackResult]
AfterToolCallback = Callable[[BaseTool, dict[str, Any], ToolContext, dict[str, Any]], CallbackResult]
OnToolErrorCallback = Callable[[BaseTool, dict[str, Any], ToolContext, Exception], CallbackResult]


class ToolNotFoundError(ValueError):
    """Raised when a function call names a tool that is not registered."""

    def __init__(self, tool_name: str, available: Iterable[str]) -> None:
        self.tool_name = tool_name
        names = ", ".join(sorted(available))
        super().__init__(f"Function {tool_name!r} is not found in the tools: [{names}]")


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def tool_error_message(tool_name: str, error: BaseException) -> str:
    return f"Error in tool '{tool_name}': {error}"


# ---------------------------------------------------------------------------
# Event builders
# ---------------------------------------------------------------------------


def merge_parallel_function_response_events(events: Sequence[Event]) -> Event:
    """Merge single-call response events into one event.

    Parts keep the order of ``events``; actions are merged with
    ``merge_event_actions``.  Identity fields come from the first event.
    """
    if not events:
        raise ValueError("No function response events to merge.")
    if len(events) == 1:
        return events[0]

    base = events[0]
    parts: list[Part] = []
    for event in events:
        if event.content is not None:
            parts.extend(event.content.parts)

    return Event(
        id=new_event_id(),
        invocation_id=base.invocation_id,
        author=base.author,
        branch=base.branch,
        timestamp=base.timestamp,
        content=Content(role=FUNCTION_RESPONSE_ROLE, parts=parts),
        actions=merge_event_actions(event.actions for event in events),
    )


def generate_auth_event(
    invocation_context: InvocationContext, function_response_event: Event
) -> Event | None:
    """Build the event asking the host to obtain credentials, if any were requested."""
    requested = function_response_event.actions.requested_auth_configs
    if not requested:
        return None

    parts: list[Part] = []
    long_running_ids: list[str] = []
    for function_call_id, auth_config in requested.items():
        call_id = generate_client_function_call_id()
        parts.append(
            Part.from_function_call(
                REQUEST_CREDENTIAL_FUNCTION_CALL_NAME,
                {"function_call_id": function_call_id, "auth_config": auth_config},
                id=call_id,
            )
        )
        long_running_ids.append(call_id)

    return Event(
        invocation_id=invocation_context.invocation_id,
        author=invocation_context.agent_name,
        branch=invocation_context.branch,
        content=Content(role="model", parts=parts),
        long_running_tool_ids=long_running_ids,
    )


def generate_request_confirmation_event(
    invocation_context: InvocationContext,
    function_call_event: Event,
    function_response_event: Event,
) -> Event | None:
    """Build the event asking the user to confirm pending tool calls.

    A confirmation whose originating call is not in ``function_call_event``
    is skipped.  Returns None when nothing is left to ask.
    """
    requested = function_response_event.actions.requested_tool_confirmations
    if not requested:
        return None

    calls_by_id = {call.id: call for call in function_call_event.get_function_calls() if call.id}
    parts: list[Part] = []
    long_running_ids: list[str] = []
    for function_call_id, confirmation in requested.items():
        original = calls_by_id.get(function_call_id)
        if original is None:
            logger.debug(
                "Skipping confirmation for %r: originating function call not found",
                function_call_id,
            )
            continue
        call_id = generate_client_function_call_id()
        parts.append(
            Part.from_function_call(
                REQUEST_CONFIRMATION_FUNCTION_CALL_NAME,
                {
                    "original_function_call": original.model_dump(mode="json"),
                    "tool_confirmation": confirmation.model_dump(mode="json"),
                },
                id=call_id,
            )
        )
        long_running_ids.append(call_id)

    if not parts:
        return None
    return Event(
        invocation_id=invocation_context.invocation_id,
        author=invocation_context.agent_name,
        branch=invocation_context.branch,
        content=Content(role="model", parts=parts),
        long_running_tool_ids=long_running_ids,
    )


# ---------------------------------------------------------------------------
# Confirmation resumption
# ---------------------------------------------------------------------------


@dataclass
class ToolConfirmationResume:
    """Original function calls to re-run, with the user's decision for each.

    Both mappings are keyed by the original function-call id.
    """

    confirmations: dict[str, ToolConfirmation] = field(default_factory=dict)
    function_calls: dict[str, FunctionCall] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.confirmations)


def _parse_confirmation_response(response: Mapping[str, Any]) -> ToolConfirmation | None:
    if not response:
        return None
    # A host may wrap the decision as {"response": "<json>"}.
    if set(response) == {"response"} and isinstance(response["response"], str):
        return ToolConfirmation.model_validate_json(response["response"])
    return ToolConfirmation(
        hint=response.get("hint", ""),
        confirmed=bool(response.get("confirmed", False)),
        payload=response.get("payload"),
    )


def collect_tool_confirmations(events: Sequence[Event]) -> ToolConfirmationResume:
    """Map the user's latest confirmation responses back to the original calls.

    Finds the newest user event answering ``adk_request_confirmation``
    calls, then the earlier event carrying those requests, and returns the
    original calls keyed by their ids.
    """
    responses: dict[str, ToolConfirmation] = {}
    response_index = -1
    for index in range(len(events) - 1, -1, -1):
        event = events[index]
        if event.author != "user":
            continue
        found = False
        for function_response in event.get_function_responses():
            if function_response.name != REQUEST_CONFIRMATION_FUNCTION_CALL_NAME:
                continue
            found = True
            confirmation = _parse_confirmation_response(function_response.response)
            if function_response.id and confirmation is not None:
                responses[function_response.id] = confirmation
        if found:
            response_index = index
            break

    resume = ToolConfirmationResume()
    if not responses:
        return resume

    for index in range(response_index - 1, -1, -1):
        for function_call in events[index].get_function_calls():
            if function_call.id not in responses:
                continue
            original_data = function_call.args.get("original_function_call")
            if not original_data:
                continue
            original = FunctionCall.model_validate(original_data)
            if original.id:
                resume.confirmations[original.id] = responses[function_call.id]
                resume.function_calls[original.id] = original
        if resume:
            break
    return resume


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class FunctionCallOrchestrator:
    """Runs the function calls of a model turn against a tool table.

    Parameters
    ----------
    tools:
        The tools that may be called, as a sequence or a name mapping.
    before_tool_callbacks:
        Agent-level callbacks ``(tool, args, tool_context)`` run after the
        plugin chain; the first non-empty result is used instead of running
        the tool.
    after_tool_callbacks:
        Agent-level callbacks ``(tool, args, tool_context, result)``; the
        first non-empty result replaces the response.
    on_tool_error_callbacks:
        Agent-level callbacks ``(tool, args, tool_context, error)`` consulted
        when the plugin chain does not recover from a tool error.

    Callbacks may be plain functions or coroutine functions.
    """

    def __init__(
        self,
        tools: Iterable[BaseTool] | Mapping[str, BaseTool],
        *,
        before_tool_callbacks: Sequence[BeforeToolCallback] = (),
        after_tool_callbacks: Sequence[AfterToolCallback] = (),
        on_tool_error_callbacks: Sequence[OnToolErrorCallback] = (),
    ) -> None:
        if isinstance(tools, Mapping):
            self._tools: dict[str, BaseTool] = dict(tools)
        else:
            self._tools = {tool.name: tool for tool in tools}
        self._before_callbacks = list(before_tool_callbacks)
        self._after_callbacks = list(after_tool_callbacks)
        self._on_error_callbacks = list(on_tool_error_callbacks)

    @property
    def tools(self) -> dict[str, BaseTool]:
        return dict(self._tools)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def handle_function_calls(
        self,
        invocation_context: InvocationContext,
        function_call_event: Event,
        *,
        filters: Iterable[str] | None = None,
        tool_confirmations: Mapping[str, ToolConfirmation] | None = None,
    ) -> Event | None:
        """Execute the function calls in ``function_call_event``.

        Parameters
        ----------
        invocation_context:
            The running invocation.
        function_call_event:
            A model event containing function-call parts.  Calls lacking an
            id are given one in place; append the event only after this, or
            assign ids first with ``populate_client_function_call_ids``.
        filters:
            When given, only calls whose id is in ``filters`` are run.
        tool_confirmations:
            User decisions for earlier confirmation requests, keyed by call id.

        Returns
        -------
        Event | None
            One event with a response part per executed call in input order,
            or None when no call was executed.

        Raises
        ------
        ToolNotFoundError
            If any selected call names an unknown tool.  Raised before any
            call runs.
        """
        populate_client_function_call_ids(function_call_event)
        calls = function_call_event.get_function_calls()
        if filters is not None:
            allowed = set(filters)
            calls = [call for call in calls if call.id in allowed]
        if not calls:
            return None

        for call in calls:
            if call.name not in self._tools:
                raise ToolNotFoundError(call.name, self._tools)

        confirmations = dict(tool_confirmations or {})
        logger.debug(
            "FunctionCallOrchestrator: dispatching %d call(s) for invocation %r",
            len(calls),
            invocation_context.invocation_id,
        )
        events = await asyncio.gather(
            *(
                self._execute_call(invocation_context, call, confirmations.get(call.id or ""))
                for call in calls
            )
        )
        _warn_on_conflicting_writes(calls, events)
        return merge_parallel_function_response_events(events)

    async def resume_confirmed_calls(
        self, invocation_context: InvocationContext, events: Sequence[Event] | None = None
    ) -> Event | None:
        """Re-run calls the user has just confirmed or rejected.

        ``events`` defaults to the session's events.
        """
        history = list(events if events is not None else invocation_context.session.events)
        resume = collect_tool_confirmations(history)
        if not resume:
            return None
        call_event = Event(
            invocation_id=invocation_context.invocation_id,
            author=invocation_context.agent_name,
            branch=invocation_context.branch,
            content=Content(
                role="model",
                parts=[Part(function_call=call) for call in resume.function_calls.values()],
            ),
        )
        return await self.handle_function_calls(
            invocation_context, call_event, tool_confirmations=resume.confirmations
        )

    def follow_up_events(
        self,
        invocation_context: InvocationContext,
        function_call_event: Event,
        function_response_event: Event,
    ) -> list[Event]:
        """Return the credential and confirmation request events to emit, if any."""
        follow_ups: list[Event] = []
        auth_event = generate_auth_event(invocation_context, function_response_event)
        if auth_event is not None:
            follow_ups.append(auth_event)
        confirmation_event = generate_request_confirmation_event(
            invocation_context, function_call_event, function_response_event
        )
        if confirmation_event is not None:
            follow_ups.append(confirmation_event)
        return follow_ups

    # ------------------------------------------------------------------
    # One call
    # ------------------------------------------------------------------

    async def _execute_call(
        self,
        invocation_context: InvocationContext,
        call: FunctionCall,
        tool_confirmation: ToolConfirmation | None,
    ) -> Event:
        tool = self._tools[call.name]
        tool_context = ToolContext(
            invocation_context,
            function_call_id=call.id,
            tool_confirmation=tool_confirmation,
        )
        args = dict(call.args)
        plugins = invocation_context.plugin_manager

        result = await plugins.run_before_tool_callback(
            tool=tool, tool_args=args, tool_context=tool_context
        )
        if result is None:
            for callback in self._before_callbacks:
                result = await _resolve(callback(tool, args, tool_context))
                if result:
                    break
                result = None

        if result is None:
            try:
                status = await self._confirmation_status(tool, args, tool_context)
            except Exception as exc:
                logger.warning(
                    "FunctionCallOrchestrator: confirmation check for %r failed (call %r): %s",
                    tool.name,
                    call.id,
                    exc,
                )
                result = await self._recover_from_error(tool, args, tool_context, exc)
            else:
                result = await self._gate(tool, args, tool_context, status)

        response = _as_response(result)

        altered = await plugins.run_after_tool_callback(
            tool=tool, tool_args=args, tool_context=tool_context, result=response
        )
        if altered is None:
            for callback in self._after_callbacks:
                altered = await _resolve(callback(tool, args, tool_context, response))
                if altered:
                    break
                altered = None
        if altered is not None:
            response = _as_response(altered)

        return Event(
            invocation_id=invocation_context.invocation_id,
            author=invocation_context.agent_name,
            branch=invocation_context.branch,
            content=Content(
                role=FUNCTION_RESPONSE_ROLE,
                parts=[Part.from_function_response(tool.name, response, id=call.id)],
            ),
            actions=tool_context.collect_actions(),
        )

    async def _confirmation_status(
        self, tool: BaseTool, args: dict[str, Any], tool_context: ToolContext
    ) -> ConfirmationStatus:
        if not await tool.needs_confirmation(args):
            return ConfirmationStatus.NOT_REQUIRED
        if tool_context.tool_confirmation is None:
            return ConfirmationStatus.PENDING
        if tool_context.tool_confirmation.confirmed:
            return ConfirmationStatus.APPROVED
        return ConfirmationStatus.REJECTED

    async def _gate(
        self,
        tool: BaseTool,
        args: dict[str, Any],
        tool_context: ToolContext,
        status: ConfirmationStatus,
    ) -> Any:
        if status is ConfirmationStatus.PENDING:
            tool_context.request_confirmation(
                hint=(
                    f"Please approve or reject the tool call {tool.name}() by "
                    "responding with a FunctionResponse with an expected "
                    "ToolConfirmation payload."
                )
            )
            tool_context.actions.skip_summarization = True
            return {"error": CONFIRMATION_REQUIRED_ERROR}
        if status is ConfirmationStatus.REJECTED:
            return {"error": CONFIRMATION_REJECTED_ERROR}
        return await self._run_tool(tool, args, tool_context)

    async def _run_tool(
        self, tool: BaseTool, args: dict[str, Any], tool_context: ToolContext
    ) -> Any:
        try:
            result = await tool.run(args=args, tool_context=tool_context)
            if hasattr(result, "__aiter__"):
                last = None
                async for item in result:
                    last = item
                result = last
            return result
        except Exception as exc:
            logger.warning(
                "FunctionCallOrchestrator: tool %r failed (call %r): %s",
                tool.name,
                tool_context.function_call_id,
                exc,
            )
            return await self._recover_from_error(tool, args, tool_context, exc)

    async def _recover_from_error(
        self,
        tool: BaseTool,
        args: dict[str, Any],
        tool_context: ToolContext,
        error: Exception,
    ) -> Any:
        """Plugin on-error, then agent on-error callbacks, then the default error result."""
        plugins = tool_context.invocation_context.plugin_manager
        recovered = await plugins.run_on_tool_error_callback(
            tool=tool, tool_args=args, tool_context=tool_context, error=error
        )
        if recovered is None:
            for callback in self._on_error_callbacks:
                recovered = await _resolve(callback(tool, args, tool_context, error))
                if recovered:
                    break
                recovered = None
        if recovered is not None:
            return recovered
        return {"error": tool_error_message(tool.name, error)}


def _as_response(result: Any) -> dict[str, Any]:
    if isinstance(result, dict):
        return result
    return {"result": result}


def _warn_on_conflicting_writes(calls: Sequence[FunctionCall], events: Sequence[Event]) -> None:
    writers: dict[str, list[str]] = {}
    values: dict[str, list[Any]] = {}
    for call, event in zip(calls, events):
        for key, value in event.actions.state_delta.items():
            writers.setdefault(key, []).append(call.name)
            values.setdefault(key, []).append(value)
    for key, names in writers.items():
        if len(names) > 1 and any(v != values[key][0] for v in values[key][1:]):
            logger.warning(
                "FunctionCallOrchestrator: state key %r written by %d sibling calls (%s); "
                "keeping the value from the last call in input order",
                key,
                len(names),
                ", ".join(names),
            )


__all__ = [
    "CONFIRMATION_REJECTED_ERROR",
    "CONFIRMATION_REQUIRED_ERROR",
    "REQUEST_CONFIRMATION_FUNCTION_CALL_NAME",
    "REQUEST_CREDENTIAL_FUNCTION_CALL_NAME",
    "FunctionCallOrchestrator",
    "ToolConfirmationResume",
    "ToolNotFoundError",
    "collect_tool_confirmations",
    "generate_auth_event",
    "generate_request_confirmation_event",
    "merge_parallel_function_response_events",
    "tool_error_message",
]
