"""Test that the quickstart SessionRuntime API works end to end."""
from __future__ import annotations

import pytest

from agent_session_core import (
    REQUEST_CONFIRMATION_FUNCTION_CALL_NAME,
    Content,
    Event,
    FunctionTool,
    Part,
    SessionRuntime,
    ToolContext,
)
from agent_session_core.compaction.config import CompactionConfig


def _call_event(invocation_id: str, name: str, args: dict, call_id: str) -> Event:
    return Event(
        invocation_id=invocation_id,
        author="agent",
        content=Content(role="model", parts=[Part.from_function_call(name, args, id=call_id)]),
    )


def set_color(color: str, tool_context: ToolContext) -> dict:
    """Remember the user's favourite color."""
    tool_context.state["color"] = color
    return {"saved": color}


def test_quickstart_create_and_render() -> None:
    runtime = SessionRuntime(app_name="demo")
    session = runtime.create_session("alice", state={"topic": "billing"})
    runtime.append_user_message(session, "Hello!")
    assert session.state["topic"] == "billing"
    assert runtime.render_context(session) == "user: Hello!"


def test_quickstart_get_session_returns_copy() -> None:
    runtime = SessionRuntime(app_name="demo")
    session = runtime.create_session("alice", session_id="s1")
    runtime.append_user_message(session, "Hello!")
    loaded = runtime.get_session("alice", "s1")
    assert loaded.id == "s1"
    assert len(loaded.events) == 1
    assert loaded is not session


@pytest.mark.asyncio
async def test_quickstart_run_tools_appends_response() -> None:
    runtime = SessionRuntime(app_name="demo")
    session = runtime.create_session("alice")
    runtime.append_user_message(session, "My favourite color is teal.", invocation_id="inv1")
    call_event = _call_event("inv1", "set_color", {"color": "teal"}, "call-1")

    appended = await runtime.run_tools(session, call_event, [FunctionTool(set_color)])

    assert len(appended) == 1
    responses = appended[0].get_function_responses()
    assert responses[0].response == {"saved": "teal"}
    assert session.state["color"] == "teal"
    assert runtime.get_session("alice", session.id).state["color"] == "teal"


@pytest.mark.asyncio
async def test_quickstart_run_tools_emits_confirmation_request() -> None:
    runtime = SessionRuntime(app_name="demo")
    session = runtime.create_session("alice")
    call_event = _call_event("inv1", "set_color", {"color": "red"}, "call-1")

    appended = await runtime.run_tools(
        session, call_event, [FunctionTool(set_color, require_confirmation=True)]
    )

    assert len(appended) == 2
    follow_up_calls = appended[1].get_function_calls()
    assert follow_up_calls[0].name == REQUEST_CONFIRMATION_FUNCTION_CALL_NAME
    assert "color" not in session.state


@pytest.mark.asyncio
async def test_quickstart_confirmation_request_for_call_without_id() -> None:
    runtime = SessionRuntime(app_name="demo")
    session = runtime.create_session("alice")
    call_event = Event(
        invocation_id="inv1",
        author="agent",
        content=Content(role="model", parts=[Part.from_function_call("set_color", {"color": "red"})]),
    )

    appended = await runtime.run_tools(
        session, call_event, [FunctionTool(set_color, require_confirmation=True)]
    )

    assert len(appended) == 2
    stored_call = runtime.get_session("alice", session.id).events[0].get_function_calls()[0]
    assert stored_call.id is not None
    assert stored_call.id.startswith("afc-")
    assert appended[0].get_function_responses()[0].id == stored_call.id
    request = appended[1].get_function_calls()[0]
    assert request.name == REQUEST_CONFIRMATION_FUNCTION_CALL_NAME
    assert request.args["original_function_call"]["id"] == stored_call.id


@pytest.mark.asyncio
async def test_quickstart_rewind_refreshes_session() -> None:
    runtime = SessionRuntime(app_name="demo")
    session = runtime.create_session("alice")
    runtime.append_user_message(session, "first", invocation_id="inv1")
    call_event = _call_event("inv2", "set_color", {"color": "blue"}, "call-1")
    runtime.append_user_message(session, "second", invocation_id="inv2")
    await runtime.run_tools(session, call_event, [FunctionTool(set_color)])
    assert session.state["color"] == "blue"

    marker = await runtime.rewind_before(session, "inv2")

    assert marker.is_rewind
    assert "color" not in session.state
    assert session.events[-1].id == marker.id
    assert runtime.render_context(session) == "user: first"


@pytest.mark.asyncio
async def test_quickstart_maybe_compact() -> None:
    runtime = SessionRuntime(app_name="demo", compaction_config=CompactionConfig(2, 0))
    session = runtime.create_session("alice")
    runtime.append_user_message(session, "Deploy the billing service on Friday.")
    assert await runtime.maybe_compact(session) is None

    runtime.append_user_message(session, "Notify the finance team before the deploy.")
    event = await runtime.maybe_compact(session)

    assert event is not None
    assert event.is_compaction
    context = runtime.context(session)
    assert len(context) == 1
    assert context[0].author == "system"
