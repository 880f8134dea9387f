#!/usr/bin/env python3
"""Example: Rewinding a session

Records two invocations that change state and an artifact, then rewinds
to before the second one.  The raw log keeps every event; the effective
view and the state go back in time.

Usage:
    python examples/02_rewind.py

Requirements:
    pip install agent-session-core
"""
from __future__ import annotations

import asyncio

from agent_session_core import (
    Artifact,
    Content,
    Event,
    EventLog,
    FunctionTool,
    Part,
    Session,
    SessionRuntime,
    ToolContext,
)


async def write_draft(text: str, tool_context: ToolContext) -> dict:
    """Save a draft document and remember its status."""
    version = await tool_context.save_artifact("draft.txt", Artifact(data=text.encode()))
    tool_context.state["draft_status"] = "written"
    return {"version": version}


async def run_turn(
    runtime: SessionRuntime, session: Session, invocation_id: str, text: str
) -> None:
    runtime.append_user_message(session, f"Write: {text}", invocation_id=invocation_id)
    call_event = Event(
        invocation_id=invocation_id,
        author="agent",
        content=Content(role="model", parts=[Part.from_function_call("write_draft", {"text": text})]),
    )
    await runtime.run_tools(session, call_event, [FunctionTool(write_draft)])


async def main() -> None:
    runtime = SessionRuntime(app_name="editor")
    session = runtime.create_session("alice")

    await run_turn(runtime, session, "inv-1", "first draft")
    await run_turn(runtime, session, "inv-2", "second draft, with mistakes")
    print(f"Before rewind: state={session.state}")

    await runtime.rewind_before(session, "inv-2")

    artifact = await runtime.artifacts.load_artifact(
        app_name=session.app_name, user_id=session.user_id, session_id=session.id, filename="draft.txt"
    )
    log = EventLog(session)
    print(f"After rewind:  state={session.state}")
    print(f"  draft.txt now reads: {artifact.data.decode() if artifact else None!r}")
    print(f"  {len(list(log.effective_events()))} of {len(log)} events visible")
    print("\nModel context:")
    print(runtime.render_context(session))


if __name__ == "__main__":
    asyncio.run(main())
