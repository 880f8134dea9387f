#!/usr/bin/env python3
"""Example: Quickstart — agent-session-core

Minimal working example: create a session, record a conversation with a
parallel tool call, and render the context a model would see.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install agent-session-core
"""
from __future__ import annotations

import asyncio

import agent_session_core
from agent_session_core import (
    Content,
    Event,
    FunctionTool,
    Part,
    SessionRuntime,
    ToolContext,
)


async def lookup_invoice(invoice_id: str) -> dict:
    """Look up an invoice by id."""
    await asyncio.sleep(0.1)
    return {"invoice_id": invoice_id, "amount": 120.0}


def remember_customer(name: str, tool_context: ToolContext) -> dict:
    """Remember the customer's name for later turns."""
    tool_context.state["customer"] = name
    return {"remembered": name}


async def main() -> None:
    print(f"agent-session-core version: {agent_session_core.__version__}")

    # Step 1: Create a session with some seed state
    runtime = SessionRuntime(app_name="support-bot")
    session = runtime.create_session("alice", state={"app:region": "eu", "topic": "billing"})
    print(f"Session '{session.id}' state: {session.state}")

    # Step 2: The user speaks, the model answers with two parallel calls
    runtime.append_user_message(
        session, "Hi, I'm Dana. What does invoice 42 cost?", invocation_id="inv-1"
    )
    call_event = Event(
        invocation_id="inv-1",
        author="agent",
        content=Content(
            role="model",
            parts=[
                Part.from_function_call("lookup_invoice", {"invoice_id": "42"}),
                Part.from_function_call("remember_customer", {"name": "Dana"}),
            ],
        ),
    )
    appended = await runtime.run_tools(
        session, call_event, [FunctionTool(lookup_invoice), FunctionTool(remember_customer)]
    )
    for response in appended[0].get_function_responses():
        print(f"  {response.name} -> {response.response}")
    print(f"State after tools: {session.state}")

    # Step 3: Render the model context
    print("\nModel context:")
    print(runtime.render_context(session))


if __name__ == "__main__":
    asyncio.run(main())
