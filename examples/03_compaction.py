#!/usr/bin/env python3
"""Example: Sliding-window compaction

Runs a long conversation through the sliding-window trigger and shows
how summaries replace the events they cover in the model context.

Usage:
    python examples/03_compaction.py

Requirements:
    pip install agent-session-core
"""
from __future__ import annotations

import asyncio

from agent_session_core import CompactionConfig, SessionRuntime

_TURNS = [
    "We need to migrate the billing database from MySQL to PostgreSQL.",
    "The invoices table must stay read-only during the migration.",
    "Schema export runs first, then we validate row counts.",
    "Finance wants the cut-over on a Friday evening.",
    "Rollback means re-pointing the service at the MySQL replica.",
    "Please draft the announcement for the finance team.",
]


async def main() -> None:
    runtime = SessionRuntime(
        app_name="planner",
        compaction_config=CompactionConfig(compaction_interval=2, overlap_size=1),
    )
    session = runtime.create_session("alice")

    for index, text in enumerate(_TURNS, start=1):
        runtime.append_user_message(session, text, invocation_id=f"inv-{index}")
        event = await runtime.maybe_compact(session)
        if event is not None:
            print(f"after turn {index}: compaction appended ({event.id})")

    print(f"\n{len(session.events)} stored events, {len(runtime.context(session))} in context")
    print("\nModel context:")
    print(runtime.render_context(session))


if __name__ == "__main__":
    asyncio.run(main())
