"""CLI entry point for agent-session-core.

Invoked as::

    agent-session-core [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m agent_session_core.cli.main

Commands
--------
- version   — Show version information
- plugins   — List plugins advertised through entry points
- sessions  — Inspect stored sessions

Sessions sub-commands
---------------------
- sessions list     — List the sessions of an app
- sessions show     — Show a session's events (effective or --raw)
- sessions state    — Show a session's derived state
- sessions context  — Render the model context of a session
- sessions compact  — Summarize uncompacted events with the extractive summarizer
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from agent_session_core.session.event import Event
from agent_session_core.session.event_log import EventLog
from agent_session_core.session.model import Session
from agent_session_core.settings import CoreSettings, load_settings
from agent_session_core.storage.base import StorageBackend

console = Console()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Storage backend factory
# ---------------------------------------------------------------------------


def _make_backend(storage: str, storage_dir: str | None) -> StorageBackend:
    """Instantiate the requested storage backend.

    Parameters
    ----------
    storage:
        Backend name: ``"memory"`` or ``"filesystem"``.
    storage_dir:
        Directory for the filesystem backend.
    """
    from agent_session_core.storage.filesystem import FilesystemBackend
    from agent_session_core.storage.memory import InMemoryBackend

    if storage == "memory":
        return InMemoryBackend()
    if storage == "filesystem":
        return FilesystemBackend(storage_dir=Path(storage_dir) if storage_dir else None)
    console.print(f"[red]Unknown storage backend: {storage!r}[/red]")
    sys.exit(1)


def _format_timestamp(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _describe(event: Event) -> str:
    if event.is_rewind:
        return f"rewind before {event.actions.rewind_before_invocation_id}"
    if event.actions.compaction is not None:
        compaction = event.actions.compaction
        return (
            f"compaction {_format_timestamp(compaction.start_timestamp)}"
            f"..{_format_timestamp(compaction.end_timestamp)}"
        )
    if event.content is None:
        return "(no content)"
    pieces: list[str] = []
    for part in event.content.parts:
        if part.text:
            pieces.append(part.text)
        elif part.function_call is not None:
            pieces.append(f"call {part.function_call.name}")
        elif part.function_response is not None:
            pieces.append(f"response {part.function_response.name}")
    return " | ".join(pieces)[:120]


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="agent-session-core")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="YAML settings file (default: ./agent-session-core.yaml).",
)
@click.option("--log-level", default=None, help="Override the configured log level.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None) -> None:
    """Event-sourced session state, rewind and compaction."""
    ctx.ensure_object(dict)
    try:
        settings = load_settings(config_path)
        if log_level:
            settings = settings.model_copy(update={"log_level": log_level.upper()})
    except ValueError as exc:
        console.print(f"[red]Invalid settings:[/red] {exc}")
        sys.exit(1)
    ctx.obj.setdefault("settings", settings)
    _configure_logging(settings.log_level)


# ---------------------------------------------------------------------------
# version / plugins
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show version information."""
    from agent_session_core import __version__

    console.print(f"[bold]agent-session-core[/bold] v{__version__}")


@cli.command(name="plugins")
def plugins_command() -> None:
    """List plugins advertised under the agent_session_core.plugins entry point."""
    from agent_session_core.plugins.manager import ENTRYPOINT_GROUP, PluginManager

    manager = PluginManager()
    manager.load_entrypoints(ENTRYPOINT_GROUP)
    console.print("[bold]Registered plugins:[/bold]")
    if not len(manager):
        console.print("  (No plugins registered. Install a plugin package to see entries here.)")
        return
    for name in manager.list_plugins():
        console.print(f"  {name}  [dim]{type(manager.get(name)).__name__}[/dim]")


# ---------------------------------------------------------------------------
# sessions command group
# ---------------------------------------------------------------------------


@cli.group(name="sessions")
@click.option(
    "--storage",
    default=None,
    type=click.Choice(["memory", "filesystem"], case_sensitive=False),
    help="Storage backend to use (default from settings).",
)
@click.option("--storage-dir", default=None, help="Directory for the filesystem backend.")
@click.option("--app-name", default=None, help="Application name (default from settings).")
@click.pass_context
def sessions_group(
    ctx: click.Context,
    storage: str | None,
    storage_dir: str | None,
    app_name: str | None,
) -> None:
    """Session inspection commands."""
    from agent_session_core.session.manager import SessionService

    settings: CoreSettings = ctx.obj["settings"]
    if "backend" not in ctx.obj:
        ctx.obj["backend"] = _make_backend(
            (storage or settings.storage).lower(), storage_dir or settings.storage_dir
        )
    ctx.obj["service"] = SessionService(ctx.obj["backend"])
    ctx.obj["app_name"] = app_name or settings.app_name


def _load_session(ctx: click.Context, user_id: str, session_id: str) -> Session:
    from agent_session_core.session.manager import SessionNotFoundError

    try:
        return ctx.obj["service"].get_session(ctx.obj["app_name"], user_id, session_id)
    except SessionNotFoundError as exc:
        console.print(f"[red]Session not found:[/red] {exc}")
        sys.exit(1)


_user_option = click.option("--user-id", required=True, help="Owner of the session.")


@sessions_group.command(name="list")
@click.option("--user-id", default=None, help="Only list this user's sessions.")
@click.pass_context
def sessions_list(ctx: click.Context, user_id: str | None) -> None:
    """List the sessions of the configured app."""
    service = ctx.obj["service"]
    sessions = service.list_sessions(ctx.obj["app_name"], user_id)
    if not sessions:
        console.print("[yellow]No sessions found.[/yellow]")
        return

    table = Table(title=f"Sessions of {ctx.obj['app_name']}")
    table.add_column("Session ID", style="cyan")
    table.add_column("User", style="green")
    table.add_column("Events", justify="right")
    table.add_column("Updated")
    for session in sessions:
        full = service.get_session(session.app_name, session.user_id, session.id)
        table.add_row(
            session.id,
            session.user_id,
            str(len(full.events)),
            _format_timestamp(session.last_update_time) if session.last_update_time else "-",
        )
    console.print(table)


@sessions_group.command(name="show")
@click.argument("session_id")
@_user_option
@click.option("--raw", is_flag=True, help="Show every stored event, rewound ones included.")
@click.option("--json-output", is_flag=True, help="Output the session as JSON.")
@click.pass_context
def sessions_show(
    ctx: click.Context, session_id: str, user_id: str, raw: bool, json_output: bool
) -> None:
    """Show the events of SESSION_ID."""
    session = _load_session(ctx, user_id, session_id)
    log = EventLog(session)
    events = list(log.raw_events() if raw else log.effective_events())

    if json_output:
        payload = session.model_dump(mode="json")
        payload["events"] = [event.model_dump(mode="json") for event in events]
        console.print_json(json.dumps(payload))
        return

    visible_ids = {event.id for event in log.effective_events()}
    title = "all events" if raw else "effective events"
    table = Table(title=f"Session {session.id} ({title})", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Invocation", style="cyan")
    table.add_column("Author", style="green")
    table.add_column("Time")
    table.add_column("Content")
    for index, event in enumerate(events):
        style = None if event.id in visible_ids else "dim strike"
        table.add_row(
            str(index),
            event.invocation_id,
            event.author,
            _format_timestamp(event.timestamp),
            _describe(event),
            style=style,
        )
    console.print(table)
    console.print(f"\n[dim]{len(visible_ids)} of {len(log)} events visible.[/dim]")


@sessions_group.command(name="state")
@click.argument("session_id")
@_user_option
@click.pass_context
def sessions_state(ctx: click.Context, session_id: str, user_id: str) -> None:
    """Show the derived state of SESSION_ID."""
    session = _load_session(ctx, user_id, session_id)
    console.print_json(json.dumps(session.state, sort_keys=True, default=str))


@sessions_group.command(name="context")
@click.argument("session_id")
@_user_option
@click.option("--branch", default=None, help="Render the context seen by this branch.")
@click.option("--max-tokens", default=None, type=int, help="Drop the oldest events beyond this budget.")
@click.pass_context
def sessions_context(
    ctx: click.Context,
    session_id: str,
    user_id: str,
    branch: str | None,
    max_tokens: int | None,
) -> None:
    """Render the model context of SESSION_ID (rewinds and compactions applied)."""
    from agent_session_core.context.assembler import ContextAssembler

    session = _load_session(ctx, user_id, session_id)
    assembler = ContextAssembler(max_tokens=max_tokens)
    events = assembler.assemble(session, branch=branch)
    rendered = assembler.render(events)
    console.print(Panel(rendered or "(empty)", title="Model Context", expand=True))


@sessions_group.command(name="compact")
@click.argument("session_id")
@_user_option
@click.option("--max-tokens", default=256, show_default=True, help="Summary token budget.")
@click.pass_context
def sessions_compact(
    ctx: click.Context, session_id: str, user_id: str, max_tokens: int
) -> None:
    """Summarize the uncompacted events of SESSION_ID with the extractive summarizer."""
    from agent_session_core.compaction.engine import CompactionEngine
    from agent_session_core.compaction.summarizer import ExtractiveEventsSummarizer

    settings: CoreSettings = ctx.obj["settings"]
    session = _load_session(ctx, user_id, session_id)
    engine = CompactionEngine(
        ctx.obj["service"],
        ExtractiveEventsSummarizer(max_tokens=max_tokens),
        settings.compaction_config(),
    )
    event = asyncio.run(engine.compact(session))
    if event is None:
        console.print("[yellow]Nothing to compact.[/yellow]")
        return
    assert event.actions.compaction is not None
    console.print(f"[green]Compaction appended:[/green] {event.id}")
    console.print(Panel(event.actions.compaction.compacted_content.text(), title="Summary"))


if __name__ == "__main__":
    cli()
