"""Typer CLI entrypoint for waymark state tools."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from waymark.cli.rendering import EnvelopeRenderer
from waymark.config import ConfigError
from waymark.tools import StateToolbox, ToolEnvelope, ToolStatus

app = typer.Typer(
    name="waymark",
    help="Waymark: durable workflow state for agent-driven development",
    add_completion=False,
)
_CONSOLE = Console()
_LOGGING_CONFIGURED = False

RootOption = Annotated[
    Path | None,
    typer.Option(
        "--root",
        file_okay=False,
        dir_okay=True,
        help="Project root holding .waymark (defaults to the current directory).",
    ),
]
JsonOption = Annotated[
    bool, typer.Option("--json", help="Print the raw tool envelope as JSON.")
]
ReasonOption = Annotated[
    str | None, typer.Option("--reason", help="Reason recorded in history.")
]
CorrelationOption = Annotated[
    str | None,
    typer.Option("--correlation-id", help="Caller token recorded in history."),
]


def configure_logging() -> None:
    """Configure Rich-backed logging once for CLI commands."""
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if _LOGGING_CONFIGURED:
        return
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
    )
    _LOGGING_CONFIGURED = True


def _invoke(
    tool: str, arguments: dict[str, Any], *, root: Path | None, as_json: bool
) -> None:
    """Run one tool call, render the envelope, and set the exit code.

    Args:
        tool: Tool name.
        arguments: Tool arguments.
        root: Optional project root override.
        as_json: Whether to print raw JSON instead of Rich panels.
    """
    configure_logging()
    project_root = root or Path.cwd()
    try:
        toolbox = StateToolbox(project_root=project_root)
    except ConfigError as exc:
        typer.echo(f"✗ {exc}", err=True)
        raise typer.Exit(code=1) from exc
    envelope = toolbox.invoke(tool, arguments)
    _emit(envelope, as_json=as_json)
    if envelope.status is ToolStatus.ERROR:
        raise typer.Exit(code=1)


def _emit(envelope: ToolEnvelope, *, as_json: bool) -> None:
    if as_json:
        typer.echo(envelope.model_dump_json(indent=2))
        return
    EnvelopeRenderer(console=_CONSOLE).render(envelope)


@app.command("show")
def show_command(root: RootOption = None, as_json: JsonOption = False) -> None:
    """Show the current workflow state."""
    _invoke("state_get", {}, root=root, as_json=as_json)


@app.command("set")
def set_command(  # noqa: PLR0913
    feature: Annotated[str | None, typer.Option(help="Current feature id.")] = None,
    phase: Annotated[str | None, typer.Option(help="Workflow phase.")] = None,
    phase_index: Annotated[
        int | None, typer.Option(help="Position of phase in the ordering.")
    ] = None,
    task: Annotated[str | None, typer.Option(help="Current task id.")] = None,
    branch: Annotated[str | None, typer.Option(help="Active branch.")] = None,
    worktree: Annotated[str | None, typer.Option(help="Worktree path.")] = None,
    commit: Annotated[str | None, typer.Option(help="Last commit hash.")] = None,
    notes: Annotated[str | None, typer.Option(help="Free-text notes.")] = None,
    clear: Annotated[
        list[str] | None,
        typer.Option("--clear", help="Field to set to null (repeatable)."),
    ] = None,
    skip_validation: Annotated[
        bool, typer.Option("--skip-validation", help="Bypass state validation.")
    ] = False,
    reason: ReasonOption = None,
    correlation_id: CorrelationOption = None,
    root: RootOption = None,
    as_json: JsonOption = False,
) -> None:
    """Patch workflow state, creating it on first use."""
    supplied = {
        "current_feature": feature,
        "phase": phase,
        "phase_index": phase_index,
        "current_task_id": task,
        "active_branch": branch,
        "worktree_path": worktree,
        "last_commit": commit,
        "notes": notes,
    }
    patch: dict[str, Any] = {
        name: value for name, value in supplied.items() if value is not None
    }
    for name in clear or []:
        patch[name] = None
    _invoke(
        "state_set",
        {
            "patch": patch,
            "reason": reason,
            "correlation_id": correlation_id,
            "skip_validation": skip_validation,
        },
        root=root,
        as_json=as_json,
    )


@app.command("advance")
def advance_command(
    target: Annotated[str, typer.Argument(help="next-task or next-phase.")],
    task_id: Annotated[
        str | None, typer.Option("--task-id", help="Task id for next-task.")
    ] = None,
    phase: Annotated[
        str | None, typer.Option("--phase", help="Explicit phase for next-phase.")
    ] = None,
    reason: ReasonOption = None,
    correlation_id: CorrelationOption = None,
    root: RootOption = None,
    as_json: JsonOption = False,
) -> None:
    """Advance to the next task or phase."""
    _invoke(
        "state_advance",
        {
            "target": target,
            "next_task_id": task_id,
            "next_phase": phase,
            "reason": reason,
            "correlation_id": correlation_id,
        },
        root=root,
        as_json=as_json,
    )


@app.command("reset")
def reset_command(
    scope: Annotated[str, typer.Argument(help="all, feature, phase, or task.")],
    confirm: Annotated[
        bool, typer.Option("--confirm", help="Confirm the destructive reset.")
    ] = False,
    reason: ReasonOption = None,
    correlation_id: CorrelationOption = None,
    root: RootOption = None,
    as_json: JsonOption = False,
) -> None:
    """Clear a scope of workflow state (requires --confirm and --reason)."""
    _invoke(
        "state_reset",
        {
            "scope": scope,
            "confirm": confirm,
            "reason": reason,
            "correlation_id": correlation_id,
        },
        root=root,
        as_json=as_json,
    )


@app.command("history")
def history_command(
    limit: Annotated[
        int | None, typer.Option(help="Maximum events to return (1-500).")
    ] = None,
    since: Annotated[
        str | None, typer.Option(help="Only events strictly after this ISO time.")
    ] = None,
    event_type: Annotated[
        list[str] | None,
        typer.Option("--type", help="Event type to include (repeatable)."),
    ] = None,
    feature: Annotated[
        str | None, typer.Option(help="Only events that switched to this feature.")
    ] = None,
    root: RootOption = None,
    as_json: JsonOption = False,
) -> None:
    """List recorded state transitions, newest first."""
    _invoke(
        "state_history",
        {
            "limit": limit,
            "since": since,
            "types": event_type or None,
            "feature": feature,
        },
        root=root,
        as_json=as_json,
    )


def main() -> None:
    """Console script entrypoint."""
    app()
