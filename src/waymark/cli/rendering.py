"""Rich views for tool envelopes."""

from __future__ import annotations

from rich.console import Console
from rich.json import JSON
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from waymark.tools.envelope import ToolEnvelope, ToolStatus

_BORDER_STYLES = {
    ToolStatus.OK: "green",
    ToolStatus.WARNING: "bold yellow",
    ToolStatus.ERROR: "bold red",
}


class EnvelopeRenderer:
    """Render tool envelopes with Rich structures."""

    def __init__(self, *, console: Console) -> None:
        """Store console used for rendering.

        Args:
            console: Rich console used for output rendering.
        """
        self._console = console

    def render(self, envelope: ToolEnvelope) -> None:
        """Render one envelope: summary panel, issues, then payload.

        Args:
            envelope: Tool result envelope.
        """
        self._console.print(
            Panel(
                escape(envelope.summary),
                title=escape(f"{envelope.tool} [{envelope.status.value}]"),
                border_style=_BORDER_STYLES[envelope.status],
                expand=True,
            )
        )
        issues = [("error", issue) for issue in envelope.errors]
        issues.extend(("warning", issue) for issue in envelope.warnings)
        if issues:
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Level", style="bold")
            table.add_column("Code")
            table.add_column("Message")
            for level, issue in issues:
                table.add_row(level, issue.code, escape(issue.message))
            self._console.print(table)
        if envelope.tool == "state_history" and envelope.data.get("events"):
            self._render_history(envelope)
            return
        if envelope.data:
            self._console.print(
                Panel(
                    JSON.from_data(envelope.data),
                    title="Data",
                    border_style="cyan",
                    expand=True,
                )
            )

    def _render_history(self, envelope: ToolEnvelope) -> None:
        table = Table(title="History", show_header=True, header_style="bold cyan")
        table.add_column("Timestamp", style="bold")
        table.add_column("Type")
        table.add_column("Reason")
        table.add_column("Changed")
        for event in envelope.data["events"]:
            table.add_row(
                str(event.get("timestamp", "")),
                str(event.get("type", "")),
                escape(str(event.get("reason") or "")),
                ", ".join(sorted(event.get("diff") or {})),
            )
        self._console.print(table)
