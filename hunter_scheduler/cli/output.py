"""Output formatting utilities for the Hunter CLI."""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from rich.console import Console
from rich.json import JSON as RichJSON
from rich.table import Table

# Default console for output
console = Console()

STATUS_STYLES = {
    "active": "green",
    "paused": "yellow",
    "disabled": "red",
}


def print_json(data: Any, console_instance: Console | None = None) -> None:
    """Print data as formatted JSON.

    Args:
        data: Data to print (datetimes and other objects are stringified)
        console_instance: Optional custom console instance
    """
    prog_console = console_instance or console
    prog_console.print(RichJSON(json.dumps(data, indent=2, default=str)))


def print_result(
    success: bool,
    message: str,
    details: Dict[str, Any] | None = None,
    console_instance: Console | None = None,
) -> None:
    """Print operation result with a check or cross.

    Example:
        print_result(True, "Integration paused", {"id": "3f2a..."})
    """
    prog_console = console_instance or console

    icon = "[green]✓[/green]" if success else "[red]✗[/red]"
    prog_console.print(f"{icon} {message}")

    if details:
        for key, value in details.items():
            if value is not None:
                prog_console.print(f"  [dim]{key}:[/dim] {value}")


def format_datetime(value: Optional[datetime], default: str = "Never") -> str:
    """Format a stored (naive UTC) timestamp for display."""
    if value is None:
        return default
    return value.strftime("%Y-%m-%d %H:%M:%S")


def format_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def format_duration_ms(duration_ms: int) -> str:
    """Format milliseconds in human-readable form.

    Example:
        format_duration_ms(850)    # "850ms"
        format_duration_ms(93000)  # "1m 33s"
    """
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    seconds = duration_ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {int(seconds % 60)}s"


def print_cycle_summary(summary: Dict[str, Any], console_instance: Console | None = None) -> None:
    """Print a scan cycle summary as a results table plus totals."""
    prog_console = console_instance or console

    if summary["selected"] == 0:
        prog_console.print("[dim]No integrations due.[/dim]")
        return

    if summary["results"]:
        table = Table(title="Scan Results")
        table.add_column("Integration", style="cyan")
        table.add_column("Project")
        table.add_column("Platform", style="magenta")
        table.add_column("Status", style="bold")
        table.add_column("Found", justify="right")
        table.add_column("Stored", justify="right")
        table.add_column("Error", style="red")

        for result in summary["results"]:
            table.add_row(
                result["integration_id"][:8],
                result["project_id"],
                result["platform_type"],
                "[green]success[/green]" if result["success"] else "[red]failed[/red]",
                str(result["items_found"]),
                str(result["items_stored"]),
                result["error"] or "",
            )
        prog_console.print(table)

    prog_console.print(
        f"Selected {summary['selected']}, scanned {summary['scanned']} "
        f"([green]{summary['succeeded']} succeeded[/green], "
        f"[red]{summary['failed']} failed[/red]), skipped {summary['skipped']}"
    )
    prog_console.print(
        f"Items found: {summary['items_found']}, stored: {summary['items_stored']}"
    )
