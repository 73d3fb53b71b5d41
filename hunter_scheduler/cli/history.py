"""Hunter history command - Inspect and prune the scan log."""

from datetime import timedelta
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from hunter_scheduler.cli.error_handler import handle_errors
from hunter_scheduler.cli.output import format_datetime, format_duration_ms, print_json, print_result

app = typer.Typer(help="Show and prune scan history.")
console = Console()


@app.callback(invoke_without_command=True)
@handle_errors
def show_history(
    ctx: typer.Context,
    integration: Optional[str] = typer.Option(
        None,
        "--integration",
        "-i",
        help="Integration ID (or prefix) to show history for.",
    ),
    project: Optional[str] = typer.Option(
        None,
        "--project",
        help="Project ID to show history for.",
    ),
    limit: int = typer.Option(
        10,
        "--limit",
        "-l",
        help="Number of history entries to show.",
        min=1,
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Show recent scan attempts, newest first.

    Example:
        hunter history
        hunter history --integration 3f2a --limit 20
    """
    if ctx.invoked_subcommand is not None:
        return

    from hunter_scheduler.config import get_config
    from hunter_scheduler.database.connection import create_tables, get_db_session
    from hunter_scheduler.database.repositories import RepositoryFactory
    from hunter_scheduler.errors import ValidationError

    config = get_config()
    create_tables(config)

    with get_db_session(config) as session:
        repos = RepositoryFactory(session)

        integration_id = None
        if integration:
            # History outlives deleted integrations, so fall back to the raw ID
            matching = repos.integrations.find_by_prefix(integration)
            if len(matching) == 1:
                integration_id = matching[0].id
            elif len(matching) > 1:
                raise ValidationError(f"Multiple integrations match '{integration}'. Be more specific.")
            else:
                integration_id = integration

        logs = repos.scan_logs.get_history(
            integration_id=integration_id, project_id=project, limit=limit
        )

    if json_output:
        print_json([log.to_dict() for log in logs])
        return

    if not logs:
        console.print("[dim]No scan history.[/dim]")
        return

    title = "Scan History"
    if integration:
        title += f" for {integration}"
    table = Table(title=title)
    table.add_column("Integration", style="cyan")
    table.add_column("Platform", style="magenta")
    table.add_column("Trigger")
    table.add_column("Started", style="green")
    table.add_column("Duration", justify="right")
    table.add_column("Status", style="bold")
    table.add_column("Found", justify="right")
    table.add_column("Stored", justify="right")
    table.add_column("Error", style="red")

    for log in logs:
        table.add_row(
            log.integration_id[:8],
            log.platform_type,
            log.trigger,
            format_datetime(log.started_at),
            format_duration_ms(log.duration_ms),
            "[green]success[/green]" if log.success else "[red]failed[/red]",
            str(log.items_found),
            str(log.items_stored),
            log.error_message or "",
        )

    console.print(table)


@app.command("prune")
@handle_errors
def prune_history(
    days: Optional[int] = typer.Option(
        None,
        "--days",
        "-d",
        help="Delete entries older than this many days (default: scheduler.history_retention_days).",
        min=1,
    ),
) -> None:
    """Delete old scan log entries.

    Example:
        hunter history prune
        hunter history prune --days 7
    """
    from hunter_scheduler.config import get_config
    from hunter_scheduler.database.connection import create_tables, get_db_session
    from hunter_scheduler.database.models import utcnow
    from hunter_scheduler.database.repositories import ScanLogRepository

    config = get_config()
    create_tables(config)
    retention = days or config.scheduler.history_retention_days

    with get_db_session(config) as session:
        deleted = ScanLogRepository(session).delete_old(utcnow() - timedelta(days=retention))

    print_result(True, f"Deleted {deleted} scan log(s) older than {retention} days")
