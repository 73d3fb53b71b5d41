"""Hunter integrations command - Manage platform integrations."""

import asyncio
import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from hunter_scheduler.cli.error_handler import handle_errors
from hunter_scheduler.cli.exit_codes import ExitCode
from hunter_scheduler.cli.output import (
    format_datetime,
    format_status,
    print_json,
    print_result,
)
from hunter_scheduler.errors import NotFoundError, ValidationError

app = typer.Typer(help="Manage platform integrations.")
console = Console()


def _resolve(repos, integration_id: str):
    """Find one integration by full ID or unique prefix."""
    integration = repos.integrations.get_by_id(integration_id)
    if integration:
        return integration

    matching = repos.integrations.find_by_prefix(integration_id)
    if not matching:
        raise NotFoundError(f"Integration not found: {integration_id}")
    if len(matching) > 1:
        raise ValidationError(f"Multiple integrations match '{integration_id}'. Be more specific.")
    return matching[0]


def _session():
    from hunter_scheduler.config import get_config
    from hunter_scheduler.database.connection import create_tables, get_db_session

    config = get_config()
    create_tables(config)
    return get_db_session(config)


@app.command("list")
@handle_errors
def list_integrations(
    status: Optional[str] = typer.Option(
        None,
        "--status",
        "-s",
        help="Filter by status (active, paused, disabled).",
    ),
    platform: Optional[str] = typer.Option(
        None,
        "--platform",
        "-p",
        help="Filter by platform type.",
    ),
    project: Optional[str] = typer.Option(
        None,
        "--project",
        help="Filter by project ID.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List integrations in due order.

    Example:
        hunter integrations list
        hunter integrations list --status active --platform reddit
    """
    from hunter_scheduler.database.repositories import RepositoryFactory

    with _session() as session:
        integrations = RepositoryFactory(session).integrations.get_all(
            status=status, platform_type=platform, project_id=project
        )

    if json_output:
        print_json([i.to_dict() for i in integrations])
        return

    if not integrations:
        console.print("[dim]No integrations found.[/dim]")
        return

    table = Table(title="Platform Integrations")
    table.add_column("ID", style="cyan")
    table.add_column("Project")
    table.add_column("Platform", style="magenta")
    table.add_column("Status")
    table.add_column("Every", justify="right")
    table.add_column("Next Due", style="green")
    table.add_column("Last Run")
    table.add_column("Failures", justify="right")
    table.add_column("Leased By", style="dim")

    for integration in integrations:
        failures = integration.consecutive_failures
        table.add_row(
            integration.id[:8],
            integration.project_id,
            integration.platform_type,
            format_status(integration.status),
            f"{integration.scan_frequency_minutes}m",
            format_datetime(integration.next_due_at, "N/A"),
            format_datetime(integration.last_run_at),
            f"[red]{failures}[/red]" if failures else "0",
            integration.lease_owner or "",
        )

    console.print(table)


@app.command("create")
@handle_errors
def create_integration(
    project: str = typer.Option(
        ...,
        "--project",
        help="Owning project ID.",
    ),
    platform: str = typer.Option(
        ...,
        "--platform",
        "-p",
        help="Platform type (e.g., reddit, hackernews).",
    ),
    frequency: Optional[int] = typer.Option(
        None,
        "--frequency",
        "-f",
        help="Scan frequency in minutes (default: scheduler.default_scan_frequency).",
        min=1,
    ),
    config_json: Optional[str] = typer.Option(
        None,
        "--config",
        help="Strategy parameters as a JSON object.",
    ),
    paused: bool = typer.Option(
        False,
        "--paused",
        help="Create the integration paused.",
    ),
) -> None:
    """Create an integration. It is due immediately unless created paused.

    Example:
        hunter integrations create --project acme --platform reddit
        hunter integrations create --project acme --platform hackernews \\
            --frequency 30 --config '{"keywords": ["acme"]}'
    """
    from hunter_scheduler.config import get_config
    from hunter_scheduler.database.repositories import RepositoryFactory
    from hunter_scheduler.errors import UnknownPlatformError
    from hunter_scheduler.strategies.base import PlatformType
    from hunter_scheduler.strategies.registry import get_registry

    known = {p.value for p in PlatformType} | set(get_registry().platforms)
    if platform not in known:
        raise UnknownPlatformError(platform)

    strategy_config = {}
    if config_json:
        try:
            strategy_config = json.loads(config_json)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid --config JSON: {e}")
        if not isinstance(strategy_config, dict):
            raise ValidationError("--config must be a JSON object")

    with _session() as session:
        repos = RepositoryFactory(session)
        if repos.integrations.get_all(platform_type=platform, project_id=project):
            raise ValidationError(f"Project '{project}' already has a {platform} integration")

        integration = repos.integrations.create(
            project_id=project,
            platform_type=platform,
            config=strategy_config,
            scan_frequency_minutes=frequency or get_config().scheduler.default_scan_frequency,
            status="paused" if paused else "active",
        )

    print_result(True, f"Integration created: {integration.id}", {
        "Project": integration.project_id,
        "Platform": integration.platform_type,
        "Frequency": f"{integration.scan_frequency_minutes}m",
        "Status": integration.status,
        "Next due": format_datetime(integration.next_due_at),
    })


@app.command("show")
@handle_errors
def show_integration(
    integration_id: str = typer.Argument(..., help="Integration ID or prefix."),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Show one integration, including its statistics.

    Example:
        hunter integrations show 3f2a
    """
    from hunter_scheduler.database.repositories import RepositoryFactory

    with _session() as session:
        integration = _resolve(RepositoryFactory(session), integration_id)
        data = integration.to_dict()

    if json_output:
        print_json(data)
        return

    console.print(f"[bold]{data['platform_type']}[/bold] integration for [cyan]{data['project_id']}[/cyan]")
    for key, value in data.items():
        if key == "config":
            value = json.dumps(value)
        console.print(f"  [dim]{key}:[/dim] {value if value is not None else ''}")


def _set_status(integration_id: str, status: str, verb: str) -> None:
    from hunter_scheduler.database.repositories import RepositoryFactory

    with _session() as session:
        repos = RepositoryFactory(session)
        integration = _resolve(repos, integration_id)
        repos.integrations.set_status(integration.id, status)

    print_result(True, f"Integration {verb}: {integration.id}", {
        "Next due": format_datetime(integration.next_due_at, "N/A") if status == "active" else None,
    })


@app.command("pause")
@handle_errors
def pause_integration(
    integration_id: str = typer.Argument(..., help="Integration ID or prefix."),
) -> None:
    """Pause an integration. A scan in progress finishes normally.

    Example:
        hunter integrations pause 3f2a
    """
    _set_status(integration_id, "paused", "paused")


@app.command("resume")
@handle_errors
def resume_integration(
    integration_id: str = typer.Argument(..., help="Integration ID or prefix."),
) -> None:
    """Resume a paused or disabled integration.

    Example:
        hunter integrations resume 3f2a
    """
    _set_status(integration_id, "active", "resumed")


@app.command("delete")
@handle_errors
def delete_integration(
    integration_id: str = typer.Argument(..., help="Integration ID or prefix."),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Skip confirmation prompt.",
    ),
) -> None:
    """Delete an integration. Its scan history is kept.

    Example:
        hunter integrations delete 3f2a --force
    """
    from hunter_scheduler.database.repositories import RepositoryFactory

    with _session() as session:
        repos = RepositoryFactory(session)
        integration = _resolve(repos, integration_id)

        if not force:
            confirm = typer.confirm(
                f"Delete {integration.platform_type} integration for "
                f"'{integration.project_id}' ({integration.id})?"
            )
            if not confirm:
                raise typer.Abort()

        repos.integrations.delete(integration.id)

    print_result(True, f"Integration deleted: {integration.id}")


@app.command("scan-now")
@handle_errors
def scan_now(
    integration_id: str = typer.Argument(..., help="Integration ID or prefix."),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Record the scan as a test run and leave the schedule unchanged.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Scan one integration immediately, regardless of its due time.

    Example:
        hunter integrations scan-now 3f2a
        hunter integrations scan-now 3f2a --dry-run
    """
    from hunter_scheduler.database.repositories import RepositoryFactory
    from hunter_scheduler.scheduler.cycles import HunterScheduler
    from hunter_scheduler.scheduler.units import ScanTrigger

    with _session() as session:
        unit_id = _resolve(RepositoryFactory(session), integration_id).id

    scheduler = HunterScheduler.from_config()
    trigger = ScanTrigger.TEST if dry_run else ScanTrigger.MANUAL
    outcome = asyncio.run(scheduler.scan_now(unit_id, trigger))

    if outcome is None:
        print_result(False, f"Integration {unit_id} is being scanned by another worker")
        raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    if json_output:
        print_json(outcome.to_dict())
        return

    details = {
        "Trigger": outcome.trigger.value,
        "Found": outcome.items_found,
        "Stored": outcome.items_stored,
        "Duplicates": outcome.items_duplicates,
        "Duration": f"{outcome.duration_ms}ms",
        "Error": outcome.error_message,
    }
    if outcome.success:
        print_result(True, f"Scan completed: {unit_id}", details)
    else:
        print_result(False, f"Scan failed: {unit_id}", details)
        raise typer.Exit(code=ExitCode.STRATEGY_ERROR)
