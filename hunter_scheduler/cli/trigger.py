"""Hunter trigger commands - run the scan cycle, the sweep, the daemon or the HTTP server."""

import asyncio
from typing import Optional

import typer
from rich.console import Console

from hunter_scheduler.cli.error_handler import handle_errors
from hunter_scheduler.cli.output import print_cycle_summary, print_json, print_result

console = Console()


def _load_scheduler():
    from hunter_scheduler.config import get_config
    from hunter_scheduler.database.connection import create_tables
    from hunter_scheduler.scheduler.cycles import HunterScheduler

    config = get_config()
    create_tables(config)
    return HunterScheduler.from_config(config)


@handle_errors
def scan(
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output the cycle summary as JSON.",
    ),
) -> None:
    """Run one scan cycle now.

    Selects up to batch_cap due integrations and scans them serially.

    Example:
        hunter scan
        hunter scan --json
    """
    scheduler = _load_scheduler()
    summary = asyncio.run(scheduler.run_scan_cycle())

    if json_output:
        print_json(summary.to_dict())
    else:
        print_cycle_summary(summary.to_dict())


@handle_errors
def recover(
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output the sweep summary as JSON.",
    ),
) -> None:
    """Release leases that expired without being completed.

    Example:
        hunter recover
    """
    scheduler = _load_scheduler()
    summary = asyncio.run(scheduler.run_recovery_sweep())

    if json_output:
        print_json(summary.to_dict())
    else:
        print_result(True, f"Recovered {summary.recovered} stale lease(s)")


def _check_config(serving_http: bool) -> None:
    from hunter_scheduler.config import get_config, validate_config
    from hunter_scheduler.errors import ConfigurationError

    issues = validate_config(get_config(), serving_http=serving_http)
    for issue in issues:
        if issue.severity == "warning":
            console.print(f"[yellow]Warning:[/yellow] {issue.field}: {issue.message}")

    errors = [issue for issue in issues if issue.severity == "error"]
    if errors:
        raise ConfigurationError(
            "Invalid configuration",
            details={issue.field: issue.message for issue in errors},
        )


@handle_errors
def run() -> None:
    """Start the scheduler daemon in the foreground.

    Runs the recovery sweep and the scan cycle on their configured
    intervals until SIGINT or SIGTERM.

    Example:
        hunter --verbose run
    """
    from hunter_scheduler.config import get_config
    from hunter_scheduler.daemon.service import run_daemon
    from hunter_scheduler.database.connection import create_tables

    _check_config(serving_http=False)
    config = get_config()
    create_tables(config)

    console.print("[bold green]Starting Hunter daemon...[/bold green]")
    console.print(f"[dim]Worker: {config.worker_id}[/dim]")
    asyncio.run(run_daemon(config))


@handle_errors
def serve(
    host: Optional[str] = typer.Option(
        None,
        "--host",
        help="Bind address (default: server.host).",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Port (default: server.port).",
        min=1,
        max=65535,
    ),
) -> None:
    """Serve the HTTP cron trigger endpoints.

    Example:
        hunter serve --port 8080
    """
    import uvicorn

    from hunter_scheduler.api.app import create_app
    from hunter_scheduler.config import get_config
    from hunter_scheduler.database.connection import create_tables

    _check_config(serving_http=True)
    config = get_config()
    create_tables(config)

    uvicorn.run(
        create_app(config),
        host=host or config.server.host,
        port=port or config.server.port,
        log_config=None,  # Keep the logging set up by the CLI callback
    )
