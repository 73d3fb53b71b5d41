"""Main CLI entry point for the Hunter scheduler."""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from hunter_scheduler import __app_name__, __version__
from hunter_scheduler.cli import config, history, integrations, strategies, trigger
from hunter_scheduler.cli.exit_codes import ExitCode

# Create the main Typer app
app = typer.Typer(
    name=__app_name__,
    help="Hunter - scheduler and job-lease queue for platform discovery scans.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Console for CLI output
console = Console()

# Trigger commands
app.command("scan")(trigger.scan)
app.command("recover")(trigger.recover)
app.command("run")(trigger.run)
app.command("serve")(trigger.serve)

# Command groups
app.add_typer(integrations.app, name="integrations")
app.add_typer(history.app, name="history")
app.add_typer(config.app, name="config")
app.add_typer(strategies.app, name="strategies")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"{__app_name__} v{__version__}")
        raise typer.Exit(code=ExitCode.SUCCESS)


def _setup_logging(
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
    log_file: Optional[Path] = None,
    format_str: Optional[str] = None,
) -> None:
    """Set up logging configuration based on CLI options.

    Args:
        verbose: Enable INFO level logging
        debug: Enable DEBUG level logging
        quiet: Only log errors
        log_file: Optional log file path (always receives DEBUG)
        format_str: Log format (a source location is added in debug mode)
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    format_str = format_str or "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    if debug:
        format_str = format_str.replace(
            "%(message)s", "[%(filename)s:%(lineno)d] - %(message)s"
        )

    handlers: list[logging.Handler] = []

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    if not quiet or not log_file:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        handlers.append(console_handler)

    logging.basicConfig(
        level=logging.DEBUG if log_file else level,
        format=format_str,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    # SQL echo and scheduler internals are noisy below WARNING
    for noisy in ("sqlalchemy", "apscheduler"):
        logging.getLogger(noisy).setLevel(logging.DEBUG if debug else logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging configured: level={logging.getLevelName(level)}, debug={debug}")


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file (default: ~/.config/hunter/config.toml).",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable verbose output (INFO level logging).",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (DEBUG level logging).",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors.",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log to file (logs DEBUG level regardless of console settings).",
    ),
) -> None:
    """Hunter - scheduler and job-lease queue for platform discovery scans.

    Hunter runs every tenant's platform integrations on their own cadence,
    backs off failing ones, and recovers scans whose worker died.

    [bold]Triggers:[/bold]

    • [cyan]scan[/cyan] - Run one scan cycle
    • [cyan]recover[/cyan] - Release expired leases
    • [cyan]run[/cyan] - Run both on a timer (daemon)
    • [cyan]serve[/cyan] - Expose both as HTTP cron endpoints

    [bold]Management:[/bold]

    • [cyan]integrations[/cyan] - Create, pause, resume and scan integrations
    • [cyan]history[/cyan] - Show and prune the scan log
    • [cyan]strategies[/cyan] - Show installed platform strategies
    • [cyan]config[/cyan] - Show and validate configuration

    [bold]Examples:[/bold]

        hunter integrations create --project acme --platform reddit
        hunter scan
        hunter --verbose run
    """
    from hunter_scheduler.config import get_config, load_config, set_config

    if quiet and (verbose or debug):
        console.print("[red]Error:[/red] --quiet cannot be combined with --verbose or --debug")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    if config_file is not None:
        set_config(load_config(config_file))
    config = get_config()

    _setup_logging(
        verbose=verbose,
        debug=debug,
        quiet=quiet,
        log_file=log_file or config.logging.file,
        format_str=config.logging.format,
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"Hunter v{__version__} starting (worker {config.worker_id})")


if __name__ == "__main__":
    app()
