"""Global exception handling for the Hunter CLI.

Commands are wrapped in handle_errors so every failure ends with a
readable message on stderr and the exit code of the exception class.
The exception classes themselves live in hunter_scheduler.errors.
"""

from functools import wraps
from typing import Callable, TypeVar, Any
import logging

import typer
from rich.console import Console

from hunter_scheduler.cli.exit_codes import ExitCode
from hunter_scheduler.errors import HunterError

# Console for error output (stderr)
console = Console(stderr=True)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _report_hunter_error(e: HunterError) -> None:
    logger.error(
        f"{type(e).__name__}: {e.message}",
        extra={"exit_code": e.exit_code, "details": e.details},
    )
    console.print(f"[red]Error:[/red] {e.message}")
    for key, value in e.details.items():
        console.print(f"  [dim]{key}:[/dim] {value}")


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling across CLI commands.

    - HunterError subclasses: message and details, class exit code
    - ValueError: rejected input, INVALID_ARGUMENT
    - KeyboardInterrupt: cancellation message, exit code 130
    - Anything else: generic message, GENERAL_ERROR

    Example:
        @app.command()
        @handle_errors
        def scan():
            raise StorageError("database is locked")
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except HunterError as e:
            _report_hunter_error(e)
            raise typer.Exit(code=e.exit_code)

        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user.[/yellow]")
            logger.info("Operation cancelled by user (KeyboardInterrupt)")
            raise typer.Exit(code=ExitCode.CANCELLED)

        except (typer.Exit, typer.Abort):
            raise

        except Exception as e:
            logger.exception("Unexpected error occurred")
            console.print(f"[red]Unexpected error:[/red] {e}")
            console.print("[dim]Run with --debug for more details[/dim]")
            raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    return wrapper  # type: ignore[return-value]
