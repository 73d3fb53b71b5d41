"""Hunter config command - Inspect and validate configuration."""

from typing import Optional

import typer
from rich.console import Console
from rich.syntax import Syntax

from hunter_scheduler.cli.error_handler import handle_errors
from hunter_scheduler.cli.exit_codes import ExitCode

app = typer.Typer(help="Inspect and validate configuration.")
console = Console()


@app.command("show")
@handle_errors
def show_config(
    section: Optional[str] = typer.Argument(
        None,
        help="Configuration section to show (scheduler, server, strategies, logging).",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format (table, json).",
    ),
    unmask: bool = typer.Option(
        False,
        "--unmask",
        help="Show unmasked secrets (use with caution).",
    ),
) -> None:
    """Show the effective configuration.

    Example:
        hunter config show
        hunter config show scheduler
        hunter config show --format json
    """
    from hunter_scheduler.config import _config_to_dict, export_config_json, get_config
    from hunter_scheduler.errors import ValidationError

    config = get_config()

    if format == "json":
        console.print(Syntax(export_config_json(config, mask_secrets=not unmask), "json", theme="monokai"))
        return
    if format != "table":
        raise ValidationError(f"Unknown format '{format}' (choose table or json)")

    data = _config_to_dict(config, mask_secrets=not unmask)
    sections = {k: v for k, v in data.items() if isinstance(v, dict)}
    general = {k: v for k, v in data.items() if not isinstance(v, dict)}

    if section:
        if section not in sections:
            raise ValidationError(
                f"Unknown section '{section}'",
                details={"available": ", ".join(sections)},
            )
        sections = {section: sections[section]}
        general = {}

    console.print("[bold]Hunter Configuration[/bold]")
    for key, value in general.items():
        console.print(f"  [cyan]{key}[/cyan] = {value}")

    for name, values in sections.items():
        console.print()
        console.print(f"[bold]\\[{name}][/bold]")
        for key, value in values.items():
            console.print(f"  [cyan]{key}[/cyan] = {value if value not in (None, '') else '[dim]unset[/dim]'}")


@app.command("validate")
@handle_errors
def validate(
    serving: bool = typer.Option(
        False,
        "--serving",
        help="Also check settings needed to expose the HTTP trigger.",
    ),
) -> None:
    """Validate the configuration.

    Exits non-zero if any error is found; warnings are reported only.

    Example:
        hunter config validate
        hunter config validate --serving
    """
    from hunter_scheduler.config import get_config, validate_config

    issues = validate_config(get_config(), serving_http=serving)

    if not issues:
        console.print("[green]✓[/green] Configuration is valid")
        return

    has_errors = False
    for issue in issues:
        if issue.severity == "error":
            has_errors = True
            console.print(f"[red]✗[/red] {issue}")
        else:
            console.print(f"[yellow]![/yellow] {issue}")

    if has_errors:
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)
    console.print("[green]✓[/green] Configuration is valid (with warnings)")
