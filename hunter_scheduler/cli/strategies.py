"""Hunter strategies command - Show which platforms can be scanned."""

import typer
from rich.console import Console
from rich.table import Table

from hunter_scheduler.cli.error_handler import handle_errors

app = typer.Typer(help="Show registered hunter strategies.")
console = Console()


@app.command("list")
@handle_errors
def list_strategies() -> None:
    """List platforms and whether a strategy serves them.

    Example:
        hunter strategies list
    """
    from hunter_scheduler.strategies.base import PlatformType
    from hunter_scheduler.strategies.registry import get_registry

    registry = get_registry()
    platforms = sorted({p.value for p in PlatformType} | set(registry.platforms))

    table = Table(title="Hunter Strategies")
    table.add_column("Platform", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Strategy")

    for platform in platforms:
        if platform in registry:
            strategy = registry.resolve(platform)
            cls = type(strategy)
            table.add_row(platform, "[green]registered[/green]", f"{cls.__module__}.{cls.__name__}")
        else:
            table.add_row(platform, "[dim]not installed[/dim]", "")

    console.print(table)

    if not len(registry):
        console.print("[yellow]No strategies registered.[/yellow]")
        console.print(
            "Install a package that provides the 'hunter_scheduler.strategies' entry point."
        )
