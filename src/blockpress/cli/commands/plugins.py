"""
Plugins Command

Inspect which plugins loaded, what failed, and the resulting block catalog.
"""

from typing import Annotated, List, Optional

import typer
from rich.table import Table

from blockpress.cli.config_utils import build_cli_args, open_runtime
from blockpress.cli.utils import console, print_header

app = typer.Typer(
    name="plugins",
    help="Inspect loaded plugins and block types",
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.command("list")
def list_plugins(
    config: Annotated[Optional[str], typer.Option("--config", "-c", help="Configuration file path")] = None,
    disable: Annotated[Optional[List[str]], typer.Option("--disable", help="Plugin name to skip (repeatable)")] = None,
    entry_points: Annotated[Optional[bool], typer.Option("--entry-points/--no-entry-points", help="Discover entry point plugins")] = None,
    verbose: Annotated[Optional[bool], typer.Option("--verbose", "-v", help="Enable verbose output")] = None,
):
    """List registered plugins and any that failed to load."""
    runtime = open_runtime(config, build_cli_args(
        disable=disable,
        entry_points=entry_points,
        verbose=verbose,
    ))
    try:
        _print_plugins(runtime)
    finally:
        runtime.close()


def _print_plugins(runtime) -> None:
    summary = runtime.loader_summary

    print_header(
        "Plugins",
        f"{summary.registered_count} registered, {summary.failed_count} failed"
    )

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Blocks")
    table.add_column("Hooks")
    table.add_column("Description", style="dim")

    status = runtime.registry.get_plugin_status()
    for name, info in status.items():
        hooks = ", ".join(f"{hook} ({count})" for hook, count in sorted(info['hooks'].items()))
        table.add_row(name, info['version'], ", ".join(info['blocks']) or "-", hooks or "-", info['description'])
    console.print(table)

    if summary.failures:
        console.print("\n[bold red]Failed plugins:[/bold red]")
        for failure in summary.failures:
            console.print(f"  • [red]{failure.name}[/red] ({failure.origin}): {failure.reason}")

    warnings = runtime.registry.warnings
    if warnings:
        console.print("\n[yellow]Registration warnings:[/yellow]")
        for warning in warnings:
            console.print(f"  • {warning}")


@app.command("blocks")
def list_blocks(
    config: Annotated[Optional[str], typer.Option("--config", "-c", help="Configuration file path")] = None,
    verbose: Annotated[Optional[bool], typer.Option("--verbose", "-v", help="Enable verbose output")] = None,
):
    """Show the block catalog in registration order."""
    runtime = open_runtime(config, build_cli_args(verbose=verbose))
    runtime.close()

    table = Table(title="Block Catalog", show_header=True, header_style="bold cyan")
    table.add_column("Type")
    table.add_column("Name")
    table.add_column("Capabilities")
    table.add_column("Plugin", style="dim")

    for definition in runtime.catalog.list():
        table.add_row(
            definition.id,
            definition.display_name,
            ", ".join(sorted(definition.capabilities)) or "-",
            runtime.catalog.origin_of(definition.id) or "-",
        )
    console.print(table)
