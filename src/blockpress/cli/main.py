#!/usr/bin/env python3
"""
BlockPress CLI Main Application

Typer-based command-line interface for inspecting plugins and managing
document revisions.
"""

from typing import Optional

import typer
from rich.console import Console

from blockpress import __version__
from blockpress.cli.commands import config, document, plugins

console = Console()

# Create main Typer application
app = typer.Typer(
    name="blockpress",
    help="Plugin-extensible block document engine",
    context_settings={"help_option_names": ["-h", "--help"]},
    rich_markup_mode="rich",
    no_args_is_help=True,
)

# Add subcommands
app.add_typer(plugins.app, name="plugins", help="Inspect loaded plugins and block types")
app.add_typer(document.app, name="document", help="Save, show, render and restore documents")
app.add_typer(config.app, name="config", help="Manage configuration files")


def version_callback(value: bool):
    """Show version information."""
    if value:
        console.print(f"[bold cyan]BlockPress[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def app_callback(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version information and exit"
    ),
):
    """
    BlockPress - composable block documents with revision history

    [bold]Quick Start:[/bold]

    • Create a config: [cyan]blockpress config init[/cyan]
    • List block types: [cyan]blockpress plugins blocks[/cyan]
    • Save a document: [cyan]blockpress document save home page.json[/cyan]
    • Render it: [cyan]blockpress document render home[/cyan]
    """


def main():
    """Entry point for the blockpress console script."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
