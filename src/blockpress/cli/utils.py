"""
CLI Utilities

Shared helpers for CLI commands: console output, logging setup, payload
loading and error display.
"""

import json
import logging
from pathlib import Path
from typing import Any

import typer
import yaml
from rich.console import Console
from rich.padding import Padding
from rich.panel import Panel
from rich.text import Text

from blockpress.core.exceptions import BlockPressError

console = Console()
error_console = Console(stderr=True)


def setup_logging(level: str = "WARNING") -> None:
    """Set up logging configuration for the application."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def print_header(title: str, subtitle: str = "") -> None:
    """Print a formatted header for CLI output."""
    if subtitle:
        header_text = f"[bold cyan]{title}[/bold cyan]\n[dim]{subtitle}[/dim]"
    else:
        header_text = f"[bold cyan]{title}[/bold cyan]"

    console.print(Panel(header_text, border_style="cyan"))


def read_payload(path: Path) -> Any:
    """
    Read a content payload from a JSON or YAML file.

    Raises:
        typer.BadParameter: If the file cannot be read or parsed
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in ('.yaml', '.yml'):
                return yaml.safe_load(f)
            return json.load(f)
    except (IOError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise typer.BadParameter(f"Cannot read payload {path}: {e}")


def handle_error(err: BlockPressError) -> None:
    """Print a BlockPress error with its suggestions and exit."""
    error_console.print()
    error_console.print(Panel(
        Text(err.message),
        title=f"[bold red]Error: {err.reason}[/bold red]",
        border_style="red",
        expand=False
    ))

    problems = getattr(err, 'problems', None)
    if problems:
        for problem in problems:
            error_console.print(f"  • {problem}")

    if err.suggestions:
        error_console.print("\n[bold green]Suggested solutions:[/bold green]")
        for i, suggestion in enumerate(err.suggestions, 1):
            suggestion_text = Text(f"{i}. {suggestion.action}: {suggestion.description}\n")
            if suggestion.command:
                suggestion_text.append("   Run: ", style="bold")
                suggestion_text.append(suggestion.command, style="cyan")
            error_console.print(Padding(suggestion_text, (0, 1)))

    if err.context.correlation_id:
        error_console.print(Padding(f"Trace ID: [yellow]{err.context.correlation_id}[/yellow]", (1, 0, 0, 0)))

    raise typer.Exit(code=1)
