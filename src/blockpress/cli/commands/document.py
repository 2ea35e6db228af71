"""
Document Command

Save, inspect, render and restore document revisions.
"""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from blockpress.cli.config_utils import build_cli_args, open_runtime
from blockpress.cli.utils import console, error_console, read_payload
from blockpress.service import OperationResult

app = typer.Typer(
    name="document",
    help="Manage document revisions",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

ConfigOption = Annotated[Optional[str], typer.Option("--config", "-c", help="Configuration file path")]
DbOption = Annotated[Optional[Path], typer.Option("--db", help="SQLite database file")]
VerboseOption = Annotated[Optional[bool], typer.Option("--verbose", "-v", help="Enable verbose output")]


def _exit_on_failure(result: OperationResult) -> None:
    if result.ok:
        return

    error_console.print(f"[bold red]{result.reason}[/bold red]: {result.message}")
    for problem in result.problems:
        error_console.print(f"  • {problem}")
    raise typer.Exit(1)


def _print_json(data) -> None:
    console.print_json(json.dumps(data, default=str))


@app.command("save")
def save_document(
    document_id: Annotated[str, typer.Argument(help="Document identifier")],
    payload_file: Annotated[Path, typer.Argument(help="JSON or YAML content payload", exists=True, dir_okay=False)],
    expected: Annotated[Optional[int], typer.Option("--expected", "-e", help="Revision the edit is based on (0 for a new document)")] = None,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = None,
):
    """Save a content payload as the document's next revision."""
    runtime = open_runtime(config, build_cli_args(db=db, verbose=verbose))
    try:
        result = runtime.service.save(document_id, read_payload(payload_file), expected_sequence=expected)
    finally:
        runtime.close()
    _exit_on_failure(result)

    console.print(f"[green]Saved[/green] {document_id} as revision [bold]{result.sequence}[/bold]")
    if result.resolved and result.resolved.placeholders:
        console.print(
            f"[yellow]{len(result.resolved.placeholders)} element(s) use unregistered block types "
            f"and will render as placeholders[/yellow]"
        )
    if result.resolved and result.resolved.property_errors:
        console.print(f"[yellow]{len(result.resolved.property_errors)} property problem(s):[/yellow]")
        for problem in result.resolved.property_errors:
            console.print(f"  • {problem}")


@app.command("show")
def show_document(
    document_id: Annotated[str, typer.Argument(help="Document identifier")],
    sequence: Annotated[Optional[int], typer.Option("--sequence", "-s", help="Revision to show (default: current)")] = None,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = None,
):
    """Print a revision's content tree as JSON."""
    runtime = open_runtime(config, build_cli_args(db=db, verbose=verbose))
    try:
        result = runtime.service.read(document_id, sequence=sequence)
    finally:
        runtime.close()
    _exit_on_failure(result)

    _print_json({'document_id': document_id, 'sequence': result.sequence, **result.tree.to_payload()})


@app.command("history")
def document_history(
    document_id: Annotated[str, typer.Argument(help="Document identifier")],
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = None,
):
    """List every revision of a document."""
    runtime = open_runtime(config, build_cli_args(db=db, verbose=verbose))
    try:
        result = runtime.service.history(document_id)
    finally:
        runtime.close()
    _exit_on_failure(result)

    table = Table(title=f"History of {document_id}", show_header=True, header_style="bold cyan")
    table.add_column("Revision", justify="right")
    table.add_column("Created")
    table.add_column("Elements", justify="right")

    for revision in result.revisions:
        table.add_row(
            str(revision.sequence),
            revision.created_at.strftime('%Y-%m-%d %H:%M:%S'),
            str(len(revision.snapshot)),
        )
    console.print(table)


@app.command("render")
def render_document(
    document_id: Annotated[str, typer.Argument(help="Document identifier")],
    sequence: Annotated[Optional[int], typer.Option("--sequence", "-s", help="Revision to render (default: current)")] = None,
    select: Annotated[Optional[str], typer.Option("--select", help="Element to gather editing controls for")] = None,
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = None,
):
    """Resolve a revision against the loaded plugins and print it."""
    runtime = open_runtime(config, build_cli_args(db=db, verbose=verbose))
    try:
        result = runtime.service.render(document_id, sequence=sequence, selected_id=select)
    finally:
        runtime.close()
    _exit_on_failure(result)

    _print_json({'document_id': document_id, 'sequence': result.sequence, **result.resolved.to_dict()})


@app.command("restore")
def restore_document(
    document_id: Annotated[str, typer.Argument(help="Document identifier")],
    sequence: Annotated[int, typer.Argument(help="Revision to restore")],
    config: ConfigOption = None,
    db: DbOption = None,
    verbose: VerboseOption = None,
):
    """Append a copy of an earlier revision as the current one."""
    runtime = open_runtime(config, build_cli_args(db=db, verbose=verbose))
    try:
        result = runtime.service.restore(document_id, sequence)
    finally:
        runtime.close()
    _exit_on_failure(result)

    console.print(
        f"[green]Restored[/green] revision {sequence} of {document_id} "
        f"as revision [bold]{result.sequence}[/bold]"
    )
