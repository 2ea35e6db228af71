"""
Config Command

Create, inspect and describe configuration files.
"""

from pathlib import Path
from typing import Annotated, Optional

import typer

from blockpress.cli.config_utils import load_config_from_cli, print_config_summary
from blockpress.cli.utils import console
from blockpress.core.config import ConfigManager

app = typer.Typer(
    name="config",
    help="Manage configuration",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

PROFILES = ("default", "ephemeral", "extended")


@app.command("init")
def init_config(
    output: Annotated[Path, typer.Argument(help="Configuration file to create")] = Path("blockpress.yaml"),
    profile: Annotated[str, typer.Option("--profile", "-p", help=f"Template profile ({', '.join(PROFILES)})")] = "default",
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing file")] = False,
):
    """Write an example configuration file."""
    if profile not in PROFILES:
        raise typer.BadParameter(f"Unknown profile '{profile}'. Valid: {', '.join(PROFILES)}")
    if output.exists() and not force:
        console.print(f"[red]{output} already exists; use --force to overwrite[/red]")
        raise typer.Exit(1)

    ConfigManager().create_example_config(output, profile=profile)
    console.print(f"[green]Created configuration file:[/green] {output}")


@app.command("show")
def show_config(
    config: Annotated[Optional[str], typer.Option("--config", "-c", help="Configuration file path")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the full configuration as JSON")] = False,
):
    """Show the effective configuration."""
    app_config = load_config_from_cli(config)
    if as_json:
        console.print_json(app_config.model_dump_json())
    else:
        print_config_summary(app_config)


@app.command("schema")
def config_schema(
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write the schema to a file")] = None,
):
    """Print the JSON schema of the configuration file."""
    schema = ConfigManager().generate_schema(output)
    if output:
        console.print(f"[green]Schema written to[/green] {output}")
    else:
        console.print_json(data=schema)
