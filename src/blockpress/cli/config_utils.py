"""
Configuration Utilities for CLI Commands

Loading configuration from CLI options and building a runtime from it.
"""

from typing import Any, Dict, Optional

from rich.panel import Panel

from blockpress.cli.utils import console, handle_error, setup_logging
from blockpress.core.config import AppConfig, ConfigManager
from blockpress.core.exceptions import ConfigurationError
from blockpress.runtime import Runtime, build_runtime


def build_cli_args(**kwargs: Any) -> Dict[str, Any]:
    """Drop options the user did not set so they do not override lower layers."""
    return {key: value for key, value in kwargs.items() if value is not None}


def load_config_from_cli(
    config_file: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None
) -> AppConfig:
    """
    Load configuration from CLI arguments with proper error handling.

    Args:
        config_file: Optional path to configuration file
        cli_args: Dictionary of CLI arguments to override config

    Returns:
        Validated AppConfig instance

    Raises:
        typer.Exit: If configuration is invalid
    """
    try:
        config_manager = ConfigManager(config_file=config_file)
        app_config = config_manager.load_config(cli_args=cli_args or {})
    except ConfigurationError as e:
        handle_error(e)

    setup_logging(app_config.get_log_level())

    warnings = config_manager.validate_config(app_config)
    if warnings and app_config.verbose:
        console.print("[yellow]Configuration warnings:[/yellow]")
        for warning in warnings:
            console.print(f"  • {warning}")
        console.print()

    return app_config


def open_runtime(
    config_file: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None
) -> Runtime:
    """Load configuration and build a runtime for one command."""
    app_config = load_config_from_cli(config_file, cli_args)
    runtime = build_runtime(app_config)

    summary = runtime.loader_summary
    if summary.failed_count and app_config.verbose:
        for failure in summary.failures:
            console.print(f"[yellow]Plugin {failure.name} not loaded: {failure.reason}[/yellow]")
    return runtime


def print_config_summary(config: AppConfig) -> None:
    """Print a summary of the current configuration."""
    config_lines = [
        f"Built-in plugins: [cyan]{', '.join(config.plugins.builtin) or 'none'}[/cyan]",
        f"External plugins: [cyan]{len(config.plugins.external)}[/cyan] "
        f"(source: {config.plugins.activation_source})",
        f"Storage: [cyan]{config.storage.backend}[/cyan]",
    ]
    if config.storage.backend == "sqlite":
        config_lines.append(f"Database: [cyan]{config.storage.db_path}[/cyan]")
    config_lines.append(f"Conflict policy: [cyan]{config.storage.conflict_policy}[/cyan]")
    if config.plugins.disabled_plugins:
        config_lines.append(f"Disabled: [yellow]{', '.join(config.plugins.disabled_plugins)}[/yellow]")

    console.print(Panel(
        "\n".join(config_lines),
        title="[bold]Configuration[/bold]",
        border_style="green"
    ))
