"""
Configuration Manager

Handles hierarchical configuration loading, validation, and management
with support for CLI args → environment variables → config files → defaults.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from blockpress.core.config.models import AppConfig, ExternalPluginConfig, PluginsConfig, StorageConfig
from blockpress.core.exceptions import ConfigurationError, ErrorCode


class ConfigManager:
    """
    Manages application configuration with hierarchical loading and validation.

    Configuration sources in order of precedence:
    1. CLI arguments (highest priority)
    2. Environment variables
    3. Configuration files
    4. Default values (lowest priority)
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """
        Initialize configuration manager.

        Args:
            config_file: Optional path to configuration file
        """
        self.config_file = Path(config_file) if config_file else None
        self._config: Optional[AppConfig] = None
        self._config_paths = self._get_default_config_paths()

    def _get_default_config_paths(self) -> List[Path]:
        """Get default configuration file search paths."""
        search_paths = [
            Path.cwd() / "blockpress.yaml",
            Path.cwd() / "blockpress.yml",
            Path.cwd() / ".blockpress.yaml",
            Path.home() / ".config" / "blockpress" / "config.yaml",
        ]

        xdg_config = os.environ.get('XDG_CONFIG_HOME')
        if xdg_config:
            search_paths.append(Path(xdg_config) / "blockpress" / "config.yaml")

        return search_paths

    def load_config(
        self,
        cli_args: Optional[Dict[str, Any]] = None,
        env_prefix: str = "BLOCKPRESS_"
    ) -> AppConfig:
        """
        Load and validate configuration from all sources.

        Args:
            cli_args: Dictionary of CLI arguments
            env_prefix: Prefix for environment variables

        Returns:
            Validated AppConfig instance

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config_data: Dict[str, Any] = {}

        file_config = self._load_config_file()
        if file_config:
            config_data.update(file_config)

        env_config = self._load_env_config(env_prefix)
        if env_config:
            config_data = self._deep_merge(config_data, env_config)

        if cli_args:
            cli_config = self._normalize_cli_args(cli_args)
            config_data = self._deep_merge(config_data, cli_config)

        try:
            self._config = AppConfig(**config_data)
            return self._config
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e}",
                error_code=ErrorCode.CONFIG_INVALID_VALUE,
                cause=e,
            ) from e

    def _load_config_file(self) -> Optional[Dict[str, Any]]:
        """Load configuration from file."""
        config_file = self.config_file

        if config_file and not config_file.exists():
            raise ConfigurationError(
                f"Config file not found: {config_file}",
                error_code=ErrorCode.CONFIG_FILE_NOT_FOUND,
                config_key="config_file",
                config_value=str(config_file),
            )

        if not config_file:
            for path in self._config_paths:
                if path.exists() and path.is_file():
                    config_file = path
                    break

        if not config_file:
            return None

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                if config_file.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f) or {}
        except (IOError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load config file {config_file}: {e}", cause=e) from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_file} must contain a mapping")
        return data

    def _load_env_config(self, prefix: str) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config: Dict[str, Any] = {}

        env_mappings = {
            # Plugin configuration
            f"{prefix}BUILTIN_PLUGINS": ("plugins", "builtin", self._parse_list),
            f"{prefix}DISABLED_PLUGINS": ("plugins", "disabled_plugins", self._parse_list),
            f"{prefix}ACTIVATION_SOURCE": ("plugins", "activation_source", str),
            f"{prefix}DISCOVER_ENTRY_POINTS": ("plugins", "discover_entry_points", self._parse_bool),
            f"{prefix}LOAD_WORKERS": ("plugins", "load_workers", int),

            # Storage configuration
            f"{prefix}STORAGE_BACKEND": ("storage", "backend", str),
            f"{prefix}DB_PATH": ("storage", "db_path", str),
            f"{prefix}CONFLICT_POLICY": ("storage", "conflict_policy", str),
            f"{prefix}QUEUE_TIMEOUT": ("storage", "queue_timeout", float),

            # General settings
            f"{prefix}VERBOSE": ("verbose", None, self._parse_bool),
            f"{prefix}DEBUG": ("debug", None, self._parse_bool),
        }

        for env_var, (section, key, parser) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is None:
                continue
            try:
                parsed_value = parser(value)
            except (ValueError, TypeError) as e:
                raise ConfigurationError(
                    f"Invalid value for {env_var}: {value} ({e})",
                    error_code=ErrorCode.CONFIG_INVALID_VALUE,
                    config_key=env_var,
                    config_value=value,
                ) from e

            if key is None:
                env_config[section] = parsed_value
            else:
                env_config.setdefault(section, {})[key] = parsed_value

        return env_config

    def _normalize_cli_args(self, cli_args: Dict[str, Any]) -> Dict[str, Any]:
        """Normalize CLI arguments to configuration structure."""
        normalized: Dict[str, Any] = {}

        cli_mappings = {
            'verbose': 'verbose',
            'debug': 'debug',

            'plugins': ('plugins', 'builtin'),
            'disable': ('plugins', 'disabled_plugins'),
            'entry_points': ('plugins', 'discover_entry_points'),
            'workers': ('plugins', 'load_workers'),

            'backend': ('storage', 'backend'),
            'db': ('storage', 'db_path'),
            'conflict_policy': ('storage', 'conflict_policy'),
        }

        for cli_key, value in cli_args.items():
            if value is None:
                continue

            mapping = cli_mappings.get(cli_key)
            if isinstance(mapping, tuple):
                section, key = mapping
                normalized.setdefault(section, {})[key] = value
            elif mapping:
                normalized[mapping] = value

        return normalized

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries, with override taking precedence."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    @staticmethod
    def _parse_bool(value: Union[str, bool]) -> bool:
        """Parse boolean value from string."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in {'true', '1', 'yes', 'on', 'enabled'}
        return bool(value)

    @staticmethod
    def _parse_list(value: Union[str, List[str]]) -> List[str]:
        """Parse list value from string."""
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            return [item.strip() for item in value.split(',') if item.strip()]
        return []

    def validate_config(self, config: Optional[AppConfig] = None) -> List[str]:
        """
        Validate configuration and return list of warnings/issues.

        Args:
            config: Configuration to validate (uses loaded config if None)

        Returns:
            List of validation warnings/issues
        """
        if config is None:
            config = self._config

        if config is None:
            return ["No configuration loaded"]

        warnings = []

        for name in config.plugins.disabled_plugins:
            if name in config.plugins.builtin:
                warnings.append(f"Built-in plugin '{name}' is listed and disabled")

        inactive = [p.name for p in config.plugins.external if not p.is_active]
        if inactive:
            warnings.append(f"Inactive external plugins: {', '.join(inactive)}")

        if config.plugins.activation_source == "store" and config.storage.backend == "memory":
            warnings.append("Activation rows come from the store but the memory backend starts empty")

        if config.storage.backend == "sqlite":
            try:
                config.storage.db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError:
                warnings.append(f"Cannot create database directory: {config.storage.db_path.parent}")

        return warnings

    def generate_schema(self, output_file: Optional[Path] = None) -> Dict[str, Any]:
        """
        Generate JSON schema for configuration.

        Args:
            output_file: Optional file to write schema to

        Returns:
            JSON schema dictionary
        """
        schema = AppConfig.model_json_schema()

        if output_file:
            with open(output_file, 'w', encoding='utf-8') as f:
                json.dump(schema, f, indent=2)

        return schema

    def create_example_config(self, output_file: Path, profile: str = "default") -> None:
        """
        Create example configuration file.

        Args:
            output_file: Path to write configuration file
            profile: Configuration profile (default, ephemeral, extended)
        """
        if profile == "ephemeral":
            config = AppConfig(storage=StorageConfig(backend="memory"))
        elif profile == "extended":
            config = AppConfig(
                plugins=PluginsConfig(
                    external=[
                        ExternalPluginConfig(name="gallery", module="blockpress_gallery:get_plugin"),
                        ExternalPluginConfig(name="legacy-embeds", module="legacy_embeds", is_active=False),
                    ],
                    discover_entry_points=True,
                ),
                storage=StorageConfig(conflict_policy="queue"),
            )
        else:
            config = AppConfig()

        config_dict = config.model_dump(mode='json')

        with open(output_file, 'w', encoding='utf-8') as f:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2)

    @property
    def config(self) -> Optional[AppConfig]:
        """Get the loaded configuration."""
        return self._config
