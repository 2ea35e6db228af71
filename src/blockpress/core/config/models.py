"""
Configuration Models

Pydantic models for type-safe configuration of plugin loading, revision
storage and runtime behaviour.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_MODULE_PATH = re.compile(r"^[A-Za-z_][\w.]*(:[A-Za-z_]\w*)?$")


class ExternalPluginConfig(BaseModel):
    """An externally-configured plugin and its activation state."""

    name: str = Field(
        ...,
        min_length=1,
        description="Plugin name"
    )
    module: str = Field(
        ...,
        description="Dotted module path, 'module:attribute', or path to a .py file"
    )
    is_active: bool = Field(
        default=True,
        description="Only active plugins are discovered"
    )

    @field_validator('module')
    @classmethod
    def validate_module(cls, v):
        """Validate the module reference format."""
        v = v.strip()
        if v.endswith('.py') or _MODULE_PATH.match(v):
            return v
        raise ValueError(f"Invalid plugin module reference: {v}")


class PluginsConfig(BaseModel):
    """Configuration for plugin discovery and loading."""

    builtin: List[str] = Field(
        default_factory=lambda: ["basic"],
        description="Built-in plugins to load, in registration order"
    )
    external: List[ExternalPluginConfig] = Field(
        default_factory=list,
        description="Externally-configured plugins, in registration order"
    )
    activation_source: str = Field(
        default="config",
        description="Where external activation rows come from (config, store, both)"
    )
    discover_entry_points: bool = Field(
        default=False,
        description="Also load plugins published under the entry point group"
    )
    entry_point_group: str = Field(
        default="blockpress.plugins",
        description="Entry point group searched for plugins"
    )
    disabled_plugins: List[str] = Field(
        default_factory=list,
        description="Plugin names never loaded"
    )
    load_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum concurrent plugin loads"
    )

    @field_validator('activation_source')
    @classmethod
    def validate_activation_source(cls, v):
        """Validate activation source."""
        valid_sources = {'config', 'store', 'both'}
        if v.lower() not in valid_sources:
            raise ValueError(f"Invalid activation source: {v}. Valid: {', '.join(sorted(valid_sources))}")
        return v.lower()

    @model_validator(mode='after')
    def validate_unique_external_names(self):
        """External plugin names must be unique."""
        names = [plugin.name for plugin in self.external]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate external plugin names: {', '.join(duplicates)}")
        return self


class StorageConfig(BaseModel):
    """Configuration for revision storage."""

    backend: str = Field(
        default="sqlite",
        description="Revision store backend (memory, sqlite)"
    )
    db_path: Path = Field(
        default=Path(".blockpress/revisions.db"),
        description="SQLite database file"
    )
    conflict_policy: str = Field(
        default="reject",
        description="Concurrent save handling per document (reject, queue)"
    )
    queue_timeout: float = Field(
        default=5.0,
        gt=0.0,
        le=300.0,
        description="Seconds a queued save waits for the running one"
    )

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v):
        """Validate storage backend."""
        valid_backends = {'memory', 'sqlite'}
        if v.lower() not in valid_backends:
            raise ValueError(f"Invalid storage backend: {v}. Valid: {', '.join(sorted(valid_backends))}")
        return v.lower()

    @field_validator('conflict_policy')
    @classmethod
    def validate_conflict_policy(cls, v):
        """Validate conflict policy."""
        valid_policies = {'reject', 'queue'}
        if v.lower() not in valid_policies:
            raise ValueError(f"Invalid conflict policy: {v}. Valid: {', '.join(sorted(valid_policies))}")
        return v.lower()


class AppConfig(BaseModel):
    """Root application configuration model."""

    # Metadata
    version: str = Field(default="0.1.0", description="Configuration version")
    created: datetime = Field(default_factory=datetime.now, description="Configuration creation time")

    # Core Configuration Sections
    plugins: PluginsConfig = Field(default_factory=PluginsConfig, description="Plugin configuration")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Storage configuration")

    # General Settings
    verbose: bool = Field(
        default=False,
        description="Enable verbose logging output"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with detailed logging"
    )
    max_hook_failures: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Recent hook subscriber failures kept for inspection"
    )

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
    )

    def get_log_level(self) -> str:
        if self.debug:
            return "DEBUG"
        if self.verbose:
            return "INFO"
        return "WARNING"
