"""
Configuration Management Package

Provides Pydantic-based configuration models and management for BlockPress.
"""

from blockpress.core.config.models import AppConfig, ExternalPluginConfig, PluginsConfig, StorageConfig
from blockpress.core.config.manager import ConfigManager

__all__ = [
    "AppConfig",
    "ExternalPluginConfig",
    "PluginsConfig",
    "StorageConfig",
    "ConfigManager",
]
