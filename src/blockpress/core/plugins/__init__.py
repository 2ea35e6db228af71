"""
BlockPress Plugin System

Plugins extend the editor without touching the core: they contribute block
definitions and subscribe callbacks to document lifecycle hooks.

Key Components:
- HookPipeline: ordered, failure-isolated hook dispatch (collect and fold)
- PluginRegistry: merges plugin bundles into the catalog and the pipeline
- PluginLoader: discovery, isolated loading and ordered registration
"""

from .hooks import (
    AFTER_SAVE,
    BEFORE_RENDER,
    BEFORE_SAVE,
    ELEMENT_CONTROLS,
    ELEMENT_RENDER,
    DocumentHooks,
    HookPipeline,
    HookSubscription,
    hookimpl,
    hookspec,
)
from .registry import Plugin, PluginRegistry, RegistrationReport, coerce_plugin
from .loader import (
    LoadSummary,
    PluginCandidate,
    PluginLoader,
    PluginState,
    builtin_candidates,
    entry_point_candidates,
    external_candidates,
)

__all__ = [
    'AFTER_SAVE',
    'BEFORE_RENDER',
    'BEFORE_SAVE',
    'ELEMENT_CONTROLS',
    'ELEMENT_RENDER',
    'DocumentHooks',
    'HookPipeline',
    'HookSubscription',
    'hookimpl',
    'hookspec',
    'Plugin',
    'PluginRegistry',
    'RegistrationReport',
    'coerce_plugin',
    'LoadSummary',
    'PluginCandidate',
    'PluginLoader',
    'PluginState',
    'builtin_candidates',
    'entry_point_candidates',
    'external_candidates',
]
