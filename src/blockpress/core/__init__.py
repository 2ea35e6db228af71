"""
Core BlockPress Package

Contains core infrastructure components including plugins, configuration,
revision storage and error handling.
"""

from blockpress.core.exceptions import (
    BlockPressError,
    ConfigurationError,
    DocumentNotFound,
    ElementNotFound,
    ErrorCode,
    ErrorContext,
    HookCallbackFailure,
    OperationCancelled,
    PluginLoadFailure,
    RecoverySuggestion,
    RevisionConflict,
    UnknownBlockType,
    ValidationFailure,
)

__all__ = [
    # Exception classes
    'BlockPressError',
    'ConfigurationError',
    'DocumentNotFound',
    'ElementNotFound',
    'HookCallbackFailure',
    'OperationCancelled',
    'PluginLoadFailure',
    'RevisionConflict',
    'UnknownBlockType',
    'ValidationFailure',

    # Error details
    'ErrorCode',
    'ErrorContext',
    'RecoverySuggestion',
]
