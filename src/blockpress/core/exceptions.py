"""
Core Exception Hierarchy for BlockPress

Provides error classification with error codes, machine-readable reasons,
recovery suggestions, and context information for the composition engine.
"""

import sys
import time
import traceback
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Standard error codes for different error categories."""

    # Configuration errors (3000-3999)
    CONFIG_INVALID_FORMAT = 3001
    CONFIG_INVALID_VALUE = 3003
    CONFIG_FILE_NOT_FOUND = 3004

    # Validation errors (5000-5999)
    VALIDATION_INVALID_INPUT = 5001
    VALIDATION_MISSING_FIELD = 5002
    VALIDATION_TYPE_MISMATCH = 5003
    VALIDATION_CONSTRAINT_VIOLATION = 5006

    # Plugin errors (7000-7999)
    PLUGIN_NOT_FOUND = 7001
    PLUGIN_LOAD_FAILED = 7002
    PLUGIN_VALIDATION_FAILED = 7003
    PLUGIN_EXECUTION_FAILED = 7004

    # Document errors (8000-8999)
    DOCUMENT_NOT_FOUND = 8001
    ELEMENT_NOT_FOUND = 8002
    BLOCK_TYPE_UNKNOWN = 8003
    REVISION_CONFLICT = 8004
    SAVE_IN_PROGRESS = 8005

    # Generic/unknown errors (9000-9999)
    UNKNOWN_ERROR = 9000
    INTERNAL_ERROR = 9001
    OPERATION_CANCELLED = 9002


@dataclass
class ErrorContext:
    """Contextual information about an error occurrence."""

    operation: str = ""
    document_id: Optional[str] = None
    plugin_name: Optional[str] = None
    hook_name: Optional[str] = None
    element_id: Optional[str] = None
    correlation_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    system_info: Dict[str, Any] = field(default_factory=dict)
    user_context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary for serialization."""
        return {
            'operation': self.operation,
            'document_id': self.document_id,
            'plugin_name': self.plugin_name,
            'hook_name': self.hook_name,
            'element_id': self.element_id,
            'correlation_id': self.correlation_id,
            'timestamp': self.timestamp,
            'system_info': self.system_info,
            'user_context': self.user_context
        }


@dataclass
class RecoverySuggestion:
    """Structured recovery suggestion for error resolution."""

    action: str  # Brief action description
    description: str  # Detailed explanation
    command: Optional[str] = None  # CLI command to resolve
    priority: int = 1  # Priority order (1=highest)

    def to_dict(self) -> Dict[str, Any]:
        """Convert suggestion to dictionary."""
        return {
            'action': self.action,
            'description': self.description,
            'command': self.command,
            'priority': self.priority
        }


class BlockPressError(Exception):
    """
    Base exception for all BlockPress errors.

    Every error carries a machine-readable ``reason`` string used at the
    service boundary, alongside an error code, context and suggestions.
    """

    reason = "internal"

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True,
        suggestions: Optional[List[RecoverySuggestion]] = None
    ):
        """
        Initialize BlockPress error.

        Args:
            message: Human-readable error description
            error_code: Standardized error code
            context: Contextual information about the error
            cause: Original exception that caused this error
            recoverable: Whether the error can potentially be recovered
            suggestions: List of recovery suggestions
        """
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.context = context or ErrorContext()
        self.cause = cause
        self.recoverable = recoverable
        self.suggestions = suggestions or []
        self.stack_trace = traceback.format_exc() if cause else None

        if not self.context.correlation_id:
            self.context.correlation_id = str(uuid.uuid4())[:8]

        if not self.context.system_info:
            self.context.system_info = {
                'platform': sys.platform,
                'python_version': sys.version.split()[0],
            }

    def add_suggestion(self, suggestion: RecoverySuggestion) -> None:
        """Add a recovery suggestion to the error."""
        self.suggestions.append(suggestion)
        self.suggestions.sort(key=lambda s: s.priority)

    def get_user_message(self) -> str:
        """Get user-friendly error message with suggestions."""
        lines = [f"Error: {self.message}"]

        if self.error_code != ErrorCode.UNKNOWN_ERROR:
            lines.append(f"Error Code: {self.error_code.value}")

        if self.context.correlation_id:
            lines.append(f"Correlation ID: {self.context.correlation_id}")

        if self.suggestions:
            lines.append("\nSuggested solutions:")
            for i, suggestion in enumerate(self.suggestions[:3], 1):
                lines.append(f"  {i}. {suggestion.action}")
                lines.append(f"     {suggestion.description}")
                if suggestion.command:
                    lines.append(f"     Command: {suggestion.command}")

        return "\n".join(lines)

    def get_debug_info(self) -> Dict[str, Any]:
        """Get comprehensive debug information."""
        return {
            'error_type': self.__class__.__name__,
            'reason': self.reason,
            'message': self.message,
            'error_code': self.error_code.value,
            'recoverable': self.recoverable,
            'context': self.context.to_dict(),
            'cause': {
                'type': type(self.cause).__name__ if self.cause else None,
                'message': str(self.cause) if self.cause else None
            },
            'suggestions': [s.to_dict() for s in self.suggestions],
            'stack_trace': self.stack_trace
        }


class PluginLoadFailure(BlockPressError):
    """A single plugin candidate could not be loaded or registered."""

    def __init__(
        self,
        message: str,
        plugin_name: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.PLUGIN_LOAD_FAILED,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext(operation="load_plugin")
        if plugin_name:
            context.plugin_name = plugin_name

        kwargs['context'] = context
        kwargs['error_code'] = error_code

        super().__init__(message, **kwargs)
        self.plugin_name = plugin_name


class HookCallbackFailure(BlockPressError):
    """A hook subscriber raised while a pipeline was running."""

    def __init__(
        self,
        message: str,
        hook_name: str,
        plugin_origin: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext(operation="run_hook")
        context.hook_name = hook_name
        context.plugin_name = plugin_origin

        kwargs['context'] = context
        kwargs['error_code'] = ErrorCode.PLUGIN_EXECUTION_FAILED

        super().__init__(message, **kwargs)
        self.hook_name = hook_name
        self.plugin_origin = plugin_origin


class UnknownBlockType(BlockPressError):
    """An element references a block type with no registered definition."""

    reason = "unknown_block_type"

    def __init__(self, block_type: str, element_id: Optional[str] = None, **kwargs):
        context = kwargs.get('context') or ErrorContext(operation="resolve_element")
        context.element_id = element_id
        context.user_context['block_type'] = block_type

        kwargs['context'] = context
        kwargs['error_code'] = ErrorCode.BLOCK_TYPE_UNKNOWN

        super().__init__(f"Unknown block type '{block_type}'", **kwargs)
        self.block_type = block_type
        self.element_id = element_id


class ValidationFailure(BlockPressError):
    """Content failed structural or property validation."""

    reason = "validation_failed"

    def __init__(
        self,
        message: str,
        problems: Optional[List[str]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_INVALID_INPUT,
        **kwargs
    ):
        kwargs['error_code'] = error_code
        super().__init__(message, **kwargs)
        self.problems = list(problems or [])

    def get_user_message(self) -> str:
        message = super().get_user_message()
        if not self.problems:
            return message
        details = "\n".join(f"  - {problem}" for problem in self.problems)
        return f"{message}\nProblems:\n{details}"


class RevisionConflict(BlockPressError):
    """A save raced another save, or was based on a stale revision."""

    reason = "save_conflict"

    def __init__(
        self,
        message: str,
        document_id: str,
        expected_sequence: Optional[int] = None,
        current_sequence: Optional[int] = None,
        error_code: ErrorCode = ErrorCode.REVISION_CONFLICT,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext(operation="append_revision")
        context.document_id = document_id
        context.user_context['expected_sequence'] = expected_sequence
        context.user_context['current_sequence'] = current_sequence

        kwargs['context'] = context
        kwargs['error_code'] = error_code

        super().__init__(message, **kwargs)
        self.document_id = document_id
        self.expected_sequence = expected_sequence
        self.current_sequence = current_sequence

        self.add_suggestion(RecoverySuggestion(
            action="Reload the latest revision",
            description="Fetch the current revision, reapply the edit and save again.",
            command=f"blockpress document show {document_id}",
            priority=1
        ))


class DocumentNotFound(BlockPressError):
    """No revision exists for the requested document."""

    reason = "not_found"

    def __init__(self, document_id: str, sequence: Optional[int] = None, **kwargs):
        context = kwargs.get('context') or ErrorContext(operation="read_revision")
        context.document_id = document_id

        kwargs['context'] = context
        kwargs['error_code'] = ErrorCode.DOCUMENT_NOT_FOUND

        if sequence is None:
            message = f"Document '{document_id}' has no revisions"
        else:
            message = f"Document '{document_id}' has no revision {sequence}"
        super().__init__(message, **kwargs)
        self.document_id = document_id
        self.sequence = sequence


class ElementNotFound(BlockPressError):
    """An edit referenced an element id that is not in the tree."""

    reason = "not_found"

    def __init__(self, element_id: str, **kwargs):
        context = kwargs.get('context') or ErrorContext(operation="edit_tree")
        context.element_id = element_id

        kwargs['context'] = context
        kwargs['error_code'] = ErrorCode.ELEMENT_NOT_FOUND

        super().__init__(f"Element '{element_id}' not found", **kwargs)
        self.element_id = element_id


class ConfigurationError(BlockPressError):
    """Exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIG_INVALID_FORMAT,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext(operation="load_config")
        if config_key:
            context.user_context['config_key'] = config_key
            context.user_context['config_value'] = config_value

        kwargs['context'] = context
        kwargs['error_code'] = error_code

        super().__init__(message, **kwargs)

        if error_code == ErrorCode.CONFIG_FILE_NOT_FOUND:
            self.add_suggestion(RecoverySuggestion(
                action="Create configuration file",
                description="Create a configuration file using the default template.",
                command="blockpress config init blockpress.yaml",
                priority=1
            ))


class OperationCancelled(BlockPressError):
    """The caller abandoned an operation before it was acknowledged."""

    def __init__(self, message: str = "Operation cancelled", **kwargs):
        kwargs['error_code'] = ErrorCode.OPERATION_CANCELLED
        super().__init__(message, **kwargs)
