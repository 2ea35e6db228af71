"""
BlockPress

Plugin-extensible block composition engine with an append-only revision
history per document.
"""

__version__ = "0.1.0"

from blockpress.runtime import Runtime, build_runtime
from blockpress.service import DocumentService, OperationResult

__all__ = [
    '__version__',
    'Runtime',
    'build_runtime',
    'DocumentService',
    'OperationResult',
]
