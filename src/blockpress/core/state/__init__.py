"""
Revision storage for BlockPress documents.
"""

from .store import (
    CONFLICT_QUEUE,
    CONFLICT_REJECT,
    InMemoryRevisionStore,
    PluginActivation,
    Revision,
    RevisionStore,
)
from .sqlite_store import SQLiteRevisionStore

__all__ = [
    'CONFLICT_QUEUE',
    'CONFLICT_REJECT',
    'InMemoryRevisionStore',
    'PluginActivation',
    'Revision',
    'RevisionStore',
    'SQLiteRevisionStore',
]
