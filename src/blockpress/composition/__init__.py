"""
Composition

Resolution of content trees against registered blocks and hooks, and the
editor session built on top of it.
"""

from blockpress.composition.resolver import (
    PLACEHOLDER_TYPE,
    CompositionResolver,
    ResolvedElement,
    ResolvedTree,
    SaveOutcome,
)
from blockpress.composition.session import EditSession, SessionState

__all__ = [
    'PLACEHOLDER_TYPE',
    'CompositionResolver',
    'ResolvedElement',
    'ResolvedTree',
    'SaveOutcome',
    'EditSession',
    'SessionState',
]
