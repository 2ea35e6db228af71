"""
Block Types

Block definitions, capability flags and the catalog that maps block-type ids
to their definitions.
"""

from blockpress.blocks.base import (
    BlockDefinition,
    CONTAINER,
    INTERACTIVE,
    MEDIA,
    TEXT,
)
from blockpress.blocks.catalog import BlockCatalog

__all__ = [
    'BlockDefinition',
    'BlockCatalog',
    'CONTAINER',
    'INTERACTIVE',
    'MEDIA',
    'TEXT',
]
