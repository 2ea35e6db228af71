"""
Content Model

Content trees, their elements, and the edit intents that mutate them.
"""

from blockpress.content.tree import ContentTree, ElementNode
from blockpress.content.intents import (
    EditIntent,
    InsertElement,
    MoveElement,
    PatchProperties,
    RemoveElement,
    apply_intent,
    intent_from_payload,
)

__all__ = [
    'ContentTree',
    'ElementNode',
    'EditIntent',
    'InsertElement',
    'MoveElement',
    'PatchProperties',
    'RemoveElement',
    'apply_intent',
    'intent_from_payload',
]
