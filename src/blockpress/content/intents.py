"""
Edit Intents

Structured edit requests sent by the editing surface. The surface never
mutates elements directly; it describes what it wants and the intent is
applied to a content tree here, consulting the block catalog for default
properties and composition rules.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from blockpress.blocks.catalog import BlockCatalog
from blockpress.content.tree import ContentTree, ElementNode
from blockpress.core.exceptions import ErrorCode, ValidationFailure


@dataclass
class InsertElement:
    """Insert a new element of a block type with its default properties."""
    block_type: str
    parent_id: Optional[str] = None
    position: Optional[int] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    element_id: Optional[str] = None


@dataclass
class MoveElement:
    """Move an element to a position under a (possibly different) parent."""
    element_id: str
    parent_id: Optional[str] = None
    position: Optional[int] = None


@dataclass
class PatchProperties:
    """Merge property changes into an element."""
    element_id: str
    patch: Dict[str, Any] = field(default_factory=dict)
    remove: List[str] = field(default_factory=list)


@dataclass
class RemoveElement:
    """Remove an element and its subtree."""
    element_id: str


EditIntent = Union[InsertElement, MoveElement, PatchProperties, RemoveElement]


def new_element_id() -> str:
    return uuid.uuid4().hex[:12]


def intent_from_payload(payload: Mapping[str, Any]) -> EditIntent:
    """
    Decode an intent message from the editing surface.

    Expected shape: ``{"action": "insert" | "move" | "patch" | "remove", ...}``

    Raises:
        ValidationFailure: If the message is malformed
    """
    if not isinstance(payload, Mapping):
        raise ValidationFailure("Edit intent must be a mapping", problems=["intent: expected a mapping"])

    action = payload.get('action')
    try:
        if action == 'insert':
            return InsertElement(
                block_type=payload['type'],
                parent_id=payload.get('parent_id'),
                position=payload.get('position'),
                properties=dict(payload.get('properties') or {}),
                element_id=payload.get('id'),
            )
        if action == 'move':
            return MoveElement(
                element_id=payload['id'],
                parent_id=payload.get('parent_id'),
                position=payload.get('position'),
            )
        if action == 'patch':
            return PatchProperties(
                element_id=payload['id'],
                patch=dict(payload.get('properties') or {}),
                remove=list(payload.get('remove') or []),
            )
        if action == 'remove':
            return RemoveElement(element_id=payload['id'])
    except KeyError as e:
        raise ValidationFailure(
            f"Edit intent '{action}' is missing {e.args[0]!r}",
            problems=[f"intent.{e.args[0]}: required"],
            error_code=ErrorCode.VALIDATION_MISSING_FIELD,
        ) from e

    raise ValidationFailure(f"Unknown edit action: {action!r}", problems=[f"intent.action: {action!r}"])


def _check_parent(tree: ContentTree, catalog: BlockCatalog, parent_id: Optional[str]) -> None:
    if parent_id is None:
        return

    parent = tree.get(parent_id)
    definition = catalog.get(parent.type)
    if definition is None or not definition.is_container:
        raise ValidationFailure(
            f"Element '{parent_id}' does not accept children",
            problems=[f"{parent_id}: block type '{parent.type}' is not a container"],
            error_code=ErrorCode.VALIDATION_CONSTRAINT_VIOLATION,
        )


def apply_intent(tree: ContentTree, intent: EditIntent, catalog: BlockCatalog) -> ElementNode:
    """
    Apply an edit intent to a tree in place.

    Returns:
        The inserted, moved, patched or removed element

    Raises:
        ValidationFailure: If the edit would break the tree or composition rules
        ElementNotFound: If a referenced element does not exist
    """
    if isinstance(intent, InsertElement):
        definition = catalog.get(intent.block_type)
        if definition is None:
            raise ValidationFailure(
                f"Cannot insert unregistered block type '{intent.block_type}'",
                problems=[f"type: '{intent.block_type}' is not registered"],
                error_code=ErrorCode.VALIDATION_INVALID_INPUT,
            )
        _check_parent(tree, catalog, intent.parent_id)

        properties = definition.defaults()
        properties.update(intent.properties)
        node = ElementNode(
            id=intent.element_id or new_element_id(),
            type=definition.id,
            properties=properties,
        )
        return tree.insert(node, parent_id=intent.parent_id, position=intent.position)

    if isinstance(intent, MoveElement):
        _check_parent(tree, catalog, intent.parent_id)
        return tree.move(intent.element_id, parent_id=intent.parent_id, position=intent.position)

    if isinstance(intent, PatchProperties):
        return tree.update_properties(intent.element_id, intent.patch, remove=intent.remove)

    if isinstance(intent, RemoveElement):
        return tree.remove(intent.element_id)

    raise ValidationFailure(f"Unsupported edit intent: {type(intent).__name__}")
