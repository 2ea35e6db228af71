"""
Content Tree Model

The ordered element structure of a document. Trees are plain data: they are
validated without consulting the block catalog, and every mutation goes
through a tree-level operation so element ids stay unique.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from blockpress.core.exceptions import ElementNotFound, ErrorCode, ValidationFailure

MAX_DEPTH = 64


@dataclass
class ElementNode:
    """One element of a content tree."""
    id: str
    type: str
    properties: Dict[str, Any] = field(default_factory=dict)
    children: List['ElementNode'] = field(default_factory=list)

    def copy(self) -> 'ElementNode':
        return copy.deepcopy(self)

    def walk(self) -> Iterator['ElementNode']:
        """Yield this node and its descendants depth-first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'id': self.id,
            'type': self.type,
            'properties': copy.deepcopy(self.properties),
        }
        if self.children:
            payload['children'] = [child.to_payload() for child in self.children]
        return payload


@dataclass
class ContentTree:
    """An editable document state: an ordered list of root elements."""
    elements: List[ElementNode] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> 'ContentTree':
        """
        Parse a raw payload into a validated tree.

        Accepts ``{"elements": [...]}`` or a bare list of element mappings.

        Raises:
            ValidationFailure: If the payload is structurally malformed
        """
        if isinstance(payload, Mapping):
            raw_elements = payload.get('elements', [])
        else:
            raw_elements = payload

        if not isinstance(raw_elements, list):
            raise ValidationFailure(
                "Content payload must contain a list of elements",
                problems=["elements: expected a list"],
                error_code=ErrorCode.VALIDATION_TYPE_MISMATCH,
            )

        problems: List[str] = []
        elements = [
            node for node in (
                _parse_node(raw, f"elements[{index}]", problems, 1)
                for index, raw in enumerate(raw_elements)
            ) if node is not None
        ]

        tree = cls(elements=elements)
        problems.extend(tree.problems())
        if problems:
            raise ValidationFailure("Content payload is invalid", problems=problems)
        return tree

    def to_payload(self) -> Dict[str, Any]:
        return {'elements': [node.to_payload() for node in self.elements]}

    def copy(self) -> 'ContentTree':
        return copy.deepcopy(self)

    def walk(self) -> Iterator[ElementNode]:
        """Yield every element depth-first in document order."""
        for node in self.elements:
            yield from node.walk()

    def __len__(self) -> int:
        return sum(1 for _ in self.walk())

    def ids(self) -> List[str]:
        return [node.id for node in self.walk()]

    def problems(self) -> List[str]:
        """
        Collect structural problems without raising.

        Checks that every element has a string id and type, that ids are
        unique across the tree, that properties and children have the right
        shape, and that nesting stays within ``MAX_DEPTH`` levels.
        """
        problems: List[str] = []
        seen: Dict[str, str] = {}

        def visit(nodes: Sequence[Any], path: str, depth: int) -> None:
            for index, node in enumerate(nodes):
                where = f"{path}[{index}]"
                if not isinstance(node, ElementNode):
                    problems.append(f"{where}: expected an element, got {type(node).__name__}")
                    continue
                if not isinstance(node.id, str) or not node.id:
                    problems.append(f"{where}: missing id")
                elif node.id in seen:
                    problems.append(f"{where}: duplicate id '{node.id}' (first at {seen[node.id]})")
                else:
                    seen[node.id] = where
                if not isinstance(node.type, str) or not node.type:
                    problems.append(f"{where}: missing type")
                if not isinstance(node.properties, dict):
                    problems.append(f"{where}: properties must be a mapping")
                elif any(not isinstance(key, str) for key in node.properties):
                    problems.append(f"{where}: property keys must be strings")
                if not isinstance(node.children, list):
                    problems.append(f"{where}: children must be a list")
                elif node.children and depth >= MAX_DEPTH:
                    problems.append(f"{where}: nested deeper than {MAX_DEPTH} levels")
                else:
                    visit(node.children, f"{where}.children", depth + 1)

        visit(self.elements, "elements", 1)
        return problems

    def validate(self) -> 'ContentTree':
        """
        Raise if the tree is structurally invalid.

        Raises:
            ValidationFailure: Listing every problem found
        """
        problems = self.problems()
        if problems:
            raise ValidationFailure("Content tree is invalid", problems=problems)
        return self

    # Lookup

    def find(self, element_id: str) -> Optional[ElementNode]:
        for node in self.walk():
            if node.id == element_id:
                return node
        return None

    def get(self, element_id: str) -> ElementNode:
        node = self.find(element_id)
        if node is None:
            raise ElementNotFound(element_id)
        return node

    def locate(self, element_id: str) -> Tuple[Optional[ElementNode], int]:
        """
        Find an element's parent and index.

        Returns:
            (parent, index) where parent is None for root elements

        Raises:
            ElementNotFound: If no element has the id
        """
        def search(nodes: List[ElementNode], parent: Optional[ElementNode]):
            for index, node in enumerate(nodes):
                if node.id == element_id:
                    return parent, index
                found = search(node.children, node)
                if found is not None:
                    return found
            return None

        found = search(self.elements, None)
        if found is None:
            raise ElementNotFound(element_id)
        return found

    def _siblings(self, parent_id: Optional[str]) -> List[ElementNode]:
        if parent_id is None:
            return self.elements
        return self.get(parent_id).children

    # Mutations

    def insert(
        self,
        node: ElementNode,
        parent_id: Optional[str] = None,
        position: Optional[int] = None
    ) -> ElementNode:
        """
        Insert an element (and its subtree) under a parent.

        Args:
            node: Element to insert; the tree takes ownership of it
            parent_id: Parent element id, or None for the root list
            position: Index among siblings; appended when None

        Raises:
            ValidationFailure: If the element is malformed or any id in its
                subtree is already used
            ElementNotFound: If the parent does not exist
        """
        problems = ContentTree(elements=[node]).problems()
        if problems:
            raise ValidationFailure("Element is invalid", problems=problems)

        existing = set(self.ids())
        clashes = [child.id for child in node.walk() if child.id in existing]
        if clashes:
            raise ValidationFailure(
                "Element id already in use",
                problems=[f"duplicate id '{element_id}'" for element_id in clashes],
                error_code=ErrorCode.VALIDATION_CONSTRAINT_VIOLATION,
            )

        siblings = self._siblings(parent_id)
        siblings.insert(_clamp(position, len(siblings)), node)
        return node

    def move(
        self,
        element_id: str,
        parent_id: Optional[str] = None,
        position: Optional[int] = None
    ) -> ElementNode:
        """
        Move an element to a new parent and/or position.

        ``position`` indexes the target sibling list after the element has
        been detached from its old place.

        Raises:
            ElementNotFound: If the element or target parent does not exist
            ValidationFailure: If the element would be moved into itself
        """
        node = self.get(element_id)
        if parent_id is not None and any(n.id == parent_id for n in node.walk()):
            raise ValidationFailure(
                "Cannot move an element into itself",
                problems=[f"'{parent_id}' is '{element_id}' or one of its descendants"],
                error_code=ErrorCode.VALIDATION_CONSTRAINT_VIOLATION,
            )

        target = self._siblings(parent_id)
        parent, index = self.locate(element_id)
        source = parent.children if parent is not None else self.elements
        source.pop(index)
        target.insert(_clamp(position, len(target)), node)
        return node

    def update_properties(
        self,
        element_id: str,
        patch: Mapping[str, Any],
        remove: Sequence[str] = ()
    ) -> ElementNode:
        """
        Shallow-merge a patch into an element's properties.

        Args:
            element_id: Element to update
            patch: Keys to set
            remove: Keys to delete

        Raises:
            ElementNotFound: If the element does not exist
            ValidationFailure: If the patch has non-string keys
        """
        if not isinstance(patch, Mapping) or any(not isinstance(k, str) for k in patch):
            raise ValidationFailure(
                "Property patch must be a mapping with string keys",
                problems=[f"{element_id}: invalid property patch"],
                error_code=ErrorCode.VALIDATION_TYPE_MISMATCH,
            )

        node = self.get(element_id)
        node.properties.update(copy.deepcopy(dict(patch)))
        for key in remove:
            node.properties.pop(key, None)
        return node

    def remove(self, element_id: str) -> ElementNode:
        """
        Remove an element and its subtree.

        Returns:
            The detached element

        Raises:
            ElementNotFound: If the element does not exist
        """
        parent, index = self.locate(element_id)
        siblings = parent.children if parent is not None else self.elements
        return siblings.pop(index)


def _clamp(position: Optional[int], length: int) -> int:
    if position is None:
        return length
    if position < 0:
        position += length + 1
    return max(0, min(position, length))


def _parse_node(raw: Any, path: str, problems: List[str], depth: int) -> Optional[ElementNode]:
    if not isinstance(raw, Mapping):
        problems.append(f"{path}: expected a mapping, got {type(raw).__name__}")
        return None

    properties = raw.get('properties', {})
    if properties is None:
        properties = {}
    if not isinstance(properties, Mapping):
        problems.append(f"{path}: properties must be a mapping")
        properties = {}

    raw_children = raw.get('children', [])
    if raw_children is None:
        raw_children = []
    if not isinstance(raw_children, list):
        problems.append(f"{path}: children must be a list")
        raw_children = []
    elif raw_children and depth >= MAX_DEPTH:
        problems.append(f"{path}: nested deeper than {MAX_DEPTH} levels")
        raw_children = []

    children = [
        child for child in (
            _parse_node(item, f"{path}.children[{index}]", problems, depth + 1)
            for index, item in enumerate(raw_children)
        ) if child is not None
    ]

    # id/type problems are reported by ContentTree.problems()
    return ElementNode(
        id=raw.get('id'),
        type=raw.get('type'),
        properties=copy.deepcopy(dict(properties)),
        children=children,
    )
