"""
Composition Resolver

Turns a content tree into its resolved form using the block catalog and the
hook pipeline, and drives the save sequence:

1. validate the tree
2. fold ``before_save`` over it
3. validate the transformed tree
4. resolve every element
5. append the transformed tree as a new revision
6. notify ``after_save``

Unknown block types never fail a tree; they resolve to a placeholder that
keeps the unresolved type id.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from blockpress.blocks.base import BlockDefinition
from blockpress.blocks.catalog import BlockCatalog
from blockpress.content.tree import ContentTree, ElementNode
from blockpress.core.exceptions import ErrorCode, UnknownBlockType, ValidationFailure
from blockpress.core.plugins.hooks import (
    AFTER_SAVE,
    BEFORE_RENDER,
    BEFORE_SAVE,
    ELEMENT_CONTROLS,
    ELEMENT_RENDER,
    HookPipeline,
)
from blockpress.core.plugins.registry import PluginRegistry
from blockpress.core.state.store import Revision, RevisionStore

PLACEHOLDER_TYPE = "placeholder"


@dataclass
class ResolvedElement:
    """An element ready to hand to the rendering surface."""
    id: str
    type: str
    display_name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    children: List['ResolvedElement'] = field(default_factory=list)
    placeholder: bool = False
    unresolved_type: Optional[str] = None
    controls: List[Any] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def walk(self) -> Iterator['ResolvedElement']:
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'type': self.type,
            'display_name': self.display_name,
            'properties': self.properties,
        }
        if self.placeholder:
            data['unresolved_type'] = self.unresolved_type
        if self.controls:
            data['controls'] = self.controls
        if self.errors:
            data['errors'] = self.errors
        if self.children:
            data['children'] = [child.to_dict() for child in self.children]
        return data


@dataclass
class ResolvedTree:
    """Result of resolving a content tree."""
    elements: List[ResolvedElement] = field(default_factory=list)
    placeholders: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    def walk(self) -> Iterator[ResolvedElement]:
        for element in self.elements:
            yield from element.walk()

    def find(self, element_id: str) -> Optional[ResolvedElement]:
        for element in self.walk():
            if element.id == element_id:
                return element
        return None

    @property
    def property_errors(self) -> List[str]:
        """Schema problems of elements that resolved to a registered block."""
        return [error for element in self.walk() if not element.placeholder for error in element.errors]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'elements': [element.to_dict() for element in self.elements],
            'placeholders': list(self.placeholders),
            'issues': list(self.issues),
        }


@dataclass
class SaveOutcome:
    """A committed revision and the resolution it was checked against."""
    revision: Revision
    resolved: ResolvedTree


class CompositionResolver:
    """
    Resolves content trees against the registered blocks and hooks.

    Subscribers only ever receive copies: the caller's tree is never touched
    by a hook, and a rejected fold step leaves no trace.
    """

    def __init__(self, catalog: BlockCatalog, pipeline: HookPipeline):
        self.catalog = catalog
        self.pipeline = pipeline
        self.logger = logging.getLogger("blockpress.composition.resolver")

    @classmethod
    def from_registry(cls, registry: PluginRegistry) -> 'CompositionResolver':
        return cls(registry.catalog, registry.pipeline)

    def resolve(self, tree: ContentTree, selected_id: Optional[str] = None) -> ResolvedTree:
        """
        Resolve every element of a tree.

        Args:
            tree: Tree to resolve (left unchanged)
            selected_id: Element currently selected in the editor; controls
                are gathered for it only

        Returns:
            The resolved tree with placeholders and issues recorded
        """
        result = ResolvedTree()
        result.elements = [self._resolve_node(node, selected_id, result) for node in tree.elements]

        if result.placeholders:
            self.logger.info(f"Resolved tree with {len(result.placeholders)} placeholder(s)")
        return result

    def _resolve_node(
        self,
        node: ElementNode,
        selected_id: Optional[str],
        result: ResolvedTree
    ) -> ResolvedElement:
        children = [self._resolve_node(child, selected_id, result) for child in node.children]

        definition = self.catalog.get(node.type)
        if definition is None:
            error = UnknownBlockType(node.type, element_id=node.id)
            self.logger.warning(f"{error.message} on element '{node.id}', using placeholder")
            result.placeholders.append(node.id)
            result.issues.append(f"{node.id}: {error.message}")
            return ResolvedElement(
                id=node.id,
                type=PLACEHOLDER_TYPE,
                display_name=f"Unknown block ({node.type})",
                properties=copy.deepcopy(node.properties),
                children=children,
                placeholder=True,
                unresolved_type=node.type,
                errors=[error.message],
            )

        seed = definition.defaults()
        seed.update(copy.deepcopy(node.properties))
        properties = self.pipeline.fold(
            ELEMENT_RENDER, seed, node.copy(),
            expect=dict,
            isolate=copy.deepcopy,
        )

        errors = [f"{node.id}.{problem}" for problem in definition.validate_properties(properties)]
        result.issues.extend(errors)

        element = ResolvedElement(
            id=node.id,
            type=definition.id,
            display_name=definition.display_name,
            properties=properties,
            children=children,
            errors=errors,
        )
        if selected_id is not None and node.id == selected_id:
            element.controls = self.controls_for(node, definition)
        return element

    def controls_for(self, node: ElementNode, definition: Optional[BlockDefinition] = None) -> List[Any]:
        """
        Gather editing controls for one element.

        Subscribers may return a single control or a list of them; ``None``
        contributes nothing.
        """
        if definition is None:
            definition = self.catalog.get(node.type)
        if definition is None:
            return []

        controls: List[Any] = []
        for contribution in self.pipeline.collect(ELEMENT_CONTROLS, node.copy(), definition):
            if contribution is None:
                continue
            if isinstance(contribution, (list, tuple)):
                controls.extend(contribution)
            else:
                controls.append(contribution)
        return controls

    def render(self, tree: ContentTree, selected_id: Optional[str] = None) -> ResolvedTree:
        """
        Notify ``before_render`` subscribers, then resolve the tree.

        Raises:
            ValidationFailure: If the tree is structurally invalid
        """
        tree.validate()
        self.pipeline.collect(BEFORE_RENDER, tree.copy())
        return self.resolve(tree, selected_id=selected_id)

    def prepare(self, tree: ContentTree, document_id: str) -> ContentTree:
        """
        Run the pre-append half of a save without touching any store.

        Returns:
            The validated tree produced by ``before_save`` subscribers

        Raises:
            ValidationFailure: If the input or the transformed tree is invalid
        """
        tree.validate()

        transformed = self.pipeline.fold(
            BEFORE_SAVE, tree.copy(), document_id,
            expect=ContentTree,
            isolate=ContentTree.copy,
        )

        try:
            transformed.validate()
        except ValidationFailure as e:
            raise ValidationFailure(
                "Content tree is invalid after before_save hooks",
                problems=e.problems,
                error_code=ErrorCode.PLUGIN_VALIDATION_FAILED,
                cause=e,
            ) from e
        return transformed

    def save(
        self,
        store: RevisionStore,
        document_id: str,
        tree: ContentTree,
        expected_sequence: Optional[int] = None,
        cancel: Optional[threading.Event] = None
    ) -> SaveOutcome:
        """
        Validate, transform, resolve and append a tree as a new revision.

        Only structural problems stop the save, and always before anything is
        appended. Elements of unknown type and elements whose properties fail
        their block schema are saved as they are and reported on the
        resolution.

        Args:
            store: Revision store receiving the snapshot
            document_id: Document being saved
            tree: Tree to save (left unchanged)
            expected_sequence: Sequence the edit was based on, if known
            cancel: Event the caller sets to abandon the save

        Returns:
            The committed revision and its resolution

        Raises:
            ValidationFailure: If the tree cannot be saved
            RevisionConflict: If the append conflicts with another save
            OperationCancelled: If cancelled before the append
        """
        transformed = self.prepare(tree, document_id)

        resolved = self.resolve(transformed)
        if resolved.property_errors:
            self.logger.warning(
                f"Saving {document_id} with {len(resolved.property_errors)} property problem(s)"
            )

        revision = store.append(document_id, transformed, expected_sequence=expected_sequence, cancel=cancel)
        self.pipeline.collect(AFTER_SAVE, revision)

        self.logger.debug(f"Saved {document_id} as revision {revision.sequence}")
        return SaveOutcome(revision=revision, resolved=resolved)
