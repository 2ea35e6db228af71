"""
Edit Session

Editor-side state of one open document: the working tree, the selected
element and the revision the edits are based on.

States move ``viewing -> editing -> saving -> viewing``. Selecting an element
enters editing; saving is transient and cannot be re-entered while running.
"""

import logging
import threading
from enum import Enum
from typing import Any, List, Mapping, Optional, Union

from blockpress.composition.resolver import CompositionResolver, ResolvedTree, SaveOutcome
from blockpress.content.intents import EditIntent, RemoveElement, apply_intent, intent_from_payload
from blockpress.content.tree import ContentTree, ElementNode
from blockpress.core.exceptions import ErrorCode, RevisionConflict
from blockpress.core.state.store import RevisionStore


class SessionState(Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    SAVING = "saving"


class EditSession:
    """An open document being edited."""

    def __init__(
        self,
        document_id: str,
        resolver: CompositionResolver,
        store: RevisionStore,
        tree: Optional[ContentTree] = None,
        base_sequence: Optional[int] = None
    ):
        """
        Open a session.

        Args:
            document_id: Document being edited
            resolver: Resolver used for controls, render and save
            store: Revision store the document lives in
            tree: Starting tree; the latest revision is loaded when omitted
            base_sequence: Revision the starting tree came from
        """
        self.document_id = document_id
        self.resolver = resolver
        self.store = store
        self.logger = logging.getLogger("blockpress.composition.session")

        self.tree = ContentTree()
        self.base_sequence = 0
        self.selected_id: Optional[str] = None
        self.dirty = False
        self._state = SessionState.VIEWING
        self._save_lock = threading.Lock()

        if tree is None:
            self.reload()
        else:
            self.tree = tree.copy()
            self.base_sequence = base_sequence if base_sequence is not None else store.latest_sequence(document_id)

    @property
    def state(self) -> SessionState:
        return self._state

    def reload(self) -> None:
        """Replace the working tree with the latest committed revision."""
        self._ensure_not_saving()
        revision = self.store.latest(self.document_id)
        self.tree = revision.snapshot if revision else ContentTree()
        self.base_sequence = revision.sequence if revision else 0
        self.dirty = False
        self.deselect()

    def _ensure_not_saving(self) -> None:
        if self._state is SessionState.SAVING:
            raise RevisionConflict(
                f"A save is already in progress for document '{self.document_id}'",
                document_id=self.document_id,
                expected_sequence=self.base_sequence,
                error_code=ErrorCode.SAVE_IN_PROGRESS,
            )

    def select(self, element_id: str) -> ElementNode:
        """
        Select an element and enter the editing state.

        Raises:
            ElementNotFound: If the element is not in the working tree
        """
        self._ensure_not_saving()
        node = self.tree.get(element_id)
        self.selected_id = element_id
        self._state = SessionState.EDITING
        return node

    def deselect(self) -> None:
        self.selected_id = None
        if self._state is SessionState.EDITING:
            self._state = SessionState.VIEWING

    def apply(self, intent: Union[EditIntent, Mapping[str, Any]]) -> ElementNode:
        """
        Apply an edit intent to the working tree.

        Raw intent messages are decoded first. Removing the selected element,
        or one of its ancestors, clears the selection.
        """
        self._ensure_not_saving()
        if isinstance(intent, Mapping):
            intent = intent_from_payload(intent)

        node = apply_intent(self.tree, intent, self.resolver.catalog)
        self.dirty = True

        if isinstance(intent, RemoveElement) and self.selected_id is not None:
            if any(n.id == self.selected_id for n in node.walk()):
                self.deselect()
        return node

    def controls(self) -> List[Any]:
        """Controls contributed for the selected element."""
        if self.selected_id is None:
            return []
        return self.resolver.controls_for(self.tree.get(self.selected_id))

    def render(self) -> ResolvedTree:
        return self.resolver.render(self.tree, selected_id=self.selected_id)

    def save(self, cancel: Optional[threading.Event] = None) -> SaveOutcome:
        """
        Save the working tree on top of the session's base revision.

        On success the session adopts the committed snapshot and returns to
        viewing. On failure the working tree and state are left as they were.

        Raises:
            RevisionConflict: If this session is already saving, another
                writer is saving, or the base revision is stale
            ValidationFailure: If the tree cannot be saved
        """
        if not self._save_lock.acquire(blocking=False):
            raise RevisionConflict(
                f"A save is already in progress for document '{self.document_id}'",
                document_id=self.document_id,
                expected_sequence=self.base_sequence,
                error_code=ErrorCode.SAVE_IN_PROGRESS,
            )

        previous_state = self._state
        self._state = SessionState.SAVING
        try:
            outcome = self.resolver.save(
                self.store,
                self.document_id,
                self.tree,
                expected_sequence=self.base_sequence,
                cancel=cancel,
            )
            self.tree = outcome.revision.snapshot.copy()
            self.base_sequence = outcome.revision.sequence
            self.dirty = False
            self.selected_id = None
            self._state = SessionState.VIEWING
        except Exception:
            self._state = previous_state
            raise
        finally:
            self._save_lock.release()

        self.logger.info(f"Session saved {self.document_id} at revision {self.base_sequence}")
        return outcome
