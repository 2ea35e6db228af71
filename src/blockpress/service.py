"""
Document Service

Boundary used by the request layer. Every operation takes raw input plus a
document id and returns an OperationResult instead of raising; failures carry
one of the reasons ``not_found``, ``validation_failed``, ``save_conflict`` or
``internal``.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from blockpress.composition.resolver import CompositionResolver, ResolvedTree
from blockpress.content.tree import ContentTree
from blockpress.core.exceptions import BlockPressError, DocumentNotFound
from blockpress.core.state.store import Revision, RevisionStore

FAILURE_REASONS = frozenset({"not_found", "validation_failed", "save_conflict", "internal"})


@dataclass
class OperationResult:
    """Outcome of a document operation."""
    ok: bool
    document_id: str
    sequence: Optional[int] = None
    tree: Optional[ContentTree] = None
    resolved: Optional[ResolvedTree] = None
    revisions: List[Revision] = field(default_factory=list)
    reason: Optional[str] = None
    message: Optional[str] = None
    problems: List[str] = field(default_factory=list)

    @classmethod
    def failure(cls, document_id: str, reason: str, message: str, problems: Optional[List[str]] = None):
        return cls(ok=False, document_id=document_id, reason=reason, message=message, problems=list(problems or []))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'ok': self.ok, 'document_id': self.document_id}
        if not self.ok:
            data.update({'reason': self.reason, 'message': self.message, 'problems': self.problems})
            return data

        if self.sequence is not None:
            data['sequence'] = self.sequence
        if self.tree is not None:
            data['tree'] = self.tree.to_payload()
        if self.resolved is not None:
            data['resolved'] = self.resolved.to_dict()
        if self.revisions:
            data['revisions'] = [
                {'sequence': r.sequence, 'created_at': r.created_at.isoformat(), 'elements': len(r.snapshot)}
                for r in self.revisions
            ]
        return data


class DocumentService:
    """Document operations over a resolver and a revision store."""

    def __init__(self, resolver: CompositionResolver, store: RevisionStore):
        self.resolver = resolver
        self.store = store
        self.logger = logging.getLogger("blockpress.service")

    def save(
        self,
        document_id: str,
        payload: Any,
        expected_sequence: Optional[int] = None,
        cancel: Optional[threading.Event] = None
    ) -> OperationResult:
        """
        Parse a raw payload and save it as the document's next revision.

        Args:
            document_id: Document to save
            payload: ``{"elements": [...]}`` or a list of element mappings
            expected_sequence: Revision the edit was based on (0 for new)
            cancel: Event the caller sets to abandon the save
        """
        def operation() -> OperationResult:
            tree = ContentTree.from_payload(payload)
            outcome = self.resolver.save(
                self.store, document_id, tree,
                expected_sequence=expected_sequence,
                cancel=cancel,
            )
            return OperationResult(
                ok=True,
                document_id=document_id,
                sequence=outcome.revision.sequence,
                tree=outcome.revision.snapshot,
                resolved=outcome.resolved,
            )

        return self._run("save", document_id, operation)

    def read(self, document_id: str, sequence: Optional[int] = None) -> OperationResult:
        """Get the current (or a specific) revision of a document."""
        def operation() -> OperationResult:
            revision = self._revision(document_id, sequence)
            return OperationResult(
                ok=True,
                document_id=document_id,
                sequence=revision.sequence,
                tree=revision.snapshot,
            )

        return self._run("read", document_id, operation)

    def render(
        self,
        document_id: str,
        sequence: Optional[int] = None,
        selected_id: Optional[str] = None
    ) -> OperationResult:
        """Resolve a stored revision for display."""
        def operation() -> OperationResult:
            revision = self._revision(document_id, sequence)
            return OperationResult(
                ok=True,
                document_id=document_id,
                sequence=revision.sequence,
                tree=revision.snapshot,
                resolved=self.resolver.render(revision.snapshot, selected_id=selected_id),
            )

        return self._run("render", document_id, operation)

    def history(self, document_id: str) -> OperationResult:
        """List every revision of a document, oldest first."""
        def operation() -> OperationResult:
            revisions = self.store.history(document_id)
            if not revisions:
                raise DocumentNotFound(document_id)
            return OperationResult(
                ok=True,
                document_id=document_id,
                sequence=revisions[-1].sequence,
                revisions=revisions,
            )

        return self._run("history", document_id, operation)

    def restore(
        self,
        document_id: str,
        sequence: int,
        expected_sequence: Optional[int] = None
    ) -> OperationResult:
        """
        Save a copy of an earlier revision as the newest one.

        History is never rewritten: the restored snapshot is appended with
        the next sequence and goes through the normal save hooks.
        """
        def operation() -> OperationResult:
            source = self.store.require(document_id, sequence)
            outcome = self.resolver.save(
                self.store, document_id, source.snapshot,
                expected_sequence=expected_sequence,
            )
            self.logger.info(f"Restored {document_id} revision {sequence} as {outcome.revision.sequence}")
            return OperationResult(
                ok=True,
                document_id=document_id,
                sequence=outcome.revision.sequence,
                tree=outcome.revision.snapshot,
                resolved=outcome.resolved,
            )

        return self._run("restore", document_id, operation)

    def _revision(self, document_id: str, sequence: Optional[int]) -> Revision:
        if sequence is None:
            return self.store.current(document_id)
        return self.store.require(document_id, sequence)

    def _run(self, name: str, document_id: str, operation: Callable[[], OperationResult]) -> OperationResult:
        try:
            return operation()
        except BlockPressError as e:
            reason = e.reason if e.reason in FAILURE_REASONS else "internal"
            if reason == "internal":
                self.logger.error(f"{name} of {document_id} failed: {e.message}")
            else:
                self.logger.info(f"{name} of {document_id} rejected ({reason}): {e.message}")
            return OperationResult.failure(
                document_id,
                reason,
                e.message,
                problems=getattr(e, 'problems', None),
            )
        except Exception as e:
            self.logger.exception(f"Unexpected error during {name} of {document_id}")
            return OperationResult.failure(document_id, "internal", f"{type(e).__name__}: {e}")
