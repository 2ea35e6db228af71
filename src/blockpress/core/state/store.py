"""
Revision Store

Append-only history of content-tree snapshots per document.

Every save appends a full snapshot with the next sequence number; past
revisions are never edited. At most one append per document is in flight at
a time: a concurrent save is either rejected with a "save in progress"
conflict or queued behind the running one, depending on the conflict policy.
Reads take no locks and only ever observe committed revisions.
"""

import dataclasses
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from blockpress.content.tree import ContentTree
from blockpress.core.exceptions import (
    DocumentNotFound,
    ErrorCode,
    OperationCancelled,
    RevisionConflict,
)

CONFLICT_REJECT = "reject"
CONFLICT_QUEUE = "queue"


class _AppendSlot:
    """Per-document write lock and the number of saves holding or awaiting it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


@dataclass(frozen=True)
class Revision:
    """An immutable, sequenced snapshot of a document."""
    document_id: str
    sequence: int
    snapshot: ContentTree
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_id': self.document_id,
            'sequence': self.sequence,
            'created_at': self.created_at.isoformat(),
            'snapshot': self.snapshot.to_payload(),
        }


@dataclass(frozen=True)
class PluginActivation:
    """A stored activation row for an externally-configured plugin."""
    name: str
    module: str
    is_active: bool = True
    version: Optional[str] = None


class RevisionStore(ABC):
    """
    Base class for revision stores.

    Subclasses implement storage; this class owns the per-document append
    slot, optimistic sequence checks and snapshot isolation.
    """

    def __init__(self, conflict_policy: str = CONFLICT_REJECT, queue_timeout: float = 5.0):
        """
        Initialize the store.

        Args:
            conflict_policy: "reject" to fail a concurrent save immediately,
                "queue" to wait for the running save to finish
            queue_timeout: Seconds a queued save waits before giving up
        """
        if conflict_policy not in (CONFLICT_REJECT, CONFLICT_QUEUE):
            raise ValueError(f"Unknown conflict policy: {conflict_policy}")

        self.conflict_policy = conflict_policy
        self.queue_timeout = queue_timeout
        self.logger = logging.getLogger(f"blockpress.state.{self.__class__.__name__}")

        self._slots: Dict[str, _AppendSlot] = {}
        self._slots_guard = threading.Lock()

    @contextmanager
    def _append_slot(self, document_id: str):
        # Slots are shared by the running save and any queued ones, and
        # dropped when the last of them leaves.
        with self._slots_guard:
            slot = self._slots.get(document_id)
            if slot is None:
                slot = self._slots[document_id] = _AppendSlot()
            slot.users += 1

        try:
            if self.conflict_policy == CONFLICT_QUEUE:
                acquired = slot.lock.acquire(timeout=self.queue_timeout)
            else:
                acquired = slot.lock.acquire(blocking=False)

            if not acquired:
                raise RevisionConflict(
                    f"A save is already in progress for document '{document_id}'",
                    document_id=document_id,
                    error_code=ErrorCode.SAVE_IN_PROGRESS,
                )
            try:
                yield
            finally:
                slot.lock.release()
        finally:
            with self._slots_guard:
                slot.users -= 1
                if slot.users == 0:
                    del self._slots[document_id]

    def is_saving(self, document_id: str) -> bool:
        """Check whether an append is in flight for a document."""
        with self._slots_guard:
            slot = self._slots.get(document_id)
            return slot is not None and slot.lock.locked()

    def append(
        self,
        document_id: str,
        snapshot: ContentTree,
        expected_sequence: Optional[int] = None,
        cancel: Optional[threading.Event] = None
    ) -> Revision:
        """
        Append a snapshot as the document's next revision.

        Args:
            document_id: Document to append to
            snapshot: Tree to store; a private copy is kept
            expected_sequence: Sequence the caller's edit was based on
                (0 for a new document); checked when given
            cancel: Event the caller sets to abandon the save

        Returns:
            The committed revision

        Raises:
            ValidationFailure: If the snapshot is structurally invalid
            RevisionConflict: If another save is in flight or the expected
                sequence is stale
            OperationCancelled: If the caller cancelled before the append
        """
        frozen = snapshot.copy().validate()

        with self._append_slot(document_id):
            if cancel is not None and cancel.is_set():
                raise OperationCancelled(f"Save of '{document_id}' cancelled before append")

            current = self.latest_sequence(document_id)
            if expected_sequence is not None and expected_sequence != current:
                raise RevisionConflict(
                    f"Document '{document_id}' is at revision {current}, "
                    f"edit was based on {expected_sequence}",
                    document_id=document_id,
                    expected_sequence=expected_sequence,
                    current_sequence=current,
                )

            revision = Revision(
                document_id=document_id,
                sequence=current + 1,
                snapshot=frozen,
                created_at=datetime.now(timezone.utc),
            )
            self._write(revision)

        self.logger.info(f"Appended revision {revision.sequence} to {document_id}")
        return self._detached(revision)

    def latest_sequence(self, document_id: str) -> int:
        """Highest committed sequence for a document, 0 if it has none."""
        revision = self._latest(document_id)
        return revision.sequence if revision else 0

    def latest(self, document_id: str) -> Optional[Revision]:
        revision = self._latest(document_id)
        return self._detached(revision) if revision else None

    def current(self, document_id: str) -> Revision:
        """
        Get the document's current revision.

        Raises:
            DocumentNotFound: If the document has no revisions
        """
        revision = self.latest(document_id)
        if revision is None:
            raise DocumentNotFound(document_id)
        return revision

    def previous(self, document_id: str) -> Optional[Revision]:
        """Get the revision before the current one, if any."""
        sequence = self.latest_sequence(document_id)
        if sequence < 2:
            return None
        return self.get(document_id, sequence - 1)

    def get(self, document_id: str, sequence: int) -> Optional[Revision]:
        revision = self._get(document_id, sequence)
        return self._detached(revision) if revision else None

    def require(self, document_id: str, sequence: int) -> Revision:
        revision = self.get(document_id, sequence)
        if revision is None:
            raise DocumentNotFound(document_id, sequence=sequence)
        return revision

    def history(self, document_id: str) -> List[Revision]:
        """Get all revisions of a document, oldest first."""
        return [self._detached(r) for r in self._history(document_id)]

    @staticmethod
    def _detached(revision: Revision) -> Revision:
        return dataclasses.replace(revision, snapshot=revision.snapshot.copy())

    @abstractmethod
    def _latest(self, document_id: str) -> Optional[Revision]:
        """Read the highest committed revision."""

    @abstractmethod
    def _get(self, document_id: str, sequence: int) -> Optional[Revision]:
        """Read one committed revision."""

    @abstractmethod
    def _history(self, document_id: str) -> List[Revision]:
        """Read all committed revisions in sequence order."""

    @abstractmethod
    def _write(self, revision: Revision) -> None:
        """Durably commit a revision. Called with the document's append slot held."""

    @abstractmethod
    def document_ids(self) -> List[str]:
        """Ids of all documents with at least one revision."""

    @abstractmethod
    def list_plugin_activations(self) -> List[PluginActivation]:
        """Activation rows for externally-configured plugins, in discovery order."""

    def close(self) -> None:
        """Release any resources held by the store."""


class InMemoryRevisionStore(RevisionStore):
    """
    Revision store kept in process memory.

    Each document's history is an immutable tuple replaced wholesale on
    append, so readers see either the old or the new history, never a
    partial one.
    """

    def __init__(
        self,
        activations: Optional[Iterable[PluginActivation]] = None,
        conflict_policy: str = CONFLICT_REJECT,
        queue_timeout: float = 5.0
    ):
        super().__init__(conflict_policy=conflict_policy, queue_timeout=queue_timeout)
        self._revisions: Dict[str, Tuple[Revision, ...]] = {}
        self._activations: Dict[str, PluginActivation] = {a.name: a for a in activations or []}

    def _latest(self, document_id: str) -> Optional[Revision]:
        revisions = self._revisions.get(document_id, ())
        return revisions[-1] if revisions else None

    def _get(self, document_id: str, sequence: int) -> Optional[Revision]:
        revisions = self._revisions.get(document_id, ())
        if 1 <= sequence <= len(revisions):
            return revisions[sequence - 1]
        return None

    def _history(self, document_id: str) -> List[Revision]:
        return list(self._revisions.get(document_id, ()))

    def _write(self, revision: Revision) -> None:
        existing = self._revisions.get(revision.document_id, ())
        self._revisions[revision.document_id] = existing + (revision,)

    def document_ids(self) -> List[str]:
        return sorted(self._revisions)

    def set_plugin_activation(self, activation: PluginActivation) -> None:
        self._activations.pop(activation.name, None)
        self._activations[activation.name] = activation

    def list_plugin_activations(self) -> List[PluginActivation]:
        return list(self._activations.values())
