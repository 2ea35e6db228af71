"""
SQLite Revision Store

Durable revision store backed by SQLite, with atomic appends and a
plugin activation table for externally-configured plugins.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Union

from blockpress.content.tree import ContentTree
from blockpress.core.exceptions import ErrorCode, RevisionConflict, ValidationFailure
from blockpress.core.state.store import (
    CONFLICT_REJECT,
    PluginActivation,
    Revision,
    RevisionStore,
)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS revisions (
    document_id TEXT NOT NULL,
    sequence INTEGER NOT NULL CHECK (sequence > 0),
    snapshot TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (document_id, sequence)
);

CREATE TABLE IF NOT EXISTS plugin_activations (
    name TEXT PRIMARY KEY,
    module TEXT NOT NULL,
    version TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    position INTEGER NOT NULL DEFAULT 0
);
"""


class SQLiteRevisionStore(RevisionStore):
    """
    Revision store persisted in a SQLite database.

    A short-lived connection is opened per operation. Appends run inside an
    immediate transaction, and the (document_id, sequence) primary key
    rejects a second writer claiming the same sequence.
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        conflict_policy: str = CONFLICT_REJECT,
        queue_timeout: float = 5.0
    ):
        """
        Initialize the store and create the schema if needed.

        Args:
            db_path: Path to the database file (default: .blockpress/revisions.db)
            conflict_policy: "reject" or "queue" for concurrent saves
            queue_timeout: Seconds a queued save waits
        """
        super().__init__(conflict_policy=conflict_policy, queue_timeout=queue_timeout)

        if db_path is None:
            db_path = Path.cwd() / ".blockpress" / "revisions.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._initialize_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Context manager for atomic database operations."""
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        finally:
            conn.close()

    def _initialize_database(self) -> None:
        conn = self._connect()
        try:
            conn.executescript(SCHEMA_SQL)
        finally:
            conn.close()

    @staticmethod
    def _to_revision(row: sqlite3.Row) -> Revision:
        return Revision(
            document_id=row['document_id'],
            sequence=row['sequence'],
            snapshot=ContentTree.from_payload(json.loads(row['snapshot'])),
            created_at=datetime.fromisoformat(row['created_at']),
        )

    def _latest(self, document_id: str) -> Optional[Revision]:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM revisions WHERE document_id = ? ORDER BY sequence DESC LIMIT 1",
                (document_id,)
            ).fetchone()
        return self._to_revision(row) if row else None

    def latest_sequence(self, document_id: str) -> int:
        with self._read() as conn:
            row = conn.execute(
                "SELECT MAX(sequence) AS sequence FROM revisions WHERE document_id = ?",
                (document_id,)
            ).fetchone()
        return row['sequence'] or 0

    def _get(self, document_id: str, sequence: int) -> Optional[Revision]:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM revisions WHERE document_id = ? AND sequence = ?",
                (document_id, sequence)
            ).fetchone()
        return self._to_revision(row) if row else None

    def _history(self, document_id: str) -> List[Revision]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM revisions WHERE document_id = ? ORDER BY sequence",
                (document_id,)
            ).fetchall()
        return [self._to_revision(row) for row in rows]

    def _write(self, revision: Revision) -> None:
        try:
            snapshot = json.dumps(revision.snapshot.to_payload())
        except (TypeError, ValueError) as e:
            raise ValidationFailure(
                "Snapshot contains values that cannot be stored",
                problems=[str(e)],
                error_code=ErrorCode.VALIDATION_TYPE_MISMATCH,
                cause=e,
            ) from e

        try:
            with self._transaction(immediate=True) as conn:
                conn.execute(
                    "INSERT INTO revisions (document_id, sequence, snapshot, created_at) VALUES (?, ?, ?, ?)",
                    (revision.document_id, revision.sequence, snapshot, revision.created_at.isoformat())
                )
        except sqlite3.IntegrityError as e:
            raise RevisionConflict(
                f"Revision {revision.sequence} of '{revision.document_id}' was claimed by another writer",
                document_id=revision.document_id,
                expected_sequence=revision.sequence - 1,
                cause=e,
            ) from e

    def document_ids(self) -> List[str]:
        with self._read() as conn:
            rows = conn.execute("SELECT DISTINCT document_id FROM revisions ORDER BY document_id").fetchall()
        return [row['document_id'] for row in rows]

    def set_plugin_activation(self, activation: PluginActivation) -> None:
        """Insert or update an activation row, keeping its discovery position."""
        with self._transaction(immediate=True) as conn:
            position = conn.execute(
                "SELECT COALESCE(MAX(position), 0) + 1 FROM plugin_activations"
            ).fetchone()[0]
            conn.execute(
                """
                INSERT INTO plugin_activations (name, module, version, is_active, position)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    module = excluded.module,
                    version = excluded.version,
                    is_active = excluded.is_active
                """,
                (activation.name, activation.module, activation.version, int(activation.is_active), position)
            )

    def list_plugin_activations(self) -> List[PluginActivation]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT name, module, version, is_active FROM plugin_activations ORDER BY position, name"
            ).fetchall()
        return [
            PluginActivation(
                name=row['name'],
                module=row['module'],
                version=row['version'],
                is_active=bool(row['is_active']),
            )
            for row in rows
        ]
