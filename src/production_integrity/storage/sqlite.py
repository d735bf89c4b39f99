"""SQLite-backed document store."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any, Mapping, Sequence

from production_integrity.storage.base import DuplicateKeyError, VersionedDocument
from production_integrity.utils.serialization import dumps_document, loads_document
from production_integrity.utils.time import utc_now_iso

_SqlValue = str | bytes | int | float | None
_SqlParams = Sequence[_SqlValue] | Mapping[str, _SqlValue]


class SqliteDocumentStore:
    def __init__(self, path: str, wal: bool = True) -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._closed = False
        if wal and path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS documents (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL,
                doc_key TEXT NOT NULL,
                body TEXT NOT NULL,
                revision INTEGER NOT NULL DEFAULT 1,
                updated_at TEXT NOT NULL,
                UNIQUE(collection, doc_key)
            );

            CREATE TABLE IF NOT EXISTS sync_outbox (
                outbox_id INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL,
                doc_key TEXT NOT NULL,
                body TEXT NOT NULL,
                status TEXT NOT NULL,
                enqueued_at TEXT NOT NULL,
                synced_at TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_documents_collection_seq
                ON documents(collection, seq);
            CREATE INDEX IF NOT EXISTS idx_sync_outbox_status
                ON sync_outbox(status, outbox_id);
            """
        )
        self._conn.commit()

    def execute(self, query: str, params: _SqlParams) -> int:
        with self._lock:
            cursor = self._conn.execute(query, params)
            self._conn.commit()
            return cursor.rowcount

    def fetch_one(self, query: str, params: _SqlParams) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchone()

    def fetch_all(self, query: str, params: _SqlParams) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchall()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    def put(self, collection: str, key: str, document: dict[str, Any]) -> int:
        """Insert or overwrite a document and return its new revision.

        An overwrite keeps the original sequence number, so ``values`` still
        reports the document at its first-insertion position.
        """
        body = dumps_document(document)
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO documents (collection, doc_key, body, revision, updated_at)
                VALUES (?, ?, ?, 1, ?)
                ON CONFLICT(collection, doc_key) DO UPDATE SET
                    body = excluded.body,
                    revision = documents.revision + 1,
                    updated_at = excluded.updated_at
                """,
                (collection, key, body, utc_now_iso()),
            )
            self._conn.commit()
            row = self._conn.execute(
                "SELECT revision FROM documents WHERE collection = ? AND doc_key = ?",
                (collection, key),
            ).fetchone()
        return int(row["revision"])

    def insert(self, collection: str, key: str, document: dict[str, Any]) -> None:
        """Insert a new document. Existing keys are never overwritten."""
        body = dumps_document(document)
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO documents (collection, doc_key, body, revision, updated_at)
                    VALUES (?, ?, ?, 1, ?)
                    """,
                    (collection, key, body, utc_now_iso()),
                )
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                raise DuplicateKeyError(f"{collection}/{key} already exists") from exc
            self._conn.commit()

    def get(self, collection: str, key: str) -> dict[str, Any] | None:
        versioned = self.get_versioned(collection, key)
        if versioned is None:
            return None
        return versioned.document

    def get_versioned(self, collection: str, key: str) -> VersionedDocument | None:
        row = self.fetch_one(
            "SELECT body, revision FROM documents WHERE collection = ? AND doc_key = ?",
            (collection, key),
        )
        if row is None:
            return None
        return VersionedDocument(document=loads_document(row["body"]), revision=row["revision"])

    def compare_and_put(
        self,
        collection: str,
        key: str,
        document: dict[str, Any],
        expected_revision: int,
    ) -> bool:
        """Atomically replace a document only if its revision is unchanged.

        Returns True if exactly one row was updated (i.e. the caller won the
        race), False otherwise.
        """
        body = dumps_document(document)
        with self._lock:
            cursor = self._conn.execute(
                """
                UPDATE documents
                SET body = ?, revision = revision + 1, updated_at = ?
                WHERE collection = ? AND doc_key = ? AND revision = ?
                """,
                (body, utc_now_iso(), collection, key, expected_revision),
            )
            self._conn.commit()
            return cursor.rowcount == 1

    def values(self, collection: str) -> list[dict[str, Any]]:
        """All documents of a collection in insertion order."""
        rows = self.fetch_all(
            "SELECT body FROM documents WHERE collection = ? ORDER BY seq",
            (collection,),
        )
        return [loads_document(row["body"]) for row in rows]

    def count(self, collection: str) -> int:
        row = self.fetch_one(
            "SELECT COUNT(*) AS n FROM documents WHERE collection = ?", (collection,)
        )
        return int(row["n"]) if row is not None else 0
