"""Remote replication hand-off.

The core only enqueues. Pushing to the remote replica and retrying are the
job of an external replicator that drains the outbox.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from production_integrity.storage.sqlite import SqliteDocumentStore
from production_integrity.utils.serialization import dumps_document, loads_document
from production_integrity.utils.time import utc_now_iso

logger = logging.getLogger(__name__)

OUTBOX_PENDING = "pending"
OUTBOX_SYNCED = "synced"


class RemoteSync(Protocol):
    def push(self, collection: str, key: str, document: dict[str, Any]) -> None: ...


class NullSync:
    """Used when replication is disabled."""

    def push(self, collection: str, key: str, document: dict[str, Any]) -> None:
        logger.debug("Remote sync disabled, not queueing %s/%s", collection, key)


def push_quietly(sync: RemoteSync, collection: str, key: str, document: dict[str, Any]) -> bool:
    """Queue a document for replication without letting a failure reach the caller."""
    try:
        sync.push(collection, key, document)
    except Exception:
        logger.warning("Failed to queue %s/%s for remote sync", collection, key, exc_info=True)
        return False
    return True


@dataclass(frozen=True)
class OutboxItem:
    outbox_id: int
    collection: str
    key: str
    document: dict[str, Any]
    enqueued_at: str


class OutboxSync:
    def __init__(self, store: SqliteDocumentStore) -> None:
        self._store = store

    def push(self, collection: str, key: str, document: dict[str, Any]) -> None:
        self._store.execute(
            """
            INSERT INTO sync_outbox (collection, doc_key, body, status, enqueued_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (collection, key, dumps_document(document), OUTBOX_PENDING, utc_now_iso()),
        )

    def pending(self, limit: int = 100) -> list[OutboxItem]:
        rows = self._store.fetch_all(
            "SELECT * FROM sync_outbox WHERE status = ? ORDER BY outbox_id LIMIT ?",
            (OUTBOX_PENDING, limit),
        )
        return [
            OutboxItem(
                outbox_id=row["outbox_id"],
                collection=row["collection"],
                key=row["doc_key"],
                document=loads_document(row["body"]),
                enqueued_at=row["enqueued_at"],
            )
            for row in rows
        ]

    def mark_synced(self, outbox_id: int) -> bool:
        updated = self._store.execute(
            "UPDATE sync_outbox SET status = ?, synced_at = ? "
            "WHERE outbox_id = ? AND status = ?",
            (OUTBOX_SYNCED, utc_now_iso(), outbox_id, OUTBOX_PENDING),
        )
        return updated == 1
