"""Storage collaborators: the document store and the remote sync outbox."""

from production_integrity.storage.base import (
    DuplicateKeyError,
    PersistentStore,
    VersionedDocument,
)
from production_integrity.storage.sqlite import SqliteDocumentStore
from production_integrity.storage.sync import NullSync, OutboxSync, RemoteSync

__all__ = [
    "DuplicateKeyError",
    "NullSync",
    "OutboxSync",
    "PersistentStore",
    "RemoteSync",
    "SqliteDocumentStore",
    "VersionedDocument",
]
