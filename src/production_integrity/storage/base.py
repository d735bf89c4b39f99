"""Persistence contract shared by the ledger, workflow and runtime tracker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


class DuplicateKeyError(Exception):
    """Raised by ``insert`` when the key already exists in the collection."""


@dataclass(frozen=True)
class VersionedDocument:
    document: dict[str, Any]
    revision: int


class PersistentStore(Protocol):
    """Key -> document store, partitioned into named collections."""

    def put(self, collection: str, key: str, document: dict[str, Any]) -> int: ...

    def insert(self, collection: str, key: str, document: dict[str, Any]) -> None: ...

    def get(self, collection: str, key: str) -> dict[str, Any] | None: ...

    def get_versioned(self, collection: str, key: str) -> VersionedDocument | None: ...

    def compare_and_put(
        self,
        collection: str,
        key: str,
        document: dict[str, Any],
        expected_revision: int,
    ) -> bool: ...

    def values(self, collection: str) -> list[dict[str, Any]]: ...

    def close(self) -> None: ...
