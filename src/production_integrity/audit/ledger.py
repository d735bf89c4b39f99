"""Append-only audit ledger.

Entries are written once with ``insert`` and never updated; a correction is
a new entry. Persistence failures do not propagate: the caller gets the
entry back together with a :class:`Durability` verdict and the failure is
logged.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import uuid4

from production_integrity.audit.models import AppendResult, AuditAction, AuditEntry, Durability
from production_integrity.auth.context import Actor, resolve_actor
from production_integrity.errors import ValidationError
from production_integrity.storage.base import PersistentStore
from production_integrity.storage.sync import RemoteSync
from production_integrity.utils.time import Clock, to_utc, utc_now

logger = logging.getLogger(__name__)

AUDIT_COLLECTION = "audit_logs"
DEFAULT_RECENT_LIMIT = 50


def _truncate(entries: list[AuditEntry], limit: int | None) -> list[AuditEntry]:
    if limit is None:
        return entries
    return entries[: max(limit, 0)]


class Ledger:
    def __init__(
        self,
        store: PersistentStore,
        sync: RemoteSync,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._sync = sync
        self._clock = clock

    def append(
        self,
        entity_type: str,
        entity_id: str,
        action: AuditAction,
        actor: Actor | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        if not entity_type or not entity_id:
            raise ValidationError("Audit entries require an entity type and id")
        if action is AuditAction.OVERRIDE and (reason is None or not reason.strip()):
            raise ValidationError("Override actions require a reason")

        who = resolve_actor(actor)
        entry = AuditEntry(
            id=str(uuid4()),
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            user_id=who.user_id,
            user_name=who.user_name,
            user_role=who.role,
            timestamp=to_utc(self._clock()),
            before_value=before,
            after_value=after,
            reason=reason,
            ip_address=who.ip_address,
            device_info=who.device_info,
            metadata=metadata,
        )
        return AppendResult(entry=entry, durability=self._save(entry))

    def _save(self, entry: AuditEntry) -> Durability:
        document = entry.to_dict()
        try:
            self._store.insert(AUDIT_COLLECTION, entry.id, document)
        except Exception:
            logger.exception(
                "Failed to save audit entry %s (%s %s/%s)",
                entry.id,
                entry.action.value,
                entry.entity_type,
                entry.entity_id,
            )
            return Durability.FAILED

        try:
            self._sync.push(AUDIT_COLLECTION, entry.id, document)
        except Exception:
            logger.exception("Failed to queue audit entry %s for remote sync", entry.id)
            return Durability.RECORDED_LOCALLY_ONLY

        logger.info(
            "AUDIT %s: %s/%s by %s",
            entry.action.display_name,
            entry.entity_type,
            entry.entity_id,
            entry.user_id,
        )
        return Durability.RECORDED

    # ---- convenience writers -------------------------------------------------

    def log_create(
        self,
        entity_type: str,
        entity_id: str,
        data: dict[str, Any],
        actor: Actor | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        return self.append(
            entity_type, entity_id, AuditAction.CREATE, actor, after=data, metadata=metadata
        )

    def log_update(
        self,
        entity_type: str,
        entity_id: str,
        before: dict[str, Any],
        after: dict[str, Any],
        actor: Actor | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        return self.append(
            entity_type,
            entity_id,
            AuditAction.UPDATE,
            actor,
            before=before,
            after=after,
            metadata=metadata,
        )

    def log_delete(
        self,
        entity_type: str,
        entity_id: str,
        data: dict[str, Any],
        actor: Actor | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        return self.append(
            entity_type, entity_id, AuditAction.DELETE, actor, before=data, metadata=metadata
        )

    def log_override(
        self,
        entity_type: str,
        entity_id: str,
        before: dict[str, Any],
        after: dict[str, Any],
        reason: str,
        actor: Actor | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        return self.append(
            entity_type,
            entity_id,
            AuditAction.OVERRIDE,
            actor,
            before=before,
            after=after,
            reason=reason,
            metadata=metadata,
        )

    def log_status_change(
        self,
        entity_type: str,
        entity_id: str,
        from_status: str,
        to_status: str,
        actor: Actor | None = None,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        return self.append(
            entity_type,
            entity_id,
            AuditAction.STATUS_CHANGE,
            actor,
            before={"status": from_status},
            after={"status": to_status},
            reason=reason,
            metadata=metadata,
        )

    def log_assignment(
        self,
        entity_type: str,
        entity_id: str,
        assigned_to: str,
        previous_assignee: str | None = None,
        actor: Actor | None = None,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        before = {"assignee": previous_assignee} if previous_assignee is not None else None
        return self.append(
            entity_type,
            entity_id,
            AuditAction.ASSIGNMENT,
            actor,
            before=before,
            after={"assignee": assigned_to},
            reason=reason,
            metadata=metadata,
        )

    def log_reconciliation(
        self,
        entity_type: str,
        entity_id: str,
        before: dict[str, Any],
        after: dict[str, Any],
        reason: str | None,
        actor: Actor | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        return self.append(
            entity_type,
            entity_id,
            AuditAction.RECONCILIATION,
            actor,
            before=before,
            after=after,
            reason=reason,
            metadata=metadata,
        )

    def log_login(self, actor: Actor, metadata: dict[str, Any] | None = None) -> AppendResult:
        return self.append("User", actor.user_id, AuditAction.LOGIN, actor, metadata=metadata)

    def log_logout(self, actor: Actor, metadata: dict[str, Any] | None = None) -> AppendResult:
        return self.append("User", actor.user_id, AuditAction.LOGOUT, actor, metadata=metadata)

    def log_escalation(
        self,
        entity_type: str,
        entity_id: str,
        from_level: int,
        to_level: int,
        escalated_to: str,
        actor: Actor | None = None,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        return self.append(
            entity_type,
            entity_id,
            AuditAction.ESCALATION,
            actor,
            before={"escalation_level": from_level},
            after={"escalation_level": to_level, "escalated_to": escalated_to},
            reason=reason,
            metadata=metadata,
        )

    def log_approval(
        self,
        entity_type: str,
        entity_id: str,
        actor: Actor | None = None,
        reason: str | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        return self.append(
            entity_type,
            entity_id,
            AuditAction.APPROVAL,
            actor,
            before=before,
            after=after,
            reason=reason,
            metadata=metadata,
        )

    def log_rejection(
        self,
        entity_type: str,
        entity_id: str,
        reason: str,
        actor: Actor | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AppendResult:
        return self.append(
            entity_type,
            entity_id,
            AuditAction.REJECTION,
            actor,
            before=before,
            after=after,
            reason=reason,
            metadata=metadata,
        )

    # ---- queries ---------------------------------------------------------------

    def _entries(self) -> list[AuditEntry]:
        """All entries, newest first.

        Entries sharing a timestamp are ordered newest-inserted first: the
        store yields insertion order, which is reversed before the stable
        sort.
        """
        entries = [AuditEntry.from_dict(doc) for doc in self._store.values(AUDIT_COLLECTION)]
        entries.reverse()
        entries.sort(key=lambda entry: entry.timestamp, reverse=True)
        return entries

    def query_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEntry]:
        return [
            entry
            for entry in self._entries()
            if entry.entity_type == entity_type and entry.entity_id == entity_id
        ]

    def query_by_user(self, user_id: str, limit: int | None = None) -> list[AuditEntry]:
        return _truncate([e for e in self._entries() if e.user_id == user_id], limit)

    def query_by_action(self, action: AuditAction, limit: int | None = None) -> list[AuditEntry]:
        return _truncate([e for e in self._entries() if e.action is action], limit)

    def query_by_date_range(self, start: datetime, end: datetime) -> list[AuditEntry]:
        """Entries strictly after ``start`` and strictly before ``end``."""
        start_utc, end_utc = to_utc(start), to_utc(end)
        return [e for e in self._entries() if start_utc < e.timestamp < end_utc]

    def query_overrides(self, limit: int | None = None) -> list[AuditEntry]:
        return self.query_by_action(AuditAction.OVERRIDE, limit=limit)

    def query_recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[AuditEntry]:
        return _truncate(self._entries(), limit)

    def export(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        entity_type: str | None = None,
        action: AuditAction | None = None,
    ) -> list[dict[str, Any]]:
        """Serialised entries for compliance export, newest first."""
        entries = self._entries()
        if start is not None:
            start_utc = to_utc(start)
            entries = [e for e in entries if e.timestamp > start_utc]
        if end is not None:
            end_utc = to_utc(end)
            entries = [e for e in entries if e.timestamp < end_utc]
        if entity_type is not None:
            entries = [e for e in entries if e.entity_type == entity_type]
        if action is not None:
            entries = [e for e in entries if e.action is action]

        rows = [entry.to_dict() for entry in entries]
        rows.sort(key=lambda row: row["timestamp"], reverse=True)
        return rows
