"""Audit ledger records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from production_integrity.auth.roles import UserRole
from production_integrity.utils.time import format_timestamp, parse_timestamp


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    OVERRIDE = "override"
    STATUS_CHANGE = "status_change"
    ASSIGNMENT = "assignment"
    RECONCILIATION = "reconciliation"
    LOGIN = "login"
    LOGOUT = "logout"
    ESCALATION = "escalation"
    APPROVAL = "approval"
    REJECTION = "rejection"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class Durability(str, Enum):
    RECORDED = "recorded"
    RECORDED_LOCALLY_ONLY = "recorded_locally_only"
    FAILED = "failed"


@dataclass(frozen=True)
class AuditEntry:
    id: str
    entity_type: str
    entity_id: str
    action: AuditAction
    user_id: str
    user_name: str
    user_role: UserRole
    timestamp: datetime
    before_value: dict[str, Any] | None = None
    after_value: dict[str, Any] | None = None
    reason: str | None = None
    ip_address: str | None = None
    device_info: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def is_override(self) -> bool:
        return self.action is AuditAction.OVERRIDE

    @property
    def change_summary(self) -> str:
        if self.before_value is None and self.after_value is None:
            return self.action.display_name
        if self.before_value is None:
            return f"Created new {self.entity_type}"
        if self.after_value is None:
            return f"Deleted {self.entity_type}"

        changes = []
        for key, after in self.after_value.items():
            before = self.before_value.get(key)
            if before != after:
                changes.append(f"{key}: {before} -> {after}")
        return ", ".join(changes) if changes else "No changes"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action.value,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "user_role": self.user_role.value,
            "timestamp": format_timestamp(self.timestamp),
            "before_value": self.before_value,
            "after_value": self.after_value,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "device_info": self.device_info,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditEntry":
        return cls(
            id=data["id"],
            entity_type=data["entity_type"],
            entity_id=data["entity_id"],
            action=AuditAction(data["action"]),
            user_id=data["user_id"],
            user_name=data["user_name"],
            user_role=UserRole(data["user_role"]),
            timestamp=parse_timestamp(data["timestamp"]),
            before_value=data.get("before_value"),
            after_value=data.get("after_value"),
            reason=data.get("reason"),
            ip_address=data.get("ip_address"),
            device_info=data.get("device_info"),
            metadata=data.get("metadata"),
        )


@dataclass(frozen=True)
class AppendResult:
    """Outcome of a ledger append.

    ``entry`` is always populated; ``durability`` says how far it got.
    """

    entry: AuditEntry
    durability: Durability

    @property
    def recorded(self) -> bool:
        return self.durability is not Durability.FAILED
