"""Immutable audit ledger."""

from production_integrity.audit.ledger import AUDIT_COLLECTION, Ledger
from production_integrity.audit.models import AppendResult, AuditAction, AuditEntry, Durability

__all__ = [
    "AUDIT_COLLECTION",
    "AppendResult",
    "AuditAction",
    "AuditEntry",
    "Durability",
    "Ledger",
]
