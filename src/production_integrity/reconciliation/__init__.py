"""Physical vs. system counter reconciliation."""

from production_integrity.reconciliation.models import (
    ReconciliationRecord,
    ReconciliationStatus,
    compute_variance,
)
from production_integrity.reconciliation.review import approve_as_reviewer, reject_as_reviewer
from production_integrity.reconciliation.workflow import (
    RECONCILIATION_COLLECTION,
    ReconciliationWorkflow,
)

__all__ = [
    "RECONCILIATION_COLLECTION",
    "ReconciliationRecord",
    "ReconciliationStatus",
    "ReconciliationWorkflow",
    "approve_as_reviewer",
    "compute_variance",
    "reject_as_reviewer",
]
