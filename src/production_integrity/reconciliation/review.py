"""Reviewer-facing entry points that enforce manager authority.

The workflow itself trusts its caller; these wrappers are what request
handlers and scripts call so the role check is not forgotten.
"""

from __future__ import annotations

from production_integrity.auth.context import Actor
from production_integrity.auth.rbac import enforce_role_level
from production_integrity.auth.roles import MANAGER_LEVEL
from production_integrity.reconciliation.models import ReconciliationRecord
from production_integrity.reconciliation.workflow import ReconciliationWorkflow


def approve_as_reviewer(
    workflow: ReconciliationWorkflow, record_id: str, reviewer: Actor
) -> ReconciliationRecord:
    enforce_role_level(reviewer, MANAGER_LEVEL)
    return workflow.approve(record_id, reviewer)


def reject_as_reviewer(
    workflow: ReconciliationWorkflow,
    record_id: str,
    reviewer: Actor,
    rejection_reason: str,
) -> ReconciliationRecord:
    enforce_role_level(reviewer, MANAGER_LEVEL)
    return workflow.reject(record_id, reviewer, rejection_reason)
