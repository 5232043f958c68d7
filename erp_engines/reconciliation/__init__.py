"""
Reconciliation - Pure corrective action planning.

The policy maps audit issues to single-document writes.  Applying them is
the job of erp_services.audit_service.
"""

from erp_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")

from erp_engines.reconciliation.action_types import (
    ActionPlan,
    CorrectiveAction,
    to_document_value,
)

from erp_engines.reconciliation.policy import (
    DEFAULT_LEGACY_MAP,
    ReconciliationPolicy,
)

__all__ = [
    "ActionPlan",
    "CorrectiveAction",
    "to_document_value",
    "DEFAULT_LEGACY_MAP",
    "ReconciliationPolicy",
]
