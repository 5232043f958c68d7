"""
Audit - Pure consistency checks over a production data snapshot.

Detection only.  Corrective actions live in erp_engines.reconciliation
and are applied by erp_services.
"""

from erp_kernel.logging_config import get_logger

logger = get_logger("engines.audit")

from erp_engines.audit.issue_types import (
    AuditReport,
    CategoryGroup,
    EntityRef,
    EntityType,
    Issue,
    IssueCategory,
    IssueCode,
    Severity,
    refs_of,
)

from erp_engines.audit.checker import (
    ALL_CHECKS,
    DEFAULT_PROFIT_TOLERANCE,
    CheckRunResult,
    ConsistencyChecker,
    ItemSums,
    derive_project_status,
    derive_work_order_status,
)

from erp_engines.audit.aggregator import (
    DEFAULT_DISPLAY_LIMIT,
    aggregate_issues,
    recommended_actions,
    render_text,
)

from erp_engines.audit.auditor import audit_snapshot, audit_view

__all__ = [
    # Types
    "AuditReport",
    "CategoryGroup",
    "EntityRef",
    "EntityType",
    "Issue",
    "IssueCategory",
    "IssueCode",
    "Severity",
    "refs_of",
    # Checks
    "ALL_CHECKS",
    "DEFAULT_PROFIT_TOLERANCE",
    "CheckRunResult",
    "ConsistencyChecker",
    "ItemSums",
    "derive_project_status",
    "derive_work_order_status",
    # Aggregation
    "DEFAULT_DISPLAY_LIMIT",
    "aggregate_issues",
    "recommended_actions",
    "render_text",
    # Pipeline
    "audit_snapshot",
    "audit_view",
]
