"""
Module: erp_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure audit
    and reconciliation engines.  This is the canonical import surface for
    higher layers (erp_services).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import erp_kernel.domain, erp_kernel.logging_config and
    erp_kernel.exceptions (and sibling engine modules).
    MUST NOT import erp_services, erp_config, erp_kernel.db or sqlalchemy.

Invariants enforced:
    - Purity: engines read an immutable SnapshotView and return values.
    - Decimal-only arithmetic for amounts.
    - Determinism: identical inputs always produce identical outputs,
      including when checks run on a thread pool.

Audit relevance:
    Every check invocation is traced via the ``@traced_check`` decorator
    (see ``erp_engines.tracer``), emitting ERP_CHECK_TRACE log records
    that include check name, version, input fingerprint, and duration.

Usage:
    from erp_engines.audit import audit_snapshot, ConsistencyChecker
    from erp_engines.reconciliation import ReconciliationPolicy
"""

from erp_kernel.logging_config import get_logger

logger = get_logger("engines")

from erp_engines.audit import (
    ALL_CHECKS,
    AuditReport,
    ConsistencyChecker,
    Issue,
    IssueCategory,
    IssueCode,
    Severity,
    aggregate_issues,
    audit_snapshot,
    audit_view,
    render_text,
)
from erp_engines.reconciliation import (
    ActionPlan,
    CorrectiveAction,
    ReconciliationPolicy,
)

__all__ = [
    "ALL_CHECKS",
    "AuditReport",
    "ConsistencyChecker",
    "Issue",
    "IssueCategory",
    "IssueCode",
    "Severity",
    "aggregate_issues",
    "audit_snapshot",
    "audit_view",
    "render_text",
    "ActionPlan",
    "CorrectiveAction",
    "ReconciliationPolicy",
]
