"""
Auditor -- the pure audit pipeline.

snapshot -> read_snapshot -> ConsistencyChecker.run_all_checks ->
aggregate_issues -> AuditReport.  Takes the snapshot as an argument and
never reads ambient state.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from erp_kernel.domain.snapshot import SnapshotView, read_snapshot
from erp_kernel.domain.statuses import StatusVocabulary
from erp_kernel.logging_config import get_logger

from erp_engines.audit.aggregator import DEFAULT_DISPLAY_LIMIT, aggregate_issues
from erp_engines.audit.checker import DEFAULT_PROFIT_TOLERANCE, ConsistencyChecker
from erp_engines.audit.issue_types import AuditReport

logger = get_logger("engines.audit.auditor")


def audit_view(
    view: SnapshotView,
    profit_tolerance: Decimal = DEFAULT_PROFIT_TOLERANCE,
    display_limit: int = DEFAULT_DISPLAY_LIMIT,
    enabled_checks: Iterable[str] | None = None,
    parallel: bool = False,
) -> AuditReport:
    """Run the checks over an already built view and aggregate the issues."""
    checker = ConsistencyChecker(profit_tolerance=profit_tolerance)
    run = checker.run_all_checks(
        view=view,
        enabled_checks=enabled_checks,
        parallel=parallel,
    )
    report = aggregate_issues(
        run.issues,
        display_limit=display_limit,
        checks_performed=run.checks_performed,
        snapshot_digest=view.digest,
    )
    logger.debug("audit_view_completed", extra={
        "snapshot_digest": view.digest,
        "total_issues": report.total_issues,
    })
    return report


def audit_snapshot(
    snapshot: Mapping[str, Any],
    vocabulary: StatusVocabulary | None = None,
    profit_tolerance: Decimal = DEFAULT_PROFIT_TOLERANCE,
    display_limit: int = DEFAULT_DISPLAY_LIMIT,
    enabled_checks: Iterable[str] | None = None,
    parallel: bool = False,
) -> AuditReport:
    """Audit a raw snapshot mapping.

    Raises:
        MalformedSnapshotError: a top-level collection has the wrong shape.
    """
    view = read_snapshot(snapshot, vocabulary)
    return audit_view(
        view,
        profit_tolerance=profit_tolerance,
        display_limit=display_limit,
        enabled_checks=enabled_checks,
        parallel=parallel,
    )
