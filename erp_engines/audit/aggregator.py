"""
Issue aggregation and report rendering.

Pure functions that turn the flat issue sequence of a check run into an
AuditReport: totals, counts per severity (every severity always present),
category groups in first-seen order capped at a display limit, and the
full issue list.  Counts depend only on the issue multiset, never on the
order issues arrived in.
"""

from __future__ import annotations

from collections.abc import Iterable

from erp_engines.audit.issue_types import (
    AuditReport,
    CategoryGroup,
    Issue,
    IssueCategory,
    Severity,
)

DEFAULT_DISPLAY_LIMIT = 5


def aggregate_issues(
    issues: Iterable[Issue],
    display_limit: int = DEFAULT_DISPLAY_LIMIT,
    checks_performed: tuple[str, ...] = (),
    snapshot_digest: str | None = None,
) -> AuditReport:
    """Group issues into an AuditReport.

    Args:
        issues: Issues in any order.
        display_limit: Maximum issues kept per category group.  The rest
            are counted in the group's overflow.
        checks_performed: Names of the checks that produced ``issues``.
        snapshot_digest: Content digest of the audited snapshot.
    """
    if display_limit < 0:
        raise ValueError(f"display_limit must be >= 0, got {display_limit}")

    all_issues = tuple(issues)
    by_severity = {severity: 0 for severity in Severity}
    grouped: dict[IssueCategory, list[Issue]] = {}

    for issue in all_issues:
        by_severity[issue.severity] += 1
        grouped.setdefault(issue.category, []).append(issue)

    by_category = tuple(
        CategoryGroup(
            category=category,
            issues=tuple(members[:display_limit]),
            total=len(members),
        )
        for category, members in grouped.items()
    )

    return AuditReport(
        total_issues=len(all_issues),
        by_severity=by_severity,
        by_category=by_category,
        all_issues=all_issues,
        display_limit=display_limit,
        checks_performed=checks_performed,
        snapshot_digest=snapshot_digest,
    )


def recommended_actions(report: AuditReport) -> list[str]:
    """Follow-up steps for a report, in the order an operator should take them."""
    actions: list[str] = []
    if report.high_count > 0:
        actions.append(
            "Run reconciliation to repair product status and profit mismatches"
        )
    if any(
        i.severity == Severity.MEDIUM and i.category == IssueCategory.MISSING_DATA
        for i in report.all_issues
    ):
        actions.append(
            "Review work orders with missing dates or values and update them manually"
        )
    if report.low_count > 0:
        actions.append(
            "Review unknown statuses, stale roll-ups and missing labor costs"
        )
    return actions


def render_text(report: AuditReport) -> str:
    """Render the console summary of a report."""
    lines = [
        "=== PRODUCTION DATA AUDIT ===",
        "",
        f"HIGH Severity: {report.high_count}",
        f"MEDIUM Severity: {report.medium_count}",
        f"LOW Severity: {report.low_count}",
        f"TOTAL Issues: {report.total_issues}",
    ]

    if report.is_clean:
        lines.extend(["", "No issues found. Data integrity looks good."])
        return "\n".join(lines)

    lines.extend(["", "--- ISSUES BY CATEGORY ---"])
    for group in report.by_category:
        lines.append("")
        lines.append(f"{group.category.value}: {group.total} issue(s)")
        for issue in group.issues:
            lines.append(f"  [{issue.severity.value}] {issue.description}")
        if group.overflow > 0:
            lines.append(f"  ... and {group.overflow} more")

    actions = recommended_actions(report)
    if actions:
        lines.extend(["", "--- RECOMMENDED ACTIONS ---"])
        for n, action in enumerate(actions, start=1):
            lines.append(f"{n}. {action}")

    return "\n".join(lines)
