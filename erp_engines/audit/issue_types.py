"""
Audit domain types -- issues and the aggregated report.

Pure frozen dataclasses and closed enums shared by the consistency checks,
the aggregator and the reconciliation policy.  The check that produced an
issue is identified by its ``code``; ``category`` is the grouping shown to
people; ``severity`` drives ordering and triage.

Architecture: erp_engines/audit -- pure domain, zero I/O.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# =============================================================================
# Enums
# =============================================================================


class Severity(str, Enum):
    """Severity level of an audit issue."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


class IssueCategory(str, Enum):
    """Human-facing grouping of issues in a report."""

    PRODUCT_STATUS = "Product Status"
    SYNC_MISMATCH = "Sync Mismatch"
    CALCULATION = "Calculation"
    MISSING_DATA = "Missing Data"


class IssueCode(str, Enum):
    """Machine-readable kind of invariant violation."""

    LEGACY_PRODUCT_STATUS = "LEGACY_PRODUCT_STATUS"
    UNKNOWN_PRODUCT_STATUS = "UNKNOWN_PRODUCT_STATUS"
    COMPLETED_ITEM_PRODUCT_NOT_READY = "COMPLETED_ITEM_PRODUCT_NOT_READY"
    IN_PROGRESS_ITEM_PRODUCT_WAITING = "IN_PROGRESS_ITEM_PRODUCT_WAITING"
    PROFIT_MISMATCH = "PROFIT_MISMATCH"
    MISSING_TOTAL_VALUE = "MISSING_TOTAL_VALUE"
    MISSING_STARTED_AT = "MISSING_STARTED_AT"
    MISSING_COMPLETED_AT = "MISSING_COMPLETED_AT"
    WORK_ORDER_STATUS_STALE = "WORK_ORDER_STATUS_STALE"
    PROJECT_STATUS_STALE = "PROJECT_STATUS_STALE"
    ITEM_STATUS_STALE = "ITEM_STATUS_STALE"
    SUBTASK_COST_MISMATCH = "SUBTASK_COST_MISMATCH"
    MISSING_LABOR_COST = "MISSING_LABOR_COST"


class EntityType(str, Enum):
    """Entity kinds an issue can reference."""

    PROJECT = "project"
    PRODUCT = "product"
    WORK_ORDER = "workOrder"
    WORK_ORDER_ITEM = "workOrderItem"


# =============================================================================
# Issue
# =============================================================================


@dataclass(frozen=True)
class EntityRef:
    """Reference to one entity by type and business identifier."""

    entity_type: EntityType
    entity_id: str

    def __str__(self) -> str:
        return f"{self.entity_type.value}:{self.entity_id}"


@dataclass(frozen=True)
class Issue:
    """One detected invariant violation.

    Identity (equality, hashing) covers code, category, severity,
    description and refs.  ``details`` carries structured values used by
    the reconciliation policy and is excluded from identity.
    """

    code: IssueCode
    category: IssueCategory
    severity: Severity
    description: str
    refs: tuple[EntityRef, ...] = ()
    details: Mapping[str, Any] | None = field(
        default=None, compare=False, hash=False,
    )

    def ref(self, entity_type: EntityType) -> str | None:
        """Return the referenced id of the given entity type, if any."""
        for r in self.refs:
            if r.entity_type == entity_type:
                return r.entity_id
        return None

    def detail(self, key: str, default: Any = None) -> Any:
        if self.details is None:
            return default
        return self.details.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "category": self.category.value,
            "severity": self.severity.value,
            "description": self.description,
            "refs": {r.entity_type.value: r.entity_id for r in self.refs},
            "details": _jsonable(dict(self.details or {})),
        }


def refs_of(*pairs: tuple[EntityType, str | None]) -> tuple[EntityRef, ...]:
    """Build a refs tuple, dropping entities whose id is unknown."""
    return tuple(
        EntityRef(entity_type, entity_id)
        for entity_type, entity_id in pairs
        if entity_id is not None
    )


# =============================================================================
# Report
# =============================================================================


@dataclass(frozen=True)
class CategoryGroup:
    """Issues of one category, capped at the report's display limit."""

    category: IssueCategory
    issues: tuple[Issue, ...]
    total: int

    @property
    def overflow(self) -> int:
        return self.total - len(self.issues)


@dataclass(frozen=True)
class AuditReport:
    """Aggregated result of one audit run."""

    total_issues: int
    by_severity: Mapping[Severity, int]
    by_category: tuple[CategoryGroup, ...]
    all_issues: tuple[Issue, ...]
    display_limit: int = 5
    checks_performed: tuple[str, ...] = ()
    snapshot_digest: str | None = None

    @property
    def is_clean(self) -> bool:
        return self.total_issues == 0

    @property
    def high_count(self) -> int:
        return self.by_severity.get(Severity.HIGH, 0)

    @property
    def medium_count(self) -> int:
        return self.by_severity.get(Severity.MEDIUM, 0)

    @property
    def low_count(self) -> int:
        return self.by_severity.get(Severity.LOW, 0)

    def category_counts(self) -> dict[IssueCategory, int]:
        return {g.category: g.total for g in self.by_category}

    def issues_with(self, code: IssueCode) -> tuple[Issue, ...]:
        return tuple(i for i in self.all_issues if i.code == code)

    def to_dict(self) -> dict[str, Any]:
        """Render the external report shape."""
        return {
            "totalIssues": self.total_issues,
            "bySeverity": {s.value: self.by_severity.get(s, 0) for s in Severity},
            "byCategory": {
                g.category.value: {
                    "issues": [i.to_dict() for i in g.issues],
                    "total": g.total,
                    "overflow": g.overflow,
                }
                for g in self.by_category
            },
            "allIssues": [i.to_dict() for i in self.all_issues],
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)
