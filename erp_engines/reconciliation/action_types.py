"""
Corrective action descriptors.

A CorrectiveAction is a single-entity write: which document, which fields,
which new values, and the issue codes that motivated it.  Pure data; the
service layer applies it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any

from erp_engines.audit.issue_types import Issue, IssueCode, Severity


@dataclass(frozen=True)
class CorrectiveAction:
    """One write to one document of one collection.

    ``reasons`` lists the issue codes the action resolves, strongest first.
    """

    target_collection: str
    target_id: str
    field_updates: Mapping[str, Any]
    reasons: tuple[IssueCode, ...]
    severity: Severity = Severity.LOW

    def __post_init__(self) -> None:
        if not self.field_updates:
            raise ValueError("CorrectiveAction requires at least one field update")
        if not self.reasons:
            raise ValueError("CorrectiveAction requires at least one reason")
        object.__setattr__(
            self, "field_updates", MappingProxyType(dict(self.field_updates)),
        )

    @property
    def reason(self) -> IssueCode:
        return self.reasons[0]

    @property
    def target(self) -> tuple[str, str]:
        return (self.target_collection, self.target_id)

    def document_updates(self) -> dict[str, Any]:
        """Field updates converted to values a JSON document can hold."""
        return {k: to_document_value(v) for k, v in self.field_updates.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "targetCollection": self.target_collection,
            "targetId": self.target_id,
            "fieldUpdates": self.document_updates(),
            "reason": self.reason.value,
        }


def to_document_value(value: Any) -> Any:
    """Convert a field value to its stored representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    return value


@dataclass(frozen=True)
class ActionPlan:
    """Ordered corrective actions plus the issues no action addresses."""

    actions: tuple[CorrectiveAction, ...] = ()
    report_only: tuple[Issue, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.actions

    def __len__(self) -> int:
        return len(self.actions)
