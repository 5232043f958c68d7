"""
ReconciliationPolicy -- Pure mapping from issues to corrective actions.

Architecture: erp_engines -- pure, zero I/O.  The policy never writes; it
returns CorrectiveAction descriptors for the service layer to apply.

Mapping:
    LEGACY_PRODUCT_STATUS             product Status <- legacy map
    COMPLETED_ITEM_PRODUCT_NOT_READY  product Status <- Ready
    IN_PROGRESS_ITEM_PRODUCT_WAITING  product Status <- active process status
    PROFIT_MISMATCH                   work order Profit, Total_Value and
    MISSING_TOTAL_VALUE               Profit_Margin <- item sums
    WORK_ORDER_STATUS_STALE           work order Status <- derived status
    PROJECT_STATUS_STALE              project Status <- derived status
    ITEM_STATUS_STALE                 item Status <- Completed; missing
                                      Started_At/Completed_At <- process
                                      timestamps
    UNKNOWN_PRODUCT_STATUS,           report only
    MISSING_STARTED_AT,
    MISSING_COMPLETED_AT,
    SUBTASK_COST_MISMATCH,
    MISSING_LABOR_COST

Statuses are written as the stored label the vocabulary aliases to the
target status (e.g. "Spremno" for Ready), or the canonical value when no
alias is configured.  Products nested inside a project document and items
nested inside a work order are report only: only the flat collections are
written.

Item values are never adjusted: items are the source of truth for work
order financials.  A work order whose items sum to zero value keeps its
stored totals.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal
from types import MappingProxyType

from erp_kernel.domain.snapshot import (
    PRODUCTS,
    PROJECTS,
    WORK_ORDER_ITEMS,
    WORK_ORDERS,
)
from erp_kernel.domain.statuses import (
    CURRENT_PRODUCT_STATUSES,
    LEGACY_PRODUCT_STATUSES,
    ProductStatus,
    ProjectStatus,
    StatusVocabulary,
    WorkOrderItemStatus,
    WorkOrderStatus,
)
from erp_kernel.logging_config import get_logger

from erp_engines.audit.issue_types import EntityType, Issue, IssueCode
from erp_engines.reconciliation.action_types import ActionPlan, CorrectiveAction

logger = get_logger("engines.reconciliation.policy")

DEFAULT_LEGACY_MAP: Mapping[ProductStatus, ProductStatus] = MappingProxyType({
    ProductStatus.WAITING_FOR_PRODUCTION: ProductStatus.PENDING,
    ProductStatus.IN_PRODUCTION: ProductStatus.CUTTING,
    ProductStatus.DONE: ProductStatus.INSTALLED,
})

# Stored document fields written by corrective actions
FIELD_STATUS = "Status"
FIELD_PROFIT = "Profit"
FIELD_TOTAL_VALUE = "Total_Value"
FIELD_PROFIT_MARGIN = "Profit_Margin"
FIELD_STARTED_AT = "Started_At"
FIELD_COMPLETED_AT = "Completed_At"


class ReconciliationPolicy:
    """Proposes corrective actions for audit issues.

    Args:
        legacy_map: Legacy product status -> current product status.  Every
            legacy status must be mapped, and every target must be current.
        vocabulary: Translates target statuses into the stored labels
            written back.  Defaults to the built-in alias tables.
    """

    def __init__(
        self,
        legacy_map: Mapping[ProductStatus, ProductStatus] | None = None,
        vocabulary: StatusVocabulary | None = None,
    ) -> None:
        mapping = dict(DEFAULT_LEGACY_MAP if legacy_map is None else legacy_map)
        missing = LEGACY_PRODUCT_STATUSES - set(mapping)
        if missing:
            raise ValueError(
                f"legacy_map has no target for: {sorted(s.value for s in missing)}"
            )
        for source, target in mapping.items():
            if source not in LEGACY_PRODUCT_STATUSES:
                raise ValueError(f"legacy_map key {source.value!r} is not a legacy status")
            if target not in CURRENT_PRODUCT_STATUSES:
                raise ValueError(
                    f"legacy_map target {target.value!r} for {source.value!r} "
                    f"is not a current status"
                )
        self._legacy_map: Mapping[ProductStatus, ProductStatus] = MappingProxyType(mapping)
        self._vocabulary = vocabulary if vocabulary is not None else StatusVocabulary()
        self._handlers: dict[IssueCode, Callable[[Issue], CorrectiveAction | None]] = {
            IssueCode.LEGACY_PRODUCT_STATUS: self._migrate_legacy_status,
            IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY: self._advance_to_ready,
            IssueCode.IN_PROGRESS_ITEM_PRODUCT_WAITING: self._advance_to_active,
            IssueCode.PROFIT_MISMATCH: self._recompute_financials,
            IssueCode.MISSING_TOTAL_VALUE: self._recompute_financials,
            IssueCode.WORK_ORDER_STATUS_STALE: self._rollup_work_order,
            IssueCode.PROJECT_STATUS_STALE: self._rollup_project,
            IssueCode.ITEM_STATUS_STALE: self._complete_item,
        }

    @property
    def legacy_map(self) -> Mapping[ProductStatus, ProductStatus]:
        return self._legacy_map

    @property
    def vocabulary(self) -> StatusVocabulary:
        return self._vocabulary

    def propose_action(self, issue: Issue) -> CorrectiveAction | None:
        """Return the corrective action for an issue, or None (report only)."""
        handler = self._handlers.get(issue.code)
        if handler is None:
            return None
        return handler(issue)

    def plan_actions(self, issues: Iterable[Issue]) -> ActionPlan:
        """Propose actions for many issues, merged per target document.

        Issues are processed HIGH first (stable within a severity).  Actions
        on the same document merge their field updates; on a conflicting
        field the value proposed first, from the stronger issue, is kept.
        """
        ordered = sorted(issues, key=lambda i: i.severity.rank)
        merged: dict[tuple[str, str], CorrectiveAction] = {}
        report_only: list[Issue] = []

        for issue in ordered:
            action = self.propose_action(issue)
            if action is None:
                report_only.append(issue)
                continue
            existing = merged.get(action.target)
            if existing is None:
                merged[action.target] = action
                continue
            updates = dict(action.field_updates)
            updates.update(existing.field_updates)
            dropped = [
                k for k, v in action.field_updates.items()
                if k in existing.field_updates and existing.field_updates[k] != v
            ]
            if dropped:
                logger.debug("action_field_conflict", extra={
                    "target_collection": action.target_collection,
                    "target_id": action.target_id,
                    "fields": dropped,
                    "kept_reason": existing.reason.value,
                    "dropped_reason": action.reason.value,
                })
            reasons = existing.reasons + tuple(
                r for r in action.reasons if r not in existing.reasons
            )
            merged[action.target] = CorrectiveAction(
                target_collection=existing.target_collection,
                target_id=existing.target_id,
                field_updates=updates,
                reasons=reasons,
                severity=existing.severity,
            )

        return ActionPlan(actions=tuple(merged.values()), report_only=tuple(report_only))

    # -----------------------------------------------------------------
    # Handlers
    # -----------------------------------------------------------------

    def _migrate_legacy_status(self, issue: Issue) -> CorrectiveAction | None:
        legacy = _product_status(issue.detail("legacy_status"))
        target = self._legacy_map.get(legacy) if legacy is not None else None
        if target is None:
            return None
        return self._product_action(issue, target)

    def _advance_to_ready(self, issue: Issue) -> CorrectiveAction | None:
        return self._product_action(issue, ProductStatus.READY)

    def _advance_to_active(self, issue: Issue) -> CorrectiveAction | None:
        suggested = _product_status(issue.detail("suggested_status"))
        if suggested is None or suggested not in CURRENT_PRODUCT_STATUSES:
            suggested = ProductStatus.ASSEMBLY
        return self._product_action(issue, suggested)

    def _recompute_financials(self, issue: Issue) -> CorrectiveAction | None:
        work_order_id = issue.ref(EntityType.WORK_ORDER)
        total = issue.detail("calculated_total_value")
        profit = issue.detail("calculated_profit")
        margin = issue.detail("calculated_profit_margin")
        if work_order_id is None or total is None or profit is None:
            return None
        if Decimal(total) == 0:
            # Items carry no value; stored legacy totals are kept
            return None
        return CorrectiveAction(
            target_collection=WORK_ORDERS,
            target_id=work_order_id,
            field_updates={
                FIELD_TOTAL_VALUE: Decimal(total),
                FIELD_PROFIT: Decimal(profit),
                FIELD_PROFIT_MARGIN: Decimal(margin if margin is not None else 0),
            },
            reasons=(issue.code,),
            severity=issue.severity,
        )

    def _rollup_work_order(self, issue: Issue) -> CorrectiveAction | None:
        work_order_id = issue.ref(EntityType.WORK_ORDER)
        try:
            derived = WorkOrderStatus(issue.detail("derived_status"))
        except ValueError:
            return None
        if work_order_id is None:
            return None
        return CorrectiveAction(
            target_collection=WORK_ORDERS,
            target_id=work_order_id,
            field_updates={FIELD_STATUS: self._vocabulary.work_order_label(derived)},
            reasons=(issue.code,),
            severity=issue.severity,
        )

    def _rollup_project(self, issue: Issue) -> CorrectiveAction | None:
        project_id = issue.ref(EntityType.PROJECT)
        try:
            derived = ProjectStatus(issue.detail("derived_status"))
        except ValueError:
            return None
        if project_id is None:
            return None
        return CorrectiveAction(
            target_collection=PROJECTS,
            target_id=project_id,
            field_updates={FIELD_STATUS: self._vocabulary.project_label(derived)},
            reasons=(issue.code,),
            severity=issue.severity,
        )

    def _complete_item(self, issue: Issue) -> CorrectiveAction | None:
        item_id = issue.ref(EntityType.WORK_ORDER_ITEM)
        if item_id is None:
            return None
        if issue.detail("item_collection", WORK_ORDER_ITEMS) != WORK_ORDER_ITEMS:
            logger.debug("nested_record_report_only", extra={
                "issue_code": issue.code.value,
                "collection": issue.detail("item_collection"),
                "item_id": item_id,
            })
            return None
        updates = {FIELD_STATUS: self._vocabulary.item_label(WorkOrderItemStatus.COMPLETED)}
        started = issue.detail("derived_started_at")
        completed = issue.detail("derived_completed_at")
        if started is not None:
            updates[FIELD_STARTED_AT] = started
        if completed is not None:
            updates[FIELD_COMPLETED_AT] = completed
        return CorrectiveAction(
            target_collection=WORK_ORDER_ITEMS,
            target_id=item_id,
            field_updates=updates,
            reasons=(issue.code,),
            severity=issue.severity,
        )

    def _product_action(
        self,
        issue: Issue,
        status: ProductStatus,
    ) -> CorrectiveAction | None:
        product_id = issue.ref(EntityType.PRODUCT)
        if product_id is None:
            return None
        if issue.detail("product_collection", PRODUCTS) != PRODUCTS:
            # Nested products live inside the project document
            logger.debug("nested_record_report_only", extra={
                "issue_code": issue.code.value,
                "collection": issue.detail("product_collection"),
                "product_id": product_id,
            })
            return None
        return CorrectiveAction(
            target_collection=PRODUCTS,
            target_id=product_id,
            field_updates={FIELD_STATUS: self._vocabulary.product_label(status)},
            reasons=(issue.code,),
            severity=issue.severity,
        )


def _product_status(raw) -> ProductStatus | None:
    try:
        return ProductStatus(raw)
    except ValueError:
        return None
