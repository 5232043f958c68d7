"""
ConsistencyChecker -- Pure engine for production data invariants.

Detects product statuses outside the current workflow, drift between work
order items and the products they build, stored work order profit that no
longer matches its items, completed items without timestamps, and stale
roll-up statuses on work orders and projects.

Architecture: erp_engines -- pure calculation, zero I/O, zero DB access.
All inputs are an immutable SnapshotView built by the kernel reader.

Invariants checked:
    product_status         every product status is current (legacy and
                           unknown values are distinct findings)
    status_sync            completed item -> product Ready/Installed;
                           in-progress item -> product past the waiting
                           statuses
    financial_integrity    completed work order profit equals item value
                           minus material and labor, within tolerance;
                           Total_Value present and non-zero
    completion_timestamps  completed items carry Started_At and Completed_At
    work_order_rollup      work order status equals the status derived
                           from its items
    project_rollup         project status follows its products
    item_process_rollup    an item whose processes are all completed is
                           itself completed
    labor_cost             subtask labor costs add up to the item's labor
                           cost; completed items worked on by assigned
                           workers carry a labor cost

Each check is independent: it reads only the view and never sees another
check's output.  An entity that cannot be evaluated (unresolved product,
unparseable amount, unrecognized item status) is skipped for that check
only and is not reported.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal

from erp_kernel.domain.snapshot import (
    ProductRecord,
    SnapshotView,
    WorkOrderItemRecord,
    WorkOrderRecord,
)
from erp_kernel.domain.statuses import (
    FINISHED_PRODUCT_STATUSES,
    PROCESS_PRODUCT_STATUSES,
    WAITING_PRODUCT_STATUSES,
    ProductStatus,
    ProjectStatus,
    StatusClass,
    WorkOrderItemStatus,
    WorkOrderStatus,
)
from erp_kernel.domain.values import (
    InvalidAmountError,
    amount_or_zero,
    has_timestamp,
    parse_amount,
    parse_timestamp,
)
from erp_kernel.logging_config import get_logger
from erp_engines.tracer import traced_check

from erp_engines.audit.issue_types import (
    EntityType,
    Issue,
    IssueCategory,
    IssueCode,
    Severity,
    refs_of,
)

logger = get_logger("engines.audit.checker")

DEFAULT_PROFIT_TOLERANCE = Decimal("1")

CHECK_PRODUCT_STATUS = "product_status"
CHECK_STATUS_SYNC = "status_sync"
CHECK_FINANCIAL_INTEGRITY = "financial_integrity"
CHECK_COMPLETION_TIMESTAMPS = "completion_timestamps"
CHECK_WORK_ORDER_ROLLUP = "work_order_rollup"
CHECK_PROJECT_ROLLUP = "project_rollup"
CHECK_ITEM_PROCESS_ROLLUP = "item_process_rollup"
CHECK_LABOR_COST = "labor_cost"

ALL_CHECKS: tuple[str, ...] = (
    CHECK_PRODUCT_STATUS,
    CHECK_STATUS_SYNC,
    CHECK_FINANCIAL_INTEGRITY,
    CHECK_COMPLETION_TIMESTAMPS,
    CHECK_WORK_ORDER_ROLLUP,
    CHECK_PROJECT_ROLLUP,
    CHECK_ITEM_PROCESS_ROLLUP,
    CHECK_LABOR_COST,
)

# Work order statuses maintained by the roll-up from items
_ROLLUP_WORK_ORDER_STATUSES = frozenset({
    WorkOrderStatus.PENDING,
    WorkOrderStatus.IN_PROGRESS,
    WorkOrderStatus.COMPLETED,
})

# Projects in these statuses are not synchronized from their products
_UNSYNCED_PROJECT_STATUSES = frozenset({
    ProjectStatus.DRAFT,
    ProjectStatus.QUOTED,
    ProjectStatus.CANCELLED,
})

# Product status written for an in-progress item without an active process
_DEFAULT_ACTIVE_PRODUCT_STATUS = ProductStatus.ASSEMBLY

# Item labor cost vs the sum of its subtask labor costs
_LABOR_COST_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class CheckRunResult:
    """Issues of one run, concatenated in check registration order."""

    issues: tuple[Issue, ...]
    checks_performed: tuple[str, ...]


class ConsistencyChecker:
    """Pure engine for production data consistency checks.

    All methods receive a fully populated SnapshotView and return tuples
    of Issue. No I/O, no database access.

    Usage:
        checker = ConsistencyChecker()
        result = checker.run_all_checks(view=view)
    """

    def __init__(self, profit_tolerance: Decimal = DEFAULT_PROFIT_TOLERANCE) -> None:
        if profit_tolerance < 0:
            raise ValueError(f"profit_tolerance must be >= 0, got {profit_tolerance}")
        self._profit_tolerance = profit_tolerance

    @property
    def profit_tolerance(self) -> Decimal:
        return self._profit_tolerance

    # -----------------------------------------------------------------
    # Product status validity
    # -----------------------------------------------------------------

    @traced_check(CHECK_PRODUCT_STATUS, "1.0", fingerprint_fields=("view",))
    def check_product_status(self, view: SnapshotView) -> tuple[Issue, ...]:
        """Flag legacy (MEDIUM) and unrecognized (LOW) product statuses."""
        issues: list[Issue] = []

        for product in view.products:
            status_class = product.status_class
            if status_class == StatusClass.CURRENT:
                continue

            refs = refs_of(
                (EntityType.PROJECT, product.project_id),
                (EntityType.PRODUCT, product.product_id),
            )
            if status_class == StatusClass.LEGACY:
                issues.append(Issue(
                    code=IssueCode.LEGACY_PRODUCT_STATUS,
                    category=IssueCategory.PRODUCT_STATUS,
                    severity=Severity.MEDIUM,
                    description=(
                        f'Product "{_product_label(product)}" has legacy '
                        f'status "{product.status_raw}"'
                    ),
                    refs=refs,
                    details={
                        "status": product.status_raw,
                        "legacy_status": product.status.value,
                        "product_collection": product.source,
                    },
                ))
            else:
                issues.append(Issue(
                    code=IssueCode.UNKNOWN_PRODUCT_STATUS,
                    category=IssueCategory.PRODUCT_STATUS,
                    severity=Severity.LOW,
                    description=(
                        f'Product "{_product_label(product)}" has unknown '
                        f'status "{product.status_raw}"'
                    ),
                    refs=refs,
                    details={
                        "status": product.status_raw,
                        "product_collection": product.source,
                    },
                ))

        return tuple(issues)

    # -----------------------------------------------------------------
    # Work order item <-> product status sync
    # -----------------------------------------------------------------

    @traced_check(CHECK_STATUS_SYNC, "1.0", fingerprint_fields=("view",))
    def check_status_sync(self, view: SnapshotView) -> tuple[Issue, ...]:
        """Compare each item's status with the product it references.

        Completed items need a Ready/Installed product (HIGH); in-progress
        items must not point at a product still waiting on materials
        (MEDIUM).  Items whose product cannot be resolved are skipped.
        """
        issues: list[Issue] = []

        for wo, item in view.iter_items():
            if item.status is None:
                continue
            product = view.find_product(item.project_id, item.product_id)
            if product is None:
                continue

            refs = _item_refs(wo, item, product)

            if (
                item.status == WorkOrderItemStatus.COMPLETED
                and product.status not in FINISHED_PRODUCT_STATUSES
            ):
                issues.append(Issue(
                    code=IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY,
                    category=IssueCategory.SYNC_MISMATCH,
                    severity=Severity.HIGH,
                    description=(
                        f'WO Item "{_item_label(item)}" is Completed but '
                        f'Product status is "{product.status_raw}"'
                    ),
                    refs=refs,
                    details={
                        "item_status": item.status.value,
                        "product_status": product.status_raw,
                        "product_collection": product.source,
                    },
                ))

            if (
                item.status == WorkOrderItemStatus.IN_PROGRESS
                and product.status in WAITING_PRODUCT_STATUSES
            ):
                suggested = _active_process_status(view, item)
                issues.append(Issue(
                    code=IssueCode.IN_PROGRESS_ITEM_PRODUCT_WAITING,
                    category=IssueCategory.SYNC_MISMATCH,
                    severity=Severity.MEDIUM,
                    description=(
                        f'WO Item "{_item_label(item)}" is In Progress but '
                        f'Product status is still "{product.status_raw}"'
                    ),
                    refs=refs,
                    details={
                        "item_status": item.status.value,
                        "product_status": product.status_raw,
                        "suggested_status": suggested.value,
                        "product_collection": product.source,
                    },
                ))

        return tuple(issues)

    # -----------------------------------------------------------------
    # Profit calculation integrity
    # -----------------------------------------------------------------

    @traced_check(CHECK_FINANCIAL_INTEGRITY, "1.0", fingerprint_fields=("view",))
    def check_financial_integrity(self, view: SnapshotView) -> tuple[Issue, ...]:
        """Recompute profit of completed work orders from their items.

        Profit = sum(Product_Value) - sum(Material_Cost) - sum(Actual_Labor_Cost).
        A stored Profit further than the tolerance (strictly greater) from
        the calculated value is HIGH.  A missing or zero Total_Value is
        MEDIUM.
        """
        issues: list[Issue] = []

        for wo in view.work_orders:
            if wo.status != WorkOrderStatus.COMPLETED:
                continue

            sums = _item_sums(wo)
            refs = refs_of((EntityType.WORK_ORDER, wo.work_order_id))

            if sums is not None:
                stored_profit = _safe_amount(wo.profit, "Profit", wo)
                calculated = sums.profit
                if (
                    stored_profit is not None
                    and abs(stored_profit - calculated) > self._profit_tolerance
                ):
                    issues.append(Issue(
                        code=IssueCode.PROFIT_MISMATCH,
                        category=IssueCategory.CALCULATION,
                        severity=Severity.HIGH,
                        description=(
                            f"WO {wo.label} profit mismatch: "
                            f"stored={stored_profit:.2f}, "
                            f"calculated={calculated:.2f}"
                        ),
                        refs=refs,
                        details={
                            "stored_profit": stored_profit,
                            "difference": stored_profit - calculated,
                            **sums.as_details(),
                        },
                    ))

            try:
                total_value = parse_amount(wo.total_value, "Total_Value")
            except InvalidAmountError:
                logger.debug("work_order_skipped", extra={
                    "work_order_id": wo.work_order_id,
                    "reason": "unparseable Total_Value",
                })
                continue

            if total_value is None or total_value == 0:
                issues.append(Issue(
                    code=IssueCode.MISSING_TOTAL_VALUE,
                    category=IssueCategory.MISSING_DATA,
                    severity=Severity.MEDIUM,
                    description=f"WO {wo.label} has no Total_Value",
                    refs=refs,
                    details=sums.as_details() if sums is not None else None,
                ))

        return tuple(issues)

    # -----------------------------------------------------------------
    # Mandatory timestamps on completed items
    # -----------------------------------------------------------------

    @traced_check(CHECK_COMPLETION_TIMESTAMPS, "1.0", fingerprint_fields=("view",))
    def check_completion_timestamps(self, view: SnapshotView) -> tuple[Issue, ...]:
        """Completed items need Started_At and Completed_At.

        Each missing field is its own finding.
        """
        issues: list[Issue] = []

        for wo, item in view.iter_items():
            if item.status != WorkOrderItemStatus.COMPLETED:
                continue
            refs = refs_of(
                (EntityType.WORK_ORDER, wo.work_order_id),
                (EntityType.WORK_ORDER_ITEM, item.item_id),
            )
            for code, field_name, raw in (
                (IssueCode.MISSING_STARTED_AT, "Started_At", item.started_at),
                (IssueCode.MISSING_COMPLETED_AT, "Completed_At", item.completed_at),
            ):
                if has_timestamp(raw):
                    continue
                issues.append(Issue(
                    code=code,
                    category=IssueCategory.MISSING_DATA,
                    severity=Severity.MEDIUM,
                    description=(
                        f'WO Item "{_item_label(item)}" is Completed but '
                        f"has no {field_name}"
                    ),
                    refs=refs,
                    details={"field": field_name},
                ))

        return tuple(issues)

    # -----------------------------------------------------------------
    # Work order status roll-up
    # -----------------------------------------------------------------

    @traced_check(CHECK_WORK_ORDER_ROLLUP, "1.0", fingerprint_fields=("view",))
    def check_work_order_rollup(self, view: SnapshotView) -> tuple[Issue, ...]:
        """Work order status must match the status derived from its items."""
        issues: list[Issue] = []

        for wo in view.work_orders:
            if wo.status not in _ROLLUP_WORK_ORDER_STATUSES or not wo.items:
                continue
            derived = derive_work_order_status(wo.items)
            if derived is None or derived == wo.status:
                continue
            issues.append(Issue(
                code=IssueCode.WORK_ORDER_STATUS_STALE,
                category=IssueCategory.SYNC_MISMATCH,
                severity=Severity.LOW,
                description=(
                    f'WO {wo.label} status is "{wo.status_raw}" but its '
                    f"items indicate {derived.value}"
                ),
                refs=refs_of((EntityType.WORK_ORDER, wo.work_order_id)),
                details={
                    "status": wo.status_raw,
                    "derived_status": derived.value,
                },
            ))

        return tuple(issues)

    # -----------------------------------------------------------------
    # Project status roll-up
    # -----------------------------------------------------------------

    @traced_check(CHECK_PROJECT_ROLLUP, "1.0", fingerprint_fields=("view",))
    def check_project_rollup(self, view: SnapshotView) -> tuple[Issue, ...]:
        """Project status must follow its products.

        All products Ready/Installed -> Completed.  An Approved project
        with a product in production -> InProduction.  Draft, Quoted and
        Cancelled projects are not synchronized.
        """
        issues: list[Issue] = []

        for project in view.projects:
            if project.status is None or project.status in _UNSYNCED_PROJECT_STATUSES:
                continue
            products = view.products_of(project.project_id)
            if not products:
                continue
            derived = derive_project_status(project.status, products)
            if derived is None:
                continue
            issues.append(Issue(
                code=IssueCode.PROJECT_STATUS_STALE,
                category=IssueCategory.SYNC_MISMATCH,
                severity=Severity.LOW,
                description=(
                    f'Project {project.project_id} status is '
                    f'"{project.status_raw}" but its products indicate '
                    f"{derived.value}"
                ),
                refs=refs_of((EntityType.PROJECT, project.project_id)),
                details={
                    "status": project.status_raw,
                    "derived_status": derived.value,
                },
            ))

        return tuple(issues)

    # -----------------------------------------------------------------
    # Item status roll-up from its processes
    # -----------------------------------------------------------------

    @traced_check(CHECK_ITEM_PROCESS_ROLLUP, "1.0", fingerprint_fields=("view",))
    def check_item_process_rollup(self, view: SnapshotView) -> tuple[Issue, ...]:
        """An item whose processes are all Completed must be Completed.

        Missing item timestamps are derived from the processes: the
        earliest process start and the latest process completion.
        """
        issues: list[Issue] = []

        for wo, item in view.iter_items():
            if not item.processes or item.status == WorkOrderItemStatus.COMPLETED:
                continue
            if any(p.status != WorkOrderItemStatus.COMPLETED for p in item.processes):
                continue

            details = {
                "status": item.status_raw,
                "derived_status": WorkOrderItemStatus.COMPLETED.value,
                "item_collection": item.source,
            }
            if not has_timestamp(item.started_at):
                started = _extreme_timestamp(
                    (p.started_at for p in item.processes), latest=False,
                )
                if started is not None:
                    details["derived_started_at"] = started
            if not has_timestamp(item.completed_at):
                completed = _extreme_timestamp(
                    (p.completed_at for p in item.processes), latest=True,
                )
                if completed is not None:
                    details["derived_completed_at"] = completed

            product = view.find_product(item.project_id, item.product_id)
            refs = (
                _item_refs(wo, item, product) if product is not None
                else refs_of(
                    (EntityType.WORK_ORDER, wo.work_order_id),
                    (EntityType.WORK_ORDER_ITEM, item.item_id),
                )
            )
            issues.append(Issue(
                code=IssueCode.ITEM_STATUS_STALE,
                category=IssueCategory.SYNC_MISMATCH,
                severity=Severity.MEDIUM,
                description=(
                    f'WO Item "{_item_label(item)}" has all processes '
                    f'Completed but status is "{item.status_raw}"'
                ),
                refs=refs,
                details=details,
            ))

        return tuple(issues)

    # -----------------------------------------------------------------
    # Labor cost bookkeeping
    # -----------------------------------------------------------------

    @traced_check(CHECK_LABOR_COST, "1.0", fingerprint_fields=("view",))
    def check_labor_cost(self, view: SnapshotView) -> tuple[Issue, ...]:
        """Compare item labor cost with its subtasks and assigned workers.

        Subtask labor costs that do not add up to a positive item labor
        cost (beyond one cent) are MEDIUM.  A Completed item worked on by
        an assigned worker but carrying no labor cost is LOW.
        """
        issues: list[Issue] = []

        for wo, item in view.iter_items():
            refs = refs_of(
                (EntityType.WORK_ORDER, wo.work_order_id),
                (EntityType.WORK_ORDER_ITEM, item.item_id),
            )
            try:
                labor = amount_or_zero(item.actual_labor_cost, "Actual_Labor_Cost")
                subtask_total = sum(
                    (amount_or_zero(c, "SubTasks.Actual_Labor_Cost")
                     for c in item.subtask_labor_costs),
                    Decimal("0"),
                )
            except InvalidAmountError as exc:
                logger.debug("work_order_item_skipped", extra={
                    "work_order_id": wo.work_order_id,
                    "item_id": item.item_id,
                    "reason": f"unparseable {exc.field_name}",
                })
                continue

            if (
                item.subtask_labor_costs
                and labor > 0
                and abs(labor - subtask_total) > _LABOR_COST_TOLERANCE
            ):
                issues.append(Issue(
                    code=IssueCode.SUBTASK_COST_MISMATCH,
                    category=IssueCategory.CALCULATION,
                    severity=Severity.MEDIUM,
                    description=(
                        f'WO Item "{_item_label(item)}" labor cost '
                        f"{labor:.2f} does not match its subtasks "
                        f"({subtask_total:.2f})"
                    ),
                    refs=refs,
                    details={
                        "actual_labor_cost": labor,
                        "subtask_labor_cost": subtask_total,
                        "difference": labor - subtask_total,
                    },
                ))

            if item.status != WorkOrderItemStatus.COMPLETED or labor > 0:
                continue
            workers = sorted({p.worker_id for p in item.processes if p.worker_id})
            if workers:
                issues.append(Issue(
                    code=IssueCode.MISSING_LABOR_COST,
                    category=IssueCategory.MISSING_DATA,
                    severity=Severity.LOW,
                    description=(
                        f'WO Item "{_item_label(item)}" is Completed with '
                        f"assigned workers but has no labor cost"
                    ),
                    refs=refs,
                    details={"workers": tuple(workers)},
                ))

        return tuple(issues)

    # -----------------------------------------------------------------
    # Orchestrator: run all checks
    # -----------------------------------------------------------------

    def run_all_checks(
        self,
        view: SnapshotView,
        enabled_checks: Iterable[str] | None = None,
        parallel: bool = False,
        max_workers: int | None = None,
    ) -> CheckRunResult:
        """Run the enabled checks and concatenate their issues.

        With ``parallel=True`` checks run on a thread pool.  Results are
        still concatenated in registration order, never completion order.
        """
        names = _select_checks(enabled_checks)
        checks: list[Callable[..., tuple[Issue, ...]]] = [
            self._check_for(name) for name in names
        ]

        if parallel and len(checks) > 1:
            with ThreadPoolExecutor(
                max_workers=max_workers or len(checks),
                thread_name_prefix="erp-check",
            ) as executor:
                futures = [executor.submit(check, view=view) for check in checks]
                results = [future.result() for future in futures]
        else:
            results = [check(view=view) for check in checks]

        issues: list[Issue] = []
        for result in results:
            issues.extend(result)

        return CheckRunResult(issues=tuple(issues), checks_performed=names)

    def _check_for(self, name: str) -> Callable[..., tuple[Issue, ...]]:
        return {
            CHECK_PRODUCT_STATUS: self.check_product_status,
            CHECK_STATUS_SYNC: self.check_status_sync,
            CHECK_FINANCIAL_INTEGRITY: self.check_financial_integrity,
            CHECK_COMPLETION_TIMESTAMPS: self.check_completion_timestamps,
            CHECK_WORK_ORDER_ROLLUP: self.check_work_order_rollup,
            CHECK_PROJECT_ROLLUP: self.check_project_rollup,
            CHECK_ITEM_PROCESS_ROLLUP: self.check_item_process_rollup,
            CHECK_LABOR_COST: self.check_labor_cost,
        }[name]


# =============================================================================
# Derivations shared with the reconciliation policy
# =============================================================================


@dataclass(frozen=True)
class ItemSums:
    """Per-item totals of one work order, computed in a single pass."""

    total_value: Decimal
    material_cost: Decimal
    labor_cost: Decimal

    @property
    def profit(self) -> Decimal:
        return self.total_value - self.material_cost - self.labor_cost

    @property
    def profit_margin(self) -> Decimal:
        """Profit as a percentage of total value; zero without value."""
        if self.total_value <= 0:
            return Decimal("0")
        return (self.profit / self.total_value * 100).quantize(Decimal("0.01"))

    def as_details(self) -> dict[str, Decimal]:
        return {
            "calculated_total_value": self.total_value,
            "calculated_material_cost": self.material_cost,
            "calculated_labor_cost": self.labor_cost,
            "calculated_profit": self.profit,
            "calculated_profit_margin": self.profit_margin,
        }


def derive_work_order_status(
    items: Iterable[WorkOrderItemRecord],
) -> WorkOrderStatus | None:
    """Status a work order should carry given its items.

    Completed when every item is Completed, InProgress when any item is
    InProgress, Pending otherwise.  None when an item status is unknown.
    """
    statuses = [item.status for item in items]
    if not statuses or any(s is None for s in statuses):
        return None
    if all(s == WorkOrderItemStatus.COMPLETED for s in statuses):
        return WorkOrderStatus.COMPLETED
    if any(s == WorkOrderItemStatus.IN_PROGRESS for s in statuses):
        return WorkOrderStatus.IN_PROGRESS
    return WorkOrderStatus.PENDING


def derive_project_status(
    current: ProjectStatus,
    products: Iterable[ProductRecord],
) -> ProjectStatus | None:
    """New project status implied by its products, or None if unchanged."""
    statuses = [p.status for p in products]
    all_finished = all(s in FINISHED_PRODUCT_STATUSES for s in statuses)
    any_in_production = any(
        s not in WAITING_PRODUCT_STATUSES and s not in FINISHED_PRODUCT_STATUSES
        for s in statuses
    )
    if all_finished and current != ProjectStatus.COMPLETED:
        return ProjectStatus.COMPLETED
    if any_in_production and current == ProjectStatus.APPROVED:
        return ProjectStatus.IN_PRODUCTION
    return None


# =============================================================================
# Helpers
# =============================================================================


def _select_checks(enabled_checks: Iterable[str] | None) -> tuple[str, ...]:
    if enabled_checks is None:
        return ALL_CHECKS
    requested = set(enabled_checks)
    unknown = requested - set(ALL_CHECKS)
    if unknown:
        raise ValueError(f"Unknown checks: {sorted(unknown)}")
    return tuple(name for name in ALL_CHECKS if name in requested)


def _item_sums(wo: WorkOrderRecord) -> ItemSums | None:
    """Sum item amounts in one pass; None if any amount is unparseable."""
    total = material = labor = Decimal("0")
    try:
        for item in wo.items:
            total += amount_or_zero(item.product_value, "Product_Value")
            material += amount_or_zero(item.material_cost, "Material_Cost")
            labor += amount_or_zero(item.actual_labor_cost, "Actual_Labor_Cost")
    except InvalidAmountError as exc:
        logger.debug("work_order_skipped", extra={
            "work_order_id": wo.work_order_id,
            "reason": f"unparseable {exc.field_name}",
        })
        return None
    return ItemSums(total_value=total, material_cost=material, labor_cost=labor)


def _safe_amount(raw, field_name: str, wo: WorkOrderRecord) -> Decimal | None:
    try:
        return parse_amount(raw, field_name)
    except InvalidAmountError:
        logger.debug("work_order_skipped", extra={
            "work_order_id": wo.work_order_id,
            "reason": f"unparseable {field_name}",
        })
        return None


def _active_process_status(view: SnapshotView, item: WorkOrderItemRecord) -> ProductStatus:
    """Product status named by the item's in-progress process, else Assembly."""
    for process in item.processes:
        if process.status != WorkOrderItemStatus.IN_PROGRESS:
            continue
        status = view.vocabulary.product_status(process.name_raw)
        if status in PROCESS_PRODUCT_STATUSES:
            return status
    return _DEFAULT_ACTIVE_PRODUCT_STATUS


def _item_refs(
    wo: WorkOrderRecord,
    item: WorkOrderItemRecord,
    product: ProductRecord,
):
    return refs_of(
        (EntityType.WORK_ORDER, wo.work_order_id),
        (EntityType.WORK_ORDER_ITEM, item.item_id),
        (EntityType.PROJECT, product.project_id),
        (EntityType.PRODUCT, product.product_id),
    )


def _product_label(product: ProductRecord) -> str:
    return product.name or product.product_id


def _item_label(item: WorkOrderItemRecord) -> str:
    return item.product_name or item.item_id or item.product_id or "?"


def _extreme_timestamp(raws: Iterable, latest: bool):
    """Stored value of the earliest (or latest) parseable timestamp."""
    parsed = [(parse_timestamp(raw), raw) for raw in raws]
    parsed = [(ts, raw) for ts, raw in parsed if ts is not None]
    if not parsed:
        return None
    pick = max if latest else min
    return pick(parsed, key=lambda pair: pair[0])[1]
