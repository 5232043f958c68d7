"""
Snapshot -- Read-only typed view over a point-in-time production data read.

Responsibility:
    Turns the raw snapshot (collection name -> sequence of records, as the
    document store returns them) into typed, indexed, immutable records:
    projects, products (joined from the nested and flat layouts), work
    orders and their items, plus an O(1) (Project_ID, Product_ID) lookup
    used by cross-entity checks.

Architecture position:
    Kernel > Domain -- pure transformation, zero I/O.

Invariants enforced:
    - Missing collections are empty collections.
    - A present collection that is not a sequence is fatal
      (MalformedSnapshotError); no partial view is produced.
    - Records that are not mappings, or that lack their own identifier,
      are skipped (per-entity anomaly, logged at DEBUG only).
    - Duplicate identities within one layer resolve independently of input
      order: identical copies collapse, conflicting copies are skipped.
    - Flat collections win over nested copies on duplicate identity.
    - Every product and item records the collection it was read from, so
      writes can target the document that actually holds it.
    - The view is never mutated after construction.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable, Hashable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Any, TypeVar

from erp_kernel.domain.statuses import (
    ProductStatus,
    ProjectStatus,
    StatusClass,
    StatusVocabulary,
    WorkOrderItemStatus,
    WorkOrderStatus,
    classify_product_status,
)
from erp_kernel.exceptions import MalformedSnapshotError
from erp_kernel.logging_config import get_logger

logger = get_logger("domain.snapshot")

PROJECTS = "projects"
PRODUCTS = "products"
WORK_ORDERS = "workOrders"
WORK_ORDER_ITEMS = "workOrderItems"

SNAPSHOT_COLLECTIONS: tuple[str, ...] = (
    PROJECTS,
    PRODUCTS,
    WORK_ORDERS,
    WORK_ORDER_ITEMS,
)

# Nested layouts used by the production application
_NESTED_PRODUCTS = "products"
_NESTED_ITEMS = "items"

_R = TypeVar("_R")


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class ProjectRecord:
    project_id: str
    status_raw: Any
    status: ProjectStatus | None
    client_name: str = ""
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class ProductRecord:
    project_id: str
    product_id: str
    status_raw: Any
    status: ProductStatus | None
    name: str = ""
    material_cost: Any = None
    # PRODUCTS for the flat collection, PROJECTS when nested in a project
    source: str = PRODUCTS
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def status_class(self) -> StatusClass:
        return classify_product_status(self.status)

    @property
    def key(self) -> tuple[str, str]:
        return (self.project_id, self.product_id)

    @property
    def is_flat(self) -> bool:
        return self.source == PRODUCTS


@dataclass(frozen=True)
class ProcessStep:
    """One shop-floor process tracked on a work order item."""

    name_raw: Any
    status_raw: Any
    status: WorkOrderItemStatus | None
    worker_id: str | None = None
    started_at: Any = None
    completed_at: Any = None


@dataclass(frozen=True)
class WorkOrderItemRecord:
    item_id: str | None
    work_order_id: str
    project_id: str | None
    product_id: str | None
    status_raw: Any
    status: WorkOrderItemStatus | None
    product_name: str = ""
    product_value: Any = None
    material_cost: Any = None
    actual_labor_cost: Any = None
    started_at: Any = None
    completed_at: Any = None
    processes: tuple[ProcessStep, ...] = ()
    subtask_labor_costs: tuple[Any, ...] = ()
    # WORK_ORDER_ITEMS for the flat collection, WORK_ORDERS when nested
    source: str = WORK_ORDER_ITEMS
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def product_key(self) -> tuple[str, str] | None:
        if self.project_id is None or self.product_id is None:
            return None
        return (self.project_id, self.product_id)

    @property
    def is_flat(self) -> bool:
        return self.source == WORK_ORDER_ITEMS


@dataclass(frozen=True)
class WorkOrderRecord:
    work_order_id: str
    status_raw: Any
    status: WorkOrderStatus | None
    number: str = ""
    total_value: Any = None
    profit: Any = None
    items: tuple[WorkOrderItemRecord, ...] = ()
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def label(self) -> str:
        return self.number or self.work_order_id


# =============================================================================
# View
# =============================================================================


@dataclass(frozen=True)
class SnapshotView:
    """Immutable, indexed view over one audit snapshot."""

    projects: tuple[ProjectRecord, ...] = ()
    products: tuple[ProductRecord, ...] = ()
    work_orders: tuple[WorkOrderRecord, ...] = ()
    vocabulary: StatusVocabulary = field(default_factory=StatusVocabulary)
    _product_index: Mapping[tuple[str, str], ProductRecord] = field(
        default_factory=dict, repr=False, compare=False,
    )
    _products_by_project: Mapping[str, tuple[ProductRecord, ...]] = field(
        default_factory=dict, repr=False, compare=False,
    )

    def find_product(self, project_id: str | None, product_id: str | None) -> ProductRecord | None:
        """O(1) product lookup by (Project_ID, Product_ID)."""
        if project_id is None or product_id is None:
            return None
        return self._product_index.get((project_id, product_id))

    def products_of(self, project_id: str) -> tuple[ProductRecord, ...]:
        return self._products_by_project.get(project_id, ())

    @property
    def products_by_project(self) -> Mapping[str, tuple[ProductRecord, ...]]:
        return self._products_by_project

    def iter_items(self) -> Iterator[tuple[WorkOrderRecord, WorkOrderItemRecord]]:
        """Yield every (work order, item) pair in snapshot order."""
        for wo in self.work_orders:
            for item in wo.items:
                yield wo, item

    @property
    def item_count(self) -> int:
        return sum(len(wo.items) for wo in self.work_orders)

    @cached_property
    def digest(self) -> str:
        """Deterministic content hash of the records in the view."""
        payload = {
            "projects": [p.raw for p in self.projects],
            "products": [p.raw for p in self.products],
            "work_orders": [
                {"wo": wo.raw, "items": [i.raw for i in wo.items]}
                for wo in self.work_orders
            ],
        }
        canonical = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]

    def __str__(self) -> str:
        return (
            f"SnapshotView(projects={len(self.projects)}, "
            f"products={len(self.products)}, "
            f"work_orders={len(self.work_orders)}, digest={self.digest})"
        )


# =============================================================================
# Reader
# =============================================================================


def read_snapshot(
    snapshot: Mapping[str, Any],
    vocabulary: StatusVocabulary | None = None,
) -> SnapshotView:
    """Build a SnapshotView from a raw snapshot mapping.

    Duplicate identities are resolved without regard to input order:
    identical copies collapse to one record, conflicting copies are all
    skipped.  Across layers the flat collection wins over the nested one.

    Raises:
        MalformedSnapshotError: the snapshot is not a mapping, or one of its
            top-level collections is present but not a sequence.  A nested
            products/items field of the wrong shape only skips that owner's
            children.
    """
    vocab = vocabulary or StatusVocabulary()
    if not isinstance(snapshot, Mapping):
        raise MalformedSnapshotError("<snapshot>", type(snapshot).__name__)

    raw_projects = _collection(snapshot, PROJECTS)
    raw_products = _collection(snapshot, PRODUCTS)
    raw_work_orders = _collection(snapshot, WORK_ORDERS)
    raw_items = _collection(snapshot, WORK_ORDER_ITEMS)

    projects: list[ProjectRecord] = []
    for raw in _records(raw_projects, PROJECTS):
        project_id = _id(raw.get("Project_ID"))
        if project_id is None:
            logger.debug("snapshot_record_skipped", extra={
                "collection": PROJECTS, "reason": "missing Project_ID",
            })
            continue
        projects.append(ProjectRecord(
            project_id=project_id,
            status_raw=raw.get("Status"),
            status=vocab.project_status(raw.get("Status")),
            client_name=str(raw.get("Client_Name") or ""),
            raw=raw,
        ))
    projects = _unique(projects, lambda p: p.project_id, PROJECTS)

    nested_products: list[ProductRecord] = []
    for project in projects:
        nested = _collection(project.raw, _NESTED_PRODUCTS, owner=f"{PROJECTS}[{project.project_id}]")
        for raw_product in _records(nested, PRODUCTS):
            product = _product(raw_product, vocab, project.project_id, source=PROJECTS)
            if product is not None:
                nested_products.append(product)

    flat_products = [
        product
        for product in (
            _product(raw, vocab, None, source=PRODUCTS)
            for raw in _records(raw_products, PRODUCTS)
        )
        if product is not None
    ]

    product_index: dict[tuple[str, str], ProductRecord] = {
        p.key: p for p in _unique(nested_products, lambda p: p.key, PRODUCTS)
    }
    # Flat products collection wins over nested copies
    for product in _unique(flat_products, lambda p: p.key, PRODUCTS):
        product_index[product.key] = product

    products = tuple(product_index.values())
    grouped: dict[str, list[ProductRecord]] = {}
    for product in products:
        grouped.setdefault(product.project_id, []).append(product)

    flat_items: dict[str, list[Mapping[str, Any]]] = {}
    for raw_item in _records(raw_items, WORK_ORDER_ITEMS):
        wo_id = _id(raw_item.get("Work_Order_ID"))
        if wo_id is None:
            logger.debug("snapshot_record_skipped", extra={
                "collection": WORK_ORDER_ITEMS, "reason": "missing Work_Order_ID",
            })
            continue
        flat_items.setdefault(wo_id, []).append(raw_item)

    work_order_raws: list[tuple[str, Mapping[str, Any]]] = []
    for raw in _records(raw_work_orders, WORK_ORDERS):
        wo_id = _id(raw.get("Work_Order_ID"))
        if wo_id is None:
            logger.debug("snapshot_record_skipped", extra={
                "collection": WORK_ORDERS, "reason": "missing Work_Order_ID",
            })
            continue
        work_order_raws.append((wo_id, raw))

    work_orders: list[WorkOrderRecord] = []
    for wo_id, raw in _unique(work_order_raws, lambda pair: pair[0], WORK_ORDERS, raw_of=lambda pair: pair[1]):
        nested = _collection(raw, _NESTED_ITEMS, owner=f"{WORK_ORDERS}[{wo_id}]")
        items = _merge_items(
            [_item(r, wo_id, vocab, source=WORK_ORDERS) for r in _records(nested, WORK_ORDER_ITEMS)],
            [_item(r, wo_id, vocab, source=WORK_ORDER_ITEMS) for r in flat_items.pop(wo_id, [])],
        )
        work_orders.append(WorkOrderRecord(
            work_order_id=wo_id,
            status_raw=raw.get("Status"),
            status=vocab.work_order_status(raw.get("Status")),
            number=str(raw.get("Work_Order_Number") or ""),
            total_value=raw.get("Total_Value"),
            profit=raw.get("Profit"),
            items=items,
            raw=raw,
        ))

    if flat_items:
        logger.debug("snapshot_orphan_items_skipped", extra={
            "work_order_ids": sorted(flat_items),
        })

    return SnapshotView(
        projects=tuple(projects),
        products=products,
        work_orders=tuple(work_orders),
        vocabulary=vocab,
        _product_index=MappingProxyType(product_index),
        _products_by_project=MappingProxyType(
            {k: tuple(v) for k, v in grouped.items()}
        ),
    )


# =============================================================================
# Helpers
# =============================================================================


def _unique(
    records: Iterable[_R],
    key_of: Callable[[_R], Hashable | None],
    collection: str,
    raw_of: Callable[[_R], Any] = lambda r: r.raw,
) -> list[_R]:
    """Resolve duplicate identities within one layer of a collection.

    Identical copies collapse to the first one; when copies disagree none
    of them is kept.  Records without an identity pass through.  The kept
    set does not depend on input order.
    """
    groups: dict[Hashable, list[_R]] = {}
    sequence: list[tuple[Hashable | None, _R | None]] = []
    for record in records:
        key = key_of(record)
        if key is None:
            sequence.append((None, record))
        elif key in groups:
            groups[key].append(record)
        else:
            groups[key] = [record]
            sequence.append((key, None))

    kept: list[_R] = []
    for key, record in sequence:
        if key is None:
            kept.append(record)
            continue
        copies = groups[key]
        first = raw_of(copies[0])
        if all(raw_of(other) == first for other in copies[1:]):
            kept.append(copies[0])
        else:
            logger.debug("snapshot_duplicate_skipped", extra={
                "collection": collection,
                "id": "/".join(key) if isinstance(key, tuple) else str(key),
                "copies": len(copies),
            })
    return kept


def _collection(
    container: Mapping[str, Any],
    name: str,
    owner: str | None = None,
) -> Sequence[Any]:
    """Return a collection; top-level shape errors are fatal, nested ones skip."""
    value = container.get(name)
    if value is None:
        return ()
    if isinstance(value, (str, bytes, bytearray, Mapping)) or not isinstance(value, Sequence):
        if owner is None:
            raise MalformedSnapshotError(name, type(value).__name__)
        logger.debug("snapshot_nested_collection_skipped", extra={
            "collection": f"{owner}.{name}",
            "found_type": type(value).__name__,
        })
        return ()
    return value


def _records(values: Sequence[Any], collection: str) -> Iterator[Mapping[str, Any]]:
    for value in values:
        if isinstance(value, Mapping):
            yield value
        else:
            logger.debug("snapshot_record_skipped", extra={
                "collection": collection,
                "reason": f"record is {type(value).__name__}",
            })


def _id(raw: Any) -> str | None:
    if raw is None or isinstance(raw, bool):
        return None
    value = str(raw).strip()
    return value or None


def _product(
    raw: Mapping[str, Any],
    vocab: StatusVocabulary,
    default_project_id: str | None,
    source: str,
) -> ProductRecord | None:
    product_id = _id(raw.get("Product_ID"))
    project_id = _id(raw.get("Project_ID")) or default_project_id
    if product_id is None or project_id is None:
        logger.debug("snapshot_record_skipped", extra={
            "collection": PRODUCTS, "reason": "missing Product_ID or Project_ID",
        })
        return None
    return ProductRecord(
        project_id=project_id,
        product_id=product_id,
        status_raw=raw.get("Status"),
        status=vocab.product_status(raw.get("Status")),
        name=str(raw.get("Name") or ""),
        material_cost=raw.get("Material_Cost"),
        source=source,
        raw=raw,
    )


def _sequence_of_mappings(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        return []
    return [v for v in value if isinstance(v, Mapping)]


def _item(
    raw: Mapping[str, Any],
    work_order_id: str,
    vocab: StatusVocabulary,
    source: str,
) -> WorkOrderItemRecord:
    processes = tuple(
        ProcessStep(
            name_raw=proc.get("Process_Name"),
            status_raw=proc.get("Status"),
            status=vocab.item_status(proc.get("Status")),
            worker_id=_id(proc.get("Worker_ID")),
            started_at=proc.get("Started_At"),
            completed_at=proc.get("Completed_At"),
        )
        for proc in _sequence_of_mappings(raw.get("Processes"))
    )
    return WorkOrderItemRecord(
        item_id=_id(raw.get("ID")),
        work_order_id=work_order_id,
        project_id=_id(raw.get("Project_ID")),
        product_id=_id(raw.get("Product_ID")),
        status_raw=raw.get("Status"),
        status=vocab.item_status(raw.get("Status")),
        product_name=str(raw.get("Product_Name") or ""),
        product_value=raw.get("Product_Value"),
        material_cost=raw.get("Material_Cost"),
        actual_labor_cost=raw.get("Actual_Labor_Cost"),
        started_at=raw.get("Started_At"),
        completed_at=raw.get("Completed_At"),
        processes=processes,
        subtask_labor_costs=tuple(
            sub.get("Actual_Labor_Cost")
            for sub in _sequence_of_mappings(raw.get("SubTasks"))
        ),
        source=source,
        raw=raw,
    )


def _merge_items(
    nested: list[WorkOrderItemRecord],
    flat: list[WorkOrderItemRecord],
) -> tuple[WorkOrderItemRecord, ...]:
    """Merge nested and flat items; flat wins on duplicate item ID."""
    merged = _unique(nested, lambda i: i.item_id, WORK_ORDER_ITEMS)
    position = {
        item.item_id: n for n, item in enumerate(merged) if item.item_id is not None
    }
    for item in _unique(flat, lambda i: i.item_id, WORK_ORDER_ITEMS):
        if item.item_id is not None and item.item_id in position:
            merged[position[item.item_id]] = item
        else:
            merged.append(item)
    return tuple(merged)
