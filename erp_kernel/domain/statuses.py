"""
Statuses -- Closed status enumerations and the localized vocabulary.

Responsibility:
    Defines the canonical status sets for projects, products, work orders
    and work order items, the retired (legacy) product statuses, and the
    StatusVocabulary that maps the labels actually stored in the document
    store (localized Bosnian labels, canonical English values, or both)
    onto those enums.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - The current and legacy product status sets are disjoint.
    - Normalization is total: any raw value maps to an enum member or None,
      never raises.
    - Alias resolution is per entity kind.  The same label ("Završeno")
      means Completed for an item but the legacy Done for a product.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar


class ProjectStatus(str, Enum):
    """Project workflow statuses."""

    DRAFT = "Draft"
    QUOTED = "Quoted"
    APPROVED = "Approved"
    IN_PRODUCTION = "InProduction"
    ASSEMBLY = "Assembly"
    INSTALLATION = "Installation"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ProductStatus(str, Enum):
    """Product statuses, current workflow followed by the retired one."""

    PENDING = "Pending"
    MATERIALS_ORDERED = "MaterialsOrdered"
    MATERIALS_READY = "MaterialsReady"
    CUTTING = "Cutting"
    EDGING = "Edging"
    DRILLING = "Drilling"
    ASSEMBLY = "Assembly"
    READY = "Ready"
    INSTALLED = "Installed"

    # Retired workflow; must be migrated, not treated as an error
    WAITING_FOR_PRODUCTION = "WaitingForProduction"
    IN_PRODUCTION = "InProduction"
    DONE = "Done"


class WorkOrderStatus(str, Enum):
    """Work order statuses."""

    DRAFT = "Draft"
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class WorkOrderItemStatus(str, Enum):
    """Work order line item statuses."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


class StatusClass(str, Enum):
    """Classification of a stored product status."""

    CURRENT = "current"
    LEGACY = "legacy"
    UNKNOWN = "unknown"


CURRENT_PRODUCT_STATUSES: frozenset[ProductStatus] = frozenset({
    ProductStatus.PENDING,
    ProductStatus.MATERIALS_ORDERED,
    ProductStatus.MATERIALS_READY,
    ProductStatus.CUTTING,
    ProductStatus.EDGING,
    ProductStatus.DRILLING,
    ProductStatus.ASSEMBLY,
    ProductStatus.READY,
    ProductStatus.INSTALLED,
})

LEGACY_PRODUCT_STATUSES: frozenset[ProductStatus] = frozenset({
    ProductStatus.WAITING_FOR_PRODUCTION,
    ProductStatus.IN_PRODUCTION,
    ProductStatus.DONE,
})

# Production finished for the product
FINISHED_PRODUCT_STATUSES: frozenset[ProductStatus] = frozenset({
    ProductStatus.READY,
    ProductStatus.INSTALLED,
})

# Product still waiting on materials; no work can be in progress
WAITING_PRODUCT_STATUSES: frozenset[ProductStatus] = frozenset({
    ProductStatus.PENDING,
    ProductStatus.MATERIALS_ORDERED,
    ProductStatus.MATERIALS_READY,
})

# Shop-floor process steps, in process order
PROCESS_PRODUCT_STATUSES: tuple[ProductStatus, ...] = (
    ProductStatus.CUTTING,
    ProductStatus.EDGING,
    ProductStatus.DRILLING,
    ProductStatus.ASSEMBLY,
)


# ---------------------------------------------------------------------------
# Localized labels written by the production application
# ---------------------------------------------------------------------------

DEFAULT_PRODUCT_ALIASES: Mapping[str, str] = {
    "Na čekanju": "Pending",
    "Materijali naručeni": "MaterialsOrdered",
    "Materijali spremni": "MaterialsReady",
    "Rezanje": "Cutting",
    "Kantiranje": "Edging",
    "Bušenje": "Drilling",
    "Sklapanje": "Assembly",
    "Spremno": "Ready",
    "Instalirano": "Installed",
    "Čeka proizvodnju": "WaitingForProduction",
    "U proizvodnji": "InProduction",
    "Završeno": "Done",
}

DEFAULT_ITEM_ALIASES: Mapping[str, str] = {
    "Na čekanju": "Pending",
    "U toku": "InProgress",
    "Završeno": "Completed",
}

DEFAULT_WORK_ORDER_ALIASES: Mapping[str, str] = {
    "Nacrt": "Draft",
    "Na čekanju": "Pending",
    "U toku": "InProgress",
    "Završeno": "Completed",
    "Otkazano": "Cancelled",
}

DEFAULT_PROJECT_ALIASES: Mapping[str, str] = {
    "Nacrt": "Draft",
    "Ponuđeno": "Quoted",
    "Odobreno": "Approved",
    "U proizvodnji": "InProduction",
    "Sklapanje": "Assembly",
    "Montaža": "Installation",
    "Završeno": "Completed",
    "Otkazano": "Cancelled",
}


_E = TypeVar("_E", bound=Enum)


def _label(aliases: Mapping[str, str], status: Enum) -> str:
    """First stored label aliased to ``status``; the canonical value if none."""
    for label, canonical in aliases.items():
        if canonical == status.value:
            return label
    return status.value


def _resolve(enum_cls: type[_E], aliases: Mapping[str, str], raw: Any) -> _E | None:
    if not isinstance(raw, str):
        return None
    label = raw.strip()
    if not label:
        return None
    canonical = aliases.get(label, label)
    try:
        return enum_cls(canonical)
    except ValueError:
        return None


@dataclass(frozen=True)
class StatusVocabulary:
    """Per-entity alias tables mapping stored labels to canonical values.

    Canonical English values are always accepted; aliases add to them.
    The ``*_label`` methods go the other way: the label a write should
    store for a canonical status, so corrected documents keep the
    vocabulary the application reads.
    """

    product_aliases: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_PRODUCT_ALIASES)
    )
    item_aliases: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_ITEM_ALIASES)
    )
    work_order_aliases: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_WORK_ORDER_ALIASES)
    )
    project_aliases: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_PROJECT_ALIASES)
    )

    def product_status(self, raw: Any) -> ProductStatus | None:
        return _resolve(ProductStatus, self.product_aliases, raw)

    def item_status(self, raw: Any) -> WorkOrderItemStatus | None:
        return _resolve(WorkOrderItemStatus, self.item_aliases, raw)

    def work_order_status(self, raw: Any) -> WorkOrderStatus | None:
        return _resolve(WorkOrderStatus, self.work_order_aliases, raw)

    def project_status(self, raw: Any) -> ProjectStatus | None:
        return _resolve(ProjectStatus, self.project_aliases, raw)

    def product_label(self, status: ProductStatus) -> str:
        return _label(self.product_aliases, status)

    def item_label(self, status: WorkOrderItemStatus) -> str:
        return _label(self.item_aliases, status)

    def work_order_label(self, status: WorkOrderStatus) -> str:
        return _label(self.work_order_aliases, status)

    def project_label(self, status: ProjectStatus) -> str:
        return _label(self.project_aliases, status)


def classify_product_status(status: ProductStatus | None) -> StatusClass:
    """Classify a normalized product status as current, legacy or unknown."""
    if status is None:
        return StatusClass.UNKNOWN
    if status in LEGACY_PRODUCT_STATUSES:
        return StatusClass.LEGACY
    return StatusClass.CURRENT
