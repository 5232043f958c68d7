"""
Pure domain layer.

This module contains immutable records and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock
- I/O
"""

from erp_kernel.domain.snapshot import (
    SNAPSHOT_COLLECTIONS,
    ProcessStep,
    ProductRecord,
    ProjectRecord,
    SnapshotView,
    WorkOrderItemRecord,
    WorkOrderRecord,
    read_snapshot,
)
from erp_kernel.domain.statuses import (
    CURRENT_PRODUCT_STATUSES,
    FINISHED_PRODUCT_STATUSES,
    LEGACY_PRODUCT_STATUSES,
    WAITING_PRODUCT_STATUSES,
    ProductStatus,
    ProjectStatus,
    StatusClass,
    StatusVocabulary,
    WorkOrderItemStatus,
    WorkOrderStatus,
    classify_product_status,
)
from erp_kernel.domain.values import (
    InvalidAmountError,
    amount_or_zero,
    has_timestamp,
    parse_amount,
)

__all__ = [
    "SNAPSHOT_COLLECTIONS",
    "ProcessStep",
    "ProductRecord",
    "ProjectRecord",
    "SnapshotView",
    "WorkOrderItemRecord",
    "WorkOrderRecord",
    "read_snapshot",
    "CURRENT_PRODUCT_STATUSES",
    "FINISHED_PRODUCT_STATUSES",
    "LEGACY_PRODUCT_STATUSES",
    "WAITING_PRODUCT_STATUSES",
    "ProductStatus",
    "ProjectStatus",
    "StatusClass",
    "StatusVocabulary",
    "WorkOrderItemStatus",
    "WorkOrderStatus",
    "classify_product_status",
    "InvalidAmountError",
    "amount_or_zero",
    "has_timestamp",
    "parse_amount",
]
