"""
Config -> Engine Bridges.

Functions that convert an AuditConfiguration into kernel and engine
inputs.  They live in erp_config (the producer) because the kernel and the
engines must NEVER import erp_config.

Usage:
    from erp_config.bridges import build_vocabulary, build_policy

    config = get_active_config()
    vocabulary = build_vocabulary(config)
    policy = build_policy(config)
"""

from __future__ import annotations

from erp_engines.reconciliation import ReconciliationPolicy
from erp_kernel.domain.statuses import (
    DEFAULT_ITEM_ALIASES,
    DEFAULT_PRODUCT_ALIASES,
    DEFAULT_PROJECT_ALIASES,
    DEFAULT_WORK_ORDER_ALIASES,
    ProductStatus,
    StatusVocabulary,
)

from erp_config.schema import AuditConfiguration


def build_vocabulary(config: AuditConfiguration) -> StatusVocabulary:
    """Alias tables from config; missing tables keep the built-in defaults."""
    vocab = config.vocabulary
    return StatusVocabulary(
        product_aliases=dict(vocab.product if vocab.product is not None else DEFAULT_PRODUCT_ALIASES),
        item_aliases=dict(vocab.item if vocab.item is not None else DEFAULT_ITEM_ALIASES),
        work_order_aliases=dict(
            vocab.work_order if vocab.work_order is not None else DEFAULT_WORK_ORDER_ALIASES
        ),
        project_aliases=dict(vocab.project if vocab.project is not None else DEFAULT_PROJECT_ALIASES),
    )


def build_legacy_map(config: AuditConfiguration) -> dict[ProductStatus, ProductStatus]:
    return {
        ProductStatus(source): ProductStatus(target)
        for source, target in config.reconciliation.legacy_map.items()
    }


def build_policy(config: AuditConfiguration) -> ReconciliationPolicy:
    return ReconciliationPolicy(
        legacy_map=build_legacy_map(config),
        vocabulary=build_vocabulary(config),
    )
