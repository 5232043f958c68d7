"""
Configuration Validator (``erp_config.validator``).

Responsibility
--------------
Validates an ``AuditConfiguration`` before it is handed to the engines,
so a bad YAML edit fails loudly at load time instead of producing a
silently wrong audit.

Invariants enforced
-------------------
* Check names are known to the checker.
* Tolerance, display limit and round count are in range.
* Every legacy product status maps to a current product status.
* Alias tables map to canonical values of their own entity kind.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> configuration
  MUST NOT be used.
* Validation warnings  -> configuration may be used but should be reviewed.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from erp_engines.audit.checker import ALL_CHECKS
from erp_kernel.domain.statuses import (
    CURRENT_PRODUCT_STATUSES,
    LEGACY_PRODUCT_STATUSES,
    ProductStatus,
    ProjectStatus,
    WorkOrderItemStatus,
    WorkOrderStatus,
)

from erp_config.schema import AuditConfiguration


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0


def validate_configuration(config: AuditConfiguration) -> ConfigValidationResult:
    """Validate a configuration."""
    result = ConfigValidationResult()

    audit = config.audit
    if audit.profit_tolerance < 0:
        result.errors.append(
            f"audit.profit_tolerance must be >= 0, got {audit.profit_tolerance}"
        )
    if audit.display_limit < 0:
        result.errors.append(
            f"audit.display_limit must be >= 0, got {audit.display_limit}"
        )
    if audit.enabled_checks is not None:
        unknown = sorted(set(audit.enabled_checks) - set(ALL_CHECKS))
        if unknown:
            result.errors.append(
                f"audit.enabled_checks has unknown checks: {unknown}"
            )
        if not audit.enabled_checks:
            result.warnings.append("audit.enabled_checks is empty; audits report nothing")

    if config.reconciliation.max_rounds < 1:
        result.errors.append(
            f"reconciliation.max_rounds must be >= 1, got {config.reconciliation.max_rounds}"
        )
    _validate_legacy_map(config.reconciliation.legacy_map, result)

    vocab = config.vocabulary
    _validate_aliases("vocabulary.product", vocab.product, ProductStatus, result)
    _validate_aliases("vocabulary.item", vocab.item, WorkOrderItemStatus, result)
    _validate_aliases("vocabulary.work_order", vocab.work_order, WorkOrderStatus, result)
    _validate_aliases("vocabulary.project", vocab.project, ProjectStatus, result)

    return result


def _validate_legacy_map(
    legacy_map: Mapping[str, str],
    result: ConfigValidationResult,
) -> None:
    legacy_values = {s.value for s in LEGACY_PRODUCT_STATUSES}
    current_values = {s.value for s in CURRENT_PRODUCT_STATUSES}

    for source, target in legacy_map.items():
        if source not in legacy_values:
            result.errors.append(
                f"reconciliation.legacy_map: {source!r} is not a legacy product status"
            )
        if target not in current_values:
            result.errors.append(
                f"reconciliation.legacy_map: target {target!r} for {source!r} "
                f"is not a current product status"
            )
    for missing in sorted(legacy_values - set(legacy_map)):
        result.errors.append(
            f"reconciliation.legacy_map: no target for legacy status {missing!r}"
        )


def _validate_aliases(
    key: str,
    aliases: Mapping[str, str] | None,
    enum_cls: type[Enum],
    result: ConfigValidationResult,
) -> None:
    if aliases is None:
        return
    canonical = {m.value for m in enum_cls}
    for label, value in aliases.items():
        if value not in canonical:
            result.errors.append(f"{key}: {label!r} maps to unknown status {value!r}")
        elif label in canonical and label != value:
            result.warnings.append(
                f"{key}: canonical label {label!r} is redirected to {value!r}"
            )
