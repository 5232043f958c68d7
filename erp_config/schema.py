"""
AuditConfiguration schema.

Defines the human-authored, reviewable configuration of an audit run.
YAML files are parsed into these types by the loader, checked by the
validator, and turned into engine inputs by the bridges.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Audit run settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditSettings:
    """How the checks run and how the report is shaped."""

    profit_tolerance: Decimal = Decimal("1")
    display_limit: int = 5
    parallel: bool = False
    enabled_checks: tuple[str, ...] | None = None  # None = all checks


# ---------------------------------------------------------------------------
# Reconciliation settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationSettings:
    """Corrective action policy inputs."""

    # Legacy product status -> current product status (canonical values)
    legacy_map: Mapping[str, str] = field(default_factory=lambda: {
        "WaitingForProduction": "Pending",
        "InProduction": "Cutting",
        "Done": "Installed",
    })
    max_rounds: int = 3


# ---------------------------------------------------------------------------
# Status vocabulary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VocabularySettings:
    """Stored label -> canonical status value, per entity kind.

    A table left as None keeps the built-in localized aliases.
    """

    product: Mapping[str, str] | None = None
    item: Mapping[str, str] | None = None
    work_order: Mapping[str, str] | None = None
    project: Mapping[str, str] | None = None


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditConfiguration:
    """Root configuration artifact."""

    config_id: str
    version: int
    audit: AuditSettings = field(default_factory=AuditSettings)
    reconciliation: ReconciliationSettings = field(default_factory=ReconciliationSettings)
    vocabulary: VocabularySettings = field(default_factory=VocabularySettings)
    description: str = ""
    checksum: str = ""
