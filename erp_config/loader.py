"""
Configuration Loader (``erp_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``erp_config.schema`` dataclasses.  The single public entry point for
runtime config is ``erp_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys or wrongly typed values  -> ``ValueError`` naming
  the offending key.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from erp_config.schema import (
    AuditConfiguration,
    AuditSettings,
    ReconciliationSettings,
    VocabularySettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping, got {type(data).__name__}")
    return data


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a Decimal from YAML (number or numeric string)."""
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key}: expected a number, got {value!r}") from None


def _parse_alias_table(data: Any, key: str) -> dict[str, str] | None:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"{key}: expected a mapping of label to status")
    return {str(k): str(v) for k, v in data.items()}


def parse_audit_settings(data: dict[str, Any]) -> AuditSettings:
    """Parse the ``audit`` section."""
    enabled = data.get("enabled_checks")
    if enabled is not None and not isinstance(enabled, list):
        raise ValueError("audit.enabled_checks: expected a list of check names")
    parallel = data.get("parallel", False)
    if not isinstance(parallel, bool):
        raise ValueError(f"audit.parallel: expected true/false, got {parallel!r}")
    display_limit = data.get("display_limit", 5)
    if isinstance(display_limit, bool) or not isinstance(display_limit, int):
        raise ValueError(f"audit.display_limit: expected an integer, got {display_limit!r}")
    return AuditSettings(
        profit_tolerance=parse_decimal(data.get("profit_tolerance", "1"), "audit.profit_tolerance"),
        display_limit=display_limit,
        parallel=parallel,
        enabled_checks=tuple(str(c) for c in enabled) if enabled is not None else None,
    )


def parse_reconciliation_settings(data: dict[str, Any]) -> ReconciliationSettings:
    """Parse the ``reconciliation`` section."""
    legacy_map = _parse_alias_table(data.get("legacy_map"), "reconciliation.legacy_map")
    max_rounds = data.get("max_rounds", 3)
    if isinstance(max_rounds, bool) or not isinstance(max_rounds, int):
        raise ValueError(f"reconciliation.max_rounds: expected an integer, got {max_rounds!r}")
    if legacy_map is None:
        return ReconciliationSettings(max_rounds=max_rounds)
    return ReconciliationSettings(legacy_map=legacy_map, max_rounds=max_rounds)


def parse_vocabulary(data: dict[str, Any]) -> VocabularySettings:
    """Parse the ``vocabulary`` section."""
    return VocabularySettings(
        product=_parse_alias_table(data.get("product"), "vocabulary.product"),
        item=_parse_alias_table(data.get("item"), "vocabulary.item"),
        work_order=_parse_alias_table(data.get("work_order"), "vocabulary.work_order"),
        project=_parse_alias_table(data.get("project"), "vocabulary.project"),
    )


def parse_configuration(data: dict[str, Any]) -> AuditConfiguration:
    """
    Parse a full configuration document.

    Postconditions:
        - ``checksum`` is the SHA-256 of the canonical source document.

    Raises:
        ValueError: if ``version`` or ``config_id`` is missing, or a value
            has the wrong type.
    """
    for key in ("version", "config_id"):
        if key not in data:
            raise ValueError(f"{key}: required key is missing")
    version = data["version"]
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValueError(f"version: expected an integer, got {version!r}")
    return AuditConfiguration(
        config_id=str(data["config_id"]),
        version=version,
        description=str(data.get("description", "")),
        audit=parse_audit_settings(data.get("audit") or {}),
        reconciliation=parse_reconciliation_settings(data.get("reconciliation") or {}),
        vocabulary=parse_vocabulary(data.get("vocabulary") or {}),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> AuditConfiguration:
    """Load and parse a configuration file."""
    return parse_configuration(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
