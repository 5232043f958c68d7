"""
erp_config -- single public entrypoint for audit configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services never read YAML files directly.
    Returns a frozen ``AuditConfiguration``.

Architecture position:
    Configuration -- YAML-driven settings, load-time validation.
    This package sits above ``erp_kernel`` and ``erp_engines`` and below
    ``erp_services``.  The kernel and the engines MUST NEVER import from
    ``erp_config``; bridges in this package translate the configuration
    into engine inputs.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- parse or validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``ERP_CONFIG_TRACE`` log entry containing the config_id, version and
    checksum, tying each audit run to the exact configuration it used.
"""

from __future__ import annotations

import logging
from pathlib import Path

from erp_config.loader import load_configuration
from erp_config.schema import AuditConfiguration
from erp_config.validator import validate_configuration

_logger = logging.getLogger("erp_kernel.config")

# Default configuration set
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> AuditConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a configuration file.  Defaults to
            erp_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If parsing or validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = load_configuration(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})

    _logger.info(
        "ERP_CONFIG_TRACE",
        extra={
            "trace_type": "ERP_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "enabled_checks": list(config.audit.enabled_checks or ()),
            "parallel": config.audit.parallel,
        },
    )

    return config


__all__ = ["AuditConfiguration", "get_active_config"]
