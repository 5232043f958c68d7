"""
erp_engines.tracer -- Check invocation tracer emitting ERP_CHECK_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_check``) that wraps pure
    check invocations with structured trace logging.  The trace captures
    check_name, check_version, input_fingerprint (deterministic SHA-256
    hash of selected inputs), result size, and duration_ms.

Architecture position:
    Engines -- infrastructure support for the pure check layer.
    Does NOT introduce I/O into engines; emits a log record only.

Invariants enforced:
    - Fingerprint computation is deterministic: _canonicalize produces
      stable string representations; dict keys are sorted; the hash is
      SHA-256 truncated to 16 hex chars.
    - Purity: the decorator only reads kwargs and emits a log record.

Usage:
    from erp_engines.tracer import traced_check

    @traced_check("status_sync", "1.0", fingerprint_fields=("view",))
    def check_status_sync(self, view):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable, Sized
from typing import Any

# Uses its own logger namespace so engines need not configure logging.
_logger = logging.getLogger("erp_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting.

    Unknown types fall back to ``str(value)``; SnapshotView renders its
    content digest there.
    """
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        items = sorted(value.items())
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """Compute a deterministic SHA-256 fingerprint of selected input fields.

    Missing fields are recorded as "null".  Returns 16 hex characters.
    """
    parts: list[str] = []
    for field in fingerprint_fields:
        val = kwargs.get(field)
        parts.append(f"{field}={_canonicalize(val)}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_check(
    check_name: str,
    check_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits ERP_CHECK_TRACE for pure check invocations.

    Args:
        check_name: Check identifier (e.g., "status_sync").
        check_version: Check version (e.g., "1.0").
        fingerprint_fields: Keyword argument names to include in
            the input fingerprint hash.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                fp = compute_input_fingerprint(fingerprint_fields, kwargs)

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "ERP_CHECK_TRACE",
                extra={
                    "trace_type": "ERP_CHECK_TRACE",
                    "check_name": check_name,
                    "check_version": check_version,
                    "input_fingerprint": fp,
                    "result_size": len(result) if isinstance(result, Sized) else None,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
