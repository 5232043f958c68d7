"""
Values -- amount and timestamp parsing for document-store records.

Responsibility:
    Converts the loosely typed numeric fields of stored records (numbers,
    numeric strings, missing values) into Decimal.  Floats are converted
    through their string form so 0.1 stays 0.1.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - InvalidAmountError (a ValueError) for values that are present but not
      a finite number.  Checks treat this as "cannot evaluate" and skip the
      entity; it is never reported as an invariant violation.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")


class InvalidAmountError(ValueError):
    """A stored amount field is present but not a finite number."""

    def __init__(self, field_name: str, raw: Any):
        self.field_name = field_name
        self.raw = raw
        super().__init__(f"Field {field_name} is not a number: {raw!r}")


def is_missing(raw: Any) -> bool:
    """True for values the production application treats as absent."""
    return raw is None or (isinstance(raw, str) and not raw.strip())


def parse_amount(raw: Any, field_name: str = "amount") -> Decimal | None:
    """Parse a stored amount; None when the field is absent.

    Raises:
        InvalidAmountError: value present but not a finite number.
    """
    if is_missing(raw):
        return None
    if isinstance(raw, bool):
        raise InvalidAmountError(field_name, raw)
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float, str)):
        try:
            value = Decimal(str(raw).strip())
        except InvalidOperation:
            raise InvalidAmountError(field_name, raw) from None
    else:
        raise InvalidAmountError(field_name, raw)
    if not value.is_finite():
        raise InvalidAmountError(field_name, raw)
    return value


def amount_or_zero(raw: Any, field_name: str = "amount") -> Decimal:
    """Parse a stored amount, treating an absent field as zero."""
    value = parse_amount(raw, field_name)
    return ZERO if value is None else value


def has_timestamp(raw: Any) -> bool:
    """True when a timestamp field carries a value."""
    return not is_missing(raw)


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp; None when absent or unparseable.

    Naive values are taken as UTC so stored timestamps stay comparable.
    """
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, str) and not is_missing(raw):
        try:
            value = datetime.fromisoformat(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value
