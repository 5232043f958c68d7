"""Tests for amount parsing of loosely typed stored fields."""

from decimal import Decimal

import pytest

from erp_kernel.domain.values import (
    InvalidAmountError,
    amount_or_zero,
    has_timestamp,
    is_missing,
    parse_amount,
)


class TestParseAmount:
    @pytest.mark.parametrize("raw,expected", [
        (100, Decimal("100")),
        (0.1, Decimal("0.1")),
        ("250.50", Decimal("250.50")),
        (" 12 ", Decimal("12")),
        (Decimal("7.25"), Decimal("7.25")),
        (-40, Decimal("-40")),
    ])
    def test_valid(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing_is_none(self, raw):
        assert parse_amount(raw) is None

    @pytest.mark.parametrize("raw", ["abc", "NaN", "Infinity", float("nan"), True, [1], {"v": 1}])
    def test_invalid_raises(self, raw):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_amount(raw, "Profit")
        assert exc_info.value.field_name == "Profit"

    def test_invalid_amount_is_value_error(self):
        assert issubclass(InvalidAmountError, ValueError)


class TestHelpers:
    def test_amount_or_zero(self):
        assert amount_or_zero(None) == Decimal("0")
        assert amount_or_zero("5") == Decimal("5")

    def test_is_missing(self):
        assert is_missing(None)
        assert is_missing(" ")
        assert not is_missing(0)

    def test_has_timestamp(self):
        assert has_timestamp("2026-01-15T10:00:00Z")
        assert not has_timestamp(None)
        assert not has_timestamp("")
