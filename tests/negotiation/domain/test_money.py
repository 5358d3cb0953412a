"""Tests for decimal amount parsing and order line arithmetic."""

from decimal import Decimal

import pytest
from negotiation.shared.money import (
    line_amounts,
    non_negative,
    percentage,
    positive,
    to_decimal,
    to_text,
)
from protean.exceptions import ValidationError


class TestToDecimal:
    def test_accepts_text(self):
        assert to_decimal("20.00", "price") == Decimal("20.00")

    def test_accepts_int(self):
        assert to_decimal(5, "quantity") == Decimal("5")

    def test_float_keeps_shortest_representation(self):
        assert to_decimal(0.1, "price") == Decimal("0.1")

    def test_decimal_passes_through(self):
        value = Decimal("1.234")
        assert to_decimal(value, "price") is value

    def test_rejects_none(self):
        with pytest.raises(ValidationError) as exc:
            to_decimal(None, "price")
        assert "price" in exc.value.messages

    def test_rejects_bool(self):
        with pytest.raises(ValidationError):
            to_decimal(True, "quantity")

    def test_rejects_malformed_text(self):
        with pytest.raises(ValidationError):
            to_decimal("twenty", "price")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity"])
    def test_rejects_non_finite(self, value):
        with pytest.raises(ValidationError):
            to_decimal(value, "price")


class TestToText:
    def test_never_uses_exponent(self):
        assert to_text(Decimal("1E+3")) == "1000"
        assert to_text(Decimal("1E-7")) == "0.0000001"

    def test_keeps_scale(self):
        assert to_text(Decimal("100.00")) == "100.00"


class TestRangeChecks:
    def test_positive_rejects_zero(self):
        with pytest.raises(ValidationError) as exc:
            positive(0, "quantity")
        assert "greater than zero" in str(exc.value)

    def test_non_negative_allows_zero(self):
        assert non_negative("0", "unit_price") == Decimal("0")

    def test_non_negative_rejects_negative(self):
        with pytest.raises(ValidationError):
            non_negative("-0.01", "unit_price")

    @pytest.mark.parametrize("value", [0, 100, "12.5"])
    def test_percentage_bounds_inclusive(self, value):
        assert percentage(value, "discount_percent") == Decimal(str(value))

    @pytest.mark.parametrize("value", [-1, "100.01"])
    def test_percentage_out_of_range(self, value):
        with pytest.raises(ValidationError):
            percentage(value, "discount_percent")


class TestLineAmounts:
    def test_without_discount(self):
        total, discount, final = line_amounts(Decimal("5"), Decimal("20.00"), Decimal("0"))
        assert total == Decimal("100.00")
        assert discount == Decimal("0")
        assert final == Decimal("100.00")

    def test_with_discount(self):
        total, discount, final = line_amounts(Decimal("5"), Decimal("20.00"), Decimal("10"))
        assert total == Decimal("100.00")
        assert discount == Decimal("10.00")
        assert final == Decimal("90.00")

    def test_no_rounding_applied(self):
        total, discount, final = line_amounts(Decimal("3"), Decimal("0.33"), Decimal("12.5"))
        assert total == Decimal("0.99")
        assert discount == Decimal("0.12375")
        assert final == Decimal("0.86625")
