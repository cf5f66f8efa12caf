"""Tests for monetary helpers in hotel_kernel.domain.values."""

from decimal import Decimal

import pytest

from hotel_kernel.domain.values import ZERO, round_money, sum_amounts, to_decimal


class TestToDecimal:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (5, Decimal("5")),
            ("12.50", Decimal("12.50")),
            (Decimal("0.01"), Decimal("0.01")),
            (0.1, Decimal("0.1")),
            (40.0, Decimal("40.0")),
        ],
    )
    def test_accepts_numeric_values(self, value, expected):
        assert to_decimal(value) == expected

    def test_float_goes_through_str(self):
        # Decimal(0.1) would carry the binary approximation.
        assert to_decimal(0.1) == Decimal("0.1")
        assert str(to_decimal(0.1)) == "0.1"

    @pytest.mark.parametrize("value", [True, False, None, "abc", "", [], object()])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    @pytest.mark.parametrize("value", ["NaN", "Infinity", float("inf"), Decimal("-Infinity")])
    def test_rejects_non_finite(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)


class TestRoundMoney:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("1.005"), Decimal("1.01")),
            (Decimal("1.004"), Decimal("1.00")),
            (Decimal("2.675"), Decimal("2.68")),
            (Decimal("15"), Decimal("15.00")),
        ],
    )
    def test_half_up_to_cents(self, value, expected):
        assert round_money(value) == expected


class TestSumAmounts:
    def test_empty_is_zero(self):
        assert sum_amounts([]) == ZERO

    def test_sums_generator(self):
        assert sum_amounts(Decimal(x) for x in ("1.10", "2.20", "3.30")) == Decimal("6.60")
