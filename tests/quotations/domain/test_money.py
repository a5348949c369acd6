"""Tests for fixed-precision money helpers."""

from decimal import Decimal

from quotations.quotation.money import (
    Money,
    fixed_string,
    line_subtotal,
    quantize,
    ratio,
    subtract_fixed,
    sum_fixed,
    to_fixed,
)


class TestRounding:
    def test_quantize_rounds_half_up_to_three_places(self):
        assert quantize("1.0005") == Decimal("1.001")
        assert quantize(2.0004) == Decimal("2.000")

    def test_to_fixed_returns_float(self):
        assert to_fixed("19.9999") == 20.0

    def test_fixed_string_has_three_places(self):
        assert fixed_string(99.99) == "99.990"
        assert fixed_string(None) == "0.000"


class TestArithmetic:
    def test_sum_of_payments_matches_total_exactly(self):
        assert fixed_string(sum_fixed([9.99, 50, 40])) == fixed_string(99.99)

    def test_float_sum_would_drift(self):
        assert 0.1 + 0.2 != 0.3
        assert sum_fixed([0.1, 0.2]) == 0.3

    def test_line_subtotal(self):
        assert line_subtotal(9.99, 3) == 29.97

    def test_subtract_fixed(self):
        assert subtract_fixed(10, 0.01) == 9.99

    def test_ratio_with_zero_denominator_is_zero(self):
        assert ratio(5, 0) == 0.0

    def test_ratio(self):
        assert ratio(1, 4) == 0.25


class TestMoney:
    def test_of_rounds_amount(self):
        assert Money.of("1.23456", "USD") == Money(amount=1.235, currency_code="USD")

    def test_as_dict(self):
        assert Money.of(5, "EUR").as_dict() == {"amount": 5.0, "currency_code": "EUR"}
