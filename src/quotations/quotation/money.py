"""Fixed-precision money helpers.

Amounts are stored as floats on the aggregate but every arithmetic step
goes through ``Decimal`` rounded half-up to 3 places, so that sums such as
9.99 + 50 + 40 compare equal to 99.99.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

PRECISION = Decimal("0.001")


def _decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def quantize(value) -> Decimal:
    return _decimal(value).quantize(PRECISION, rounding=ROUND_HALF_UP)


def to_fixed(value) -> float:
    """Round ``value`` to 3 decimal places and return it as a float."""
    return float(quantize(value))


def fixed_string(value) -> str:
    """Render ``value`` with exactly 3 decimal places, for equality checks."""
    return str(quantize(value))


def line_subtotal(unit_price, quantity: int) -> float:
    return to_fixed(_decimal(unit_price) * quantity)


def sum_fixed(values: Iterable) -> float:
    """Sum amounts after rounding each one, then round the result."""
    return to_fixed(sum((quantize(value) for value in values), Decimal("0")))


def subtract_fixed(minuend, subtrahend) -> float:
    return to_fixed(quantize(minuend) - quantize(subtrahend))


def ratio(numerator, denominator) -> float:
    """Return numerator / denominator, or 0 when the denominator is zero."""
    denominator = _decimal(denominator)
    if denominator == 0:
        return 0.0
    return float(_decimal(numerator) / denominator)


@dataclass(frozen=True)
class Money:
    """An amount paired with its ISO currency code."""

    amount: float
    currency_code: str

    @classmethod
    def of(cls, amount, currency_code: str) -> "Money":
        return cls(amount=to_fixed(amount), currency_code=currency_code)

    def as_dict(self) -> dict:
        return {"amount": self.amount, "currency_code": self.currency_code}
