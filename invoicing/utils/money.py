# invoicing/utils/money.py
"""
Money and VAT primitives.

All monetary arithmetic goes through ``decimal.Decimal``. Amounts are
accumulated at full precision and only quantized to cents when rendered or
persisted as a document total.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Settlement tolerance used when deciding that an invoice is fully paid.
PAYMENT_TOLERANCE = CENT

# Rate tag -> percentage. Tags are the closed set accepted by the API.
VAT_RATE_PERCENTAGES: dict[str, Decimal] = {
    "ZERO": Decimal("0"),
    "REDUCED_1": Decimal("2.1"),
    "REDUCED_2": Decimal("5.5"),
    "REDUCED_3": Decimal("10"),
    "STANDARD": Decimal("20"),
}


def to_decimal(value: Any) -> Decimal:
    """Convert ints, strings, floats and Numeric column values to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() first so 0.1 stays 0.1 instead of its binary expansion
        return Decimal(str(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc


def quantize(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Any) -> str:
    """Fixed two-decimal rendering, e.g. Decimal('120') -> '120.00'."""
    return f"{quantize(value):.2f}"


def vat_rate_to_percent(rate: Any) -> Decimal:
    """Map a VAT rate tag (or VatRate enum member) to its percentage."""
    tag = getattr(rate, "value", rate)
    return VAT_RATE_PERCENTAGES[tag]


def line_amount(quantity: Any, unit_price: Any) -> Decimal:
    return to_decimal(quantity) * to_decimal(unit_price)


def line_tax(amount: Any, rate: Any) -> Decimal:
    return to_decimal(amount) * (vat_rate_to_percent(rate) / HUNDRED)


def to_minor_units(value: Any) -> int:
    """Amount in cents as an integer, for payment providers."""
    return int((quantize(value) * HUNDRED).to_integral_value(rounding=ROUND_HALF_UP))


class Totals:
    """Running document totals, kept at full precision until rendered."""

    def __init__(self) -> None:
        self.excluding_tax = ZERO
        self.tax = ZERO

    def add_line(self, quantity: Any, unit_price: Any, rate: Any) -> tuple[Decimal, Decimal]:
        amount = line_amount(quantity, unit_price)
        tax = line_tax(amount, rate)
        self.excluding_tax += amount
        self.tax += tax
        return amount, tax

    @property
    def including_tax(self) -> Decimal:
        return self.excluding_tax + self.tax

    def rounded(self) -> dict[str, Decimal]:
        """
        Totals as persisted. Including-tax is the sum of the two rounded parts
        so that ``including == excluding + tax`` always holds at two decimals.
        """
        excluding = quantize(self.excluding_tax)
        tax = quantize(self.tax)
        return {
            "amount_excluding_tax": excluding,
            "tax": tax,
            "amount_including_tax": excluding + tax,
        }

    def __repr__(self) -> str:
        return f"<Totals excl={self.excluding_tax} tax={self.tax}>"
