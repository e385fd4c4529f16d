"""Order pricing.

Prices are always recomputed from the meal snapshots handed in; a total carried
by a request or a previously saved draft is never reused. Arithmetic is done in
Decimal and rounded half-up to cents once, on the final amount.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from residentmeals.domain.Meal import Meal
from residentmeals.utilities.config import TAX_RATE

CENTS = Decimal('0.01')


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self):
        return {"subtotal": str(self.subtotal), "tax": str(self.tax), "total": str(self.total)}


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def raw_subtotal(meals: Iterable[Meal]) -> Decimal:
    """Exact sum of every selected item's price, unrounded."""
    return sum((item.price for meal in meals for item in meal.items), Decimal('0'))


def price(meals: Iterable[Meal], tax_rate: Decimal = TAX_RATE) -> PriceBreakdown:
    """Compute subtotal, tax and total for a meal set.

    total = round2(subtotal_raw * (1 + rate)); subtotal = round2(subtotal_raw);
    tax is the difference, so total == subtotal + tax holds exactly.
    """
    rate = Decimal(str(tax_rate))
    subtotal_raw = raw_subtotal(meals)
    total = round_money(subtotal_raw + subtotal_raw * rate)
    subtotal = round_money(subtotal_raw)
    return PriceBreakdown(subtotal=subtotal, tax=total - subtotal, total=total)


def to_minor_units(amount: Decimal) -> int:
    """Dollars -> integer cents for the payment gateway."""
    return int(round_money(amount) * 100)


__all__ = ["PriceBreakdown", "price", "raw_subtotal", "round_money", "to_minor_units", "CENTS"]
