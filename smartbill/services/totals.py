from __future__ import annotations

from math import fsum
from typing import Iterable, NamedTuple

from smartbill.models import CartLine


class Totals(NamedTuple):
    """Five bill figures at full precision; rounding happens in formatters."""

    subtotal: float
    discount_amount: float
    discounted_total: float
    tax_amount: float
    final_total: float


def compute_totals(lines: Iterable[CartLine], discount_rate: float, tax_rate: float) -> Totals:
    """
    Rates are percentages already clamped to [0, 100] by the caller.

    Tax is charged on the discounted amount, never on the raw subtotal.
    """
    # fsum is exact, so line order cannot change the result
    subtotal = fsum(line.quantity * line.price for line in lines)
    discount_amount = subtotal * discount_rate / 100
    discounted_total = subtotal - discount_amount
    tax_amount = discounted_total * tax_rate / 100
    return Totals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        discounted_total=discounted_total,
        tax_amount=tax_amount,
        final_total=discounted_total + tax_amount,
    )
