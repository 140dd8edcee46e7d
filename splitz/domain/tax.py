"""Flat-rate tax helpers.

Tax stays exact here; rounding to cents happens only when money is handed
to a participant (see ``quantize_money``).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")


def tax(base: Decimal, taxable: bool, rate: Decimal) -> Decimal:
    """Tax owed on ``base``. Negative bases (discounts) give negative tax."""
    if not taxable:
        return ZERO
    return base * rate


def post_tax(base: Decimal, taxable: bool, rate: Decimal) -> Decimal:
    return base + tax(base, taxable, rate)


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def tax_portion(amount: Decimal, taxable: bool, rate: Decimal) -> Decimal:
    """Tax contained in a post-tax ``amount``."""
    if not taxable or rate == 0:
        return ZERO
    return amount * rate / (1 + rate)
