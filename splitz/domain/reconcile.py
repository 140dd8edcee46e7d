"""Reconcile computed totals against the receipt's own figures."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from splitz.domain.settings import SplitSettings
from splitz.domain.tax import ZERO, post_tax, tax

if TYPE_CHECKING:
    from splitz.domain.engine import Share
    from splitz.domain.receipt import Receipt

GRAND_TOTAL = "grand_total"
SPLIT_TOTAL = "split_total"
SUBTOTAL_ITEMS = "subtotal_items"
TOTAL_TAX = "total_tax"


@dataclass
class ValidationFlag:
    """A total that disagrees with its reference beyond tolerance."""

    field: str
    expected: Decimal
    actual: Decimal

    @property
    def difference(self) -> Decimal:
        return self.actual - self.expected


@dataclass
class TotalValidation:
    calculated_items_subtotal: Decimal
    calculated_items_tax: Decimal
    calculated_fees_total: Decimal
    calculated_discounts_total: Decimal
    calculated_grand_total: Decimal
    receipt_total: Decimal
    split_total: Decimal
    tolerance: Decimal
    is_valid: bool
    split_matches: bool
    flags: list[ValidationFlag] = field(default_factory=list)

    @property
    def difference(self) -> Decimal:
        """Signed: positive means the split allocates more than the receipt total."""
        return self.split_total - self.receipt_total

    @property
    def can_finalize(self) -> bool:
        return self.is_valid and self.split_matches

    def blocking_flag(self) -> ValidationFlag | None:
        """The first divergence that blocks finalize, if any."""
        for flag in self.flags:
            if flag.field in (GRAND_TOTAL, SPLIT_TOTAL):
                return flag
        return None


def _within(a: Decimal, b: Decimal, tolerance: Decimal) -> bool:
    return abs(a - b) < tolerance


def validate_totals(receipt: Receipt, shares: Sequence[Share], settings: SplitSettings) -> TotalValidation:
    """Compare the receipt recomputed from its items against its reported totals and the split.

    Item totals are taken over every item, assigned or not, so an
    unassigned item shows up as a split mismatch instead of vanishing.
    """
    rate = settings.tax_rate
    tolerance = settings.tolerance

    items_subtotal = sum((item.price for item in receipt.line_items), ZERO)
    items_tax = sum((tax(item.price, item.taxable.is_taxable, rate) for item in receipt.line_items), ZERO)
    fees_total = sum((post_tax(fee.amount, fee.taxable.is_taxable, rate) for fee in receipt.fees), ZERO)
    discounts_total = sum(
        (post_tax(discount.amount, discount.taxable.is_taxable, rate) for discount in receipt.discounts),
        ZERO,
    )
    grand_total = items_subtotal + items_tax + fees_total - discounts_total
    split_total = sum((share.amount_owed for share in shares), ZERO)

    is_valid = _within(grand_total, receipt.grand_total, tolerance)
    split_matches = _within(split_total, grand_total, tolerance)

    flags: list[ValidationFlag] = []
    if not is_valid:
        flags.append(ValidationFlag(GRAND_TOTAL, receipt.grand_total, grand_total))
    if not split_matches:
        flags.append(ValidationFlag(SPLIT_TOTAL, grand_total, split_total))
    if receipt.subtotal_items is not None and not _within(items_subtotal, receipt.subtotal_items, tolerance):
        flags.append(ValidationFlag(SUBTOTAL_ITEMS, receipt.subtotal_items, items_subtotal))
    if receipt.total_tax_reported is not None and not _within(items_tax, receipt.total_tax_reported, tolerance):
        flags.append(ValidationFlag(TOTAL_TAX, receipt.total_tax_reported, items_tax))

    return TotalValidation(
        calculated_items_subtotal=items_subtotal,
        calculated_items_tax=items_tax,
        calculated_fees_total=fees_total,
        calculated_discounts_total=discounts_total,
        calculated_grand_total=grand_total,
        receipt_total=receipt.grand_total,
        split_total=split_total,
        tolerance=tolerance,
        is_valid=is_valid,
        split_matches=split_matches,
        flags=flags,
    )
