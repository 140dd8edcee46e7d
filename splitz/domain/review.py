"""Reviewer edits and automated taxability classification merged into a receipt."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from decimal import Decimal

from splitz.domain.receipt import Receipt, Taxable
from splitz.domain.settings import SplitSettings
from splitz.domain.tax import quantize_money, tax


@dataclass(frozen=True)
class ItemEdit:
    """Reviewer changes to one line item. ``None`` leaves a field alone."""

    quantity: Decimal | None = None
    price: Decimal | None = None
    taxable: bool | None = None


@dataclass(frozen=True)
class ChargeEdit:
    """Reviewer changes to one fee or discount."""

    amount: Decimal | None = None
    taxable: bool | None = None


@dataclass(frozen=True)
class TaxabilityResult:
    name: str
    taxable: bool


def apply_review_edits(
    receipt: Receipt,
    settings: SplitSettings,
    item_edits: Mapping[str, ItemEdit] | None = None,
    fee_edits: Mapping[str, ChargeEdit] | None = None,
    discount_edits: Mapping[str, ChargeEdit] | None = None,
) -> Receipt:
    """Return a copy of ``receipt`` with reviewer edits applied.

    A price edit overrides the line subtotal. A quantity edit alone
    recomputes the subtotal from the unit price.
    """
    rate = settings.tax_rate
    item_edits = item_edits or {}
    fee_edits = fee_edits or {}
    discount_edits = discount_edits or {}

    unknown = set(item_edits) - {item.item_id for item in receipt.line_items}
    unknown |= set(fee_edits) - {fee.fee_id for fee in receipt.fees}
    unknown |= set(discount_edits) - {discount.discount_id for discount in receipt.discounts}
    if unknown:
        raise KeyError(f"Edits reference unknown ids: {', '.join(sorted(unknown))}")

    items = []
    for item in receipt.line_items:
        edit = item_edits.get(item.item_id)
        if edit is None:
            items.append(item)
            continue
        quantity = edit.quantity if edit.quantity is not None else item.quantity
        if edit.price is not None:
            subtotal = edit.price
        elif edit.quantity is not None:
            subtotal = quantize_money(quantity * item.unit_price)
        else:
            subtotal = item.line_subtotal
        taxable = Taxable.from_flag(edit.taxable) if edit.taxable is not None else item.taxable
        items.append(
            replace(
                item,
                quantity=quantity,
                line_subtotal=subtotal,
                taxable=taxable,
                tax_amount=quantize_money(tax(subtotal, taxable.is_taxable, rate)),
            )
        )

    fees = []
    for fee in receipt.fees:
        edit = fee_edits.get(fee.fee_id)
        if edit is None:
            fees.append(fee)
            continue
        amount = edit.amount if edit.amount is not None else fee.amount
        taxable = Taxable.from_flag(edit.taxable) if edit.taxable is not None else fee.taxable
        fees.append(
            replace(
                fee,
                amount=amount,
                taxable=taxable,
                tax_amount=quantize_money(tax(amount, taxable.is_taxable, rate)),
            )
        )

    discounts = []
    for discount in receipt.discounts:
        edit = discount_edits.get(discount.discount_id)
        if edit is None:
            discounts.append(discount)
            continue
        amount = abs(edit.amount) if edit.amount is not None else discount.amount
        taxable = Taxable.from_flag(edit.taxable) if edit.taxable is not None else discount.taxable
        discounts.append(
            replace(
                discount,
                amount=amount,
                taxable=taxable,
                tax_impact=quantize_money(tax(-amount, taxable.is_taxable, rate)),
            )
        )

    return replace(receipt, line_items=items, fees=fees, discounts=discounts)


def merge_taxability(
    receipt: Receipt,
    results: Iterable[TaxabilityResult],
    locked_item_ids: Iterable[str] = (),
) -> tuple[Receipt, list[str]]:
    """Apply classifier verdicts by item name.

    Every matching item is overwritten, including ones a reviewer already set,
    except items listed in ``locked_item_ids``. Returns the new receipt and
    the ids whose taxability changed.
    """
    verdicts = {result.name.strip().upper(): result.taxable for result in results}
    locked = set(locked_item_ids)
    changed: list[str] = []
    items = []
    for item in receipt.line_items:
        verdict = verdicts.get(item.display_name.strip().upper())
        if verdict is None:
            verdict = verdicts.get(item.name_raw.strip().upper())
        if verdict is None or item.item_id in locked:
            items.append(item)
            continue
        taxable = Taxable.from_flag(verdict)
        if taxable is not item.taxable:
            changed.append(item.item_id)
        items.append(replace(item, taxable=taxable))
    return replace(receipt, line_items=items), changed
