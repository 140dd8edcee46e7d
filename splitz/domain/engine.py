"""Split engine: evaluate split rules against a receipt to get one Share per person.

Every per-participant amount is rounded to the cent on its own. Remainders
are not redistributed; the resulting drift is bounded by the validator's
tolerance.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from splitz.domain.errors import malformed_assignment
from splitz.domain.rules import SplitMethod, SplitRule, resolve_fixed_amounts
from splitz.domain.settings import SplitSettings
from splitz.domain.tax import ZERO, post_tax, quantize_money, tax, tax_portion

if TYPE_CHECKING:
    from splitz.domain.receipt import LineItem, Receipt
    from splitz.domain.session import Person


@dataclass
class Allocation:
    """One fee or discount contribution inside a Share."""

    source_id: str
    label: str
    amount: Decimal


@dataclass
class Share:
    person_id: str
    display_name: str
    item_total: Decimal = ZERO
    item_tax: Decimal = ZERO
    fees: list[Allocation] = field(default_factory=list)
    discounts: list[Allocation] = field(default_factory=list)

    @property
    def fee_total(self) -> Decimal:
        return sum((fee.amount for fee in self.fees), ZERO)

    @property
    def discount_credit(self) -> Decimal:
        return sum((discount.amount for discount in self.discounts), ZERO)

    @property
    def amount_owed(self) -> Decimal:
        # May go negative when a discount outweighs the person's items.
        return self.item_total + self.item_tax + self.fee_total - self.discount_credit


@dataclass
class SplitOutcome:
    shares: list[Share]
    errors: list[str] = field(default_factory=list)

    @property
    def split_total(self) -> Decimal:
        return sum((share.amount_owed for share in self.shares), ZERO)


def item_allocations(item: LineItem, rule: SplitRule, rate: Decimal) -> list[tuple[str, Decimal, Decimal]]:
    """Return ``(person_id, amount, tax_part)`` for each participant of ``rule``.

    ``amount`` is post-tax; ``tax_part`` is the portion of it that is tax.
    """
    participants = rule.participants
    if not participants:
        return []

    taxable = item.taxable.is_taxable
    if rule.method is SplitMethod.EQUAL:
        count = len(participants)
        amount = quantize_money(post_tax(item.price, taxable, rate) / count)
        tax_part = quantize_money(tax(item.price, taxable, rate) / count)
        return [(pid, amount, tax_part) for pid in participants]

    return [
        (pid, amount, quantize_money(tax_portion(amount, taxable, rate)))
        for pid, amount in resolve_fixed_amounts(rule, item, rate).items()
    ]


def _scope(
    split_among: Sequence[str],
    shares: dict[str, Share],
    subject: str,
    errors: list[str],
) -> list[str]:
    if not split_among:
        return list(shares)
    scope: list[str] = []
    for pid in split_among:
        if pid in shares:
            if pid not in scope:
                scope.append(pid)
        else:
            errors.append(malformed_assignment(subject, pid))
    return scope


def compute_shares(
    receipt: Receipt,
    rules: Sequence[SplitRule],
    people: Sequence[Person],
    settings: SplitSettings,
) -> SplitOutcome:
    """Evaluate ``rules``, fees and discounts into one Share per person.

    Unknown participant ids are dropped from the allocation and reported in
    ``errors``; the remaining participants split the amount between them.
    """
    rate = settings.tax_rate
    shares = {person.person_id: Share(person.person_id, person.display_name) for person in people}
    errors: list[str] = []
    known = set(shares)

    for rule in rules:
        item = receipt.find_item(rule.item_id)
        if item is None:
            errors.append(f"Rule references unknown item '{rule.item_id}'; ignored")
            continue
        narrowed, unknown = rule.restricted_to(known)
        for pid in unknown:
            errors.append(malformed_assignment(f"item '{item.display_name}'", pid))
        if not narrowed.participants:
            errors.append(f"Item '{item.display_name}' has no known participants; not allocated")
            continue
        for pid, amount, tax_part in item_allocations(item, narrowed, rate):
            share = shares[pid]
            share.item_total += amount - tax_part
            share.item_tax += tax_part

    for fee in receipt.fees:
        scope = _scope(fee.split_among, shares, f"fee '{fee.category}'", errors)
        if not scope:
            errors.append(f"Fee '{fee.category}' has no participants; not allocated")
            continue
        per_person = quantize_money(post_tax(fee.amount, fee.taxable.is_taxable, rate) / len(scope))
        for pid in scope:
            shares[pid].fees.append(Allocation(fee.fee_id, fee.category, per_person))

    for discount in receipt.discounts:
        scope = _scope(discount.split_among, shares, f"discount '{discount.label}'", errors)
        if not scope:
            errors.append(f"Discount '{discount.label}' has no participants; not allocated")
            continue
        per_person = quantize_money(post_tax(discount.amount, discount.taxable.is_taxable, rate) / len(scope))
        for pid in scope:
            shares[pid].discounts.append(Allocation(discount.discount_id, discount.label, per_person))

    return SplitOutcome(shares=[shares[person.person_id] for person in people], errors=errors)
