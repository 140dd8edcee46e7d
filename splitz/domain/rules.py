"""Split rules: how one item's cost is divided among its participants."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from splitz.domain.tax import post_tax, quantize_money

if TYPE_CHECKING:
    from splitz.domain.receipt import LineItem
    from splitz.domain.session import Person, SplitSession


class SplitMethod(str, Enum):
    EQUAL = "EQUAL"
    FIXED_AMOUNT = "FIXED_AMOUNT"


@dataclass(frozen=True)
class SplitRule:
    """Declared split for one item.

    For ``FIXED_AMOUNT`` only the manual overrides live in ``amounts``;
    participants without an amount fall back to the default computed by
    ``resolve_fixed_amounts``.
    """

    item_id: str
    method: SplitMethod
    people: tuple[str, ...]
    amounts: dict[str, Decimal] = field(default_factory=dict)

    @property
    def participants(self) -> tuple[str, ...]:
        extra = tuple(pid for pid in self.amounts if pid not in self.people)
        return self.people + extra

    def restricted_to(self, known: set[str]) -> tuple[SplitRule, list[str]]:
        """Drop participant ids outside ``known``; return the narrowed rule and the dropped ids."""
        unknown = [pid for pid in self.participants if pid not in known]
        if not unknown:
            return self, []
        narrowed = SplitRule(
            item_id=self.item_id,
            method=self.method,
            people=tuple(pid for pid in self.people if pid in known),
            amounts={pid: amt for pid, amt in self.amounts.items() if pid in known},
        )
        return narrowed, unknown


@dataclass
class SplitRequest:
    """People plus rules: the body of a split/finalize call and the persisted rule set."""

    people: list[Person]
    rules: list[SplitRule]


def build_split_rules(session: SplitSession) -> list[SplitRule]:
    """Turn the session's current selections into one rule per assigned item.

    Items nobody is assigned to produce no rule. Participant ids that are no
    longer in the person set pass through untouched; the engine reports them.
    """
    rules: list[SplitRule] = []
    for item in session.receipt.line_items:
        people = tuple(session.assigned_people(item.item_id))
        if not people:
            continue
        item_overrides = session.overrides.get(item.item_id, {})
        overrides = {pid: item_overrides[pid] for pid in people if pid in item_overrides}
        if overrides:
            rules.append(SplitRule(item.item_id, SplitMethod.FIXED_AMOUNT, people, overrides))
        else:
            rules.append(SplitRule(item.item_id, SplitMethod.EQUAL, people))
    return rules


def resolve_fixed_amounts(rule: SplitRule, item: LineItem, rate: Decimal) -> dict[str, Decimal]:
    """Amount per participant for a FIXED_AMOUNT rule.

    Non-overridden participants each get the item's post-tax total divided by
    the number of non-overridden participants. The result is not renormalized
    to the item total.
    """
    amounts: dict[str, Decimal] = {}
    defaulted = [pid for pid in rule.participants if pid not in rule.amounts]
    default = Decimal("0")
    if defaulted:
        default = quantize_money(post_tax(item.price, item.taxable.is_taxable, rate) / len(defaulted))
    for pid in rule.participants:
        amounts[pid] = rule.amounts[pid] if pid in rule.amounts else default
    return amounts
