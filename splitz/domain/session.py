"""Explicit split session: the receipt being split plus who is on the hook for what.

Assignments are indexed by the stable ``item_id`` rather than the item's
display name, so two items with the same name never share a participant set.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal

from splitz.domain.receipt import LineItem, Receipt
from splitz.domain.rules import SplitRequest, build_split_rules


@dataclass
class Person:
    person_id: str
    display_name: str


def new_person_id() -> str:
    return f"person-{uuid.uuid4().hex[:12]}"


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValueError("Person name must not be empty")
    return cleaned


@dataclass
class SplitSession:
    """Mutable split-stage state for a single user working on one receipt."""

    receipt: Receipt
    people: list[Person] = field(default_factory=list)
    # item_id -> ordered participant ids
    assignments: dict[str, list[str]] = field(default_factory=dict)
    # item_id -> participant id -> manual post-tax amount
    overrides: dict[str, dict[str, Decimal]] = field(default_factory=dict)

    # --- people ---
    def find_person(self, person_id: str) -> Person | None:
        for person in self.people:
            if person.person_id == person_id:
                return person
        return None

    def person_ids(self) -> list[str]:
        return [person.person_id for person in self.people]

    def add_person(self, name: str, person_id: str | None = None) -> Person:
        person = Person(person_id=person_id or new_person_id(), display_name=_clean_name(name))
        if self.find_person(person.person_id) is not None:
            raise ValueError(f"Duplicate person id: {person.person_id}")
        self.people.append(person)
        return person

    def rename_person(self, person_id: str, name: str) -> Person:
        person = self.find_person(person_id)
        if person is None:
            raise KeyError(person_id)
        person.display_name = _clean_name(name)
        return person

    def remove_person(self, person_id: str) -> None:
        """Remove a person and purge their id from every assignment, override and scope."""
        self.people = [p for p in self.people if p.person_id != person_id]
        for item_id, assigned in self.assignments.items():
            self.assignments[item_id] = [pid for pid in assigned if pid != person_id]
        for item_overrides in self.overrides.values():
            item_overrides.pop(person_id, None)
        self.receipt.fees = [
            replace(fee, split_among=tuple(pid for pid in fee.split_among if pid != person_id))
            for fee in self.receipt.fees
        ]
        self.receipt.discounts = [
            replace(discount, split_among=tuple(pid for pid in discount.split_among if pid != person_id))
            for discount in self.receipt.discounts
        ]

    # --- item assignments ---
    def _require_item(self, item_id: str) -> LineItem:
        item = self.receipt.find_item(item_id)
        if item is None:
            raise KeyError(item_id)
        return item

    def assigned_people(self, item_id: str) -> list[str]:
        return list(self.assignments.get(item_id, []))

    def assign(self, item_id: str, person_ids: list[str]) -> None:
        self._require_item(item_id)
        deduped: list[str] = []
        for pid in person_ids:
            if pid not in deduped:
                deduped.append(pid)
        self.assignments[item_id] = deduped
        item_overrides = self.overrides.get(item_id)
        if item_overrides:
            for pid in list(item_overrides):
                if pid not in deduped:
                    del item_overrides[pid]

    def toggle_assignment(self, item_id: str, person_id: str) -> bool:
        """Flip one participant on an item. Returns True when now assigned."""
        assigned = self.assigned_people(item_id)
        if person_id in assigned:
            assigned.remove(person_id)
            self.assign(item_id, assigned)
            return False
        self.assign(item_id, assigned + [person_id])
        return True

    def set_override(self, item_id: str, person_id: str, amount: Decimal) -> None:
        self._require_item(item_id)
        if person_id not in self.assignments.get(item_id, []):
            self.assign(item_id, self.assigned_people(item_id) + [person_id])
        self.overrides.setdefault(item_id, {})[person_id] = amount

    def clear_override(self, item_id: str, person_id: str) -> None:
        item_overrides = self.overrides.get(item_id)
        if item_overrides is not None:
            item_overrides.pop(person_id, None)
            if not item_overrides:
                del self.overrides[item_id]

    # --- fee / discount scopes ---
    def set_fee_scope(self, fee_id: str, person_ids: list[str]) -> None:
        for i, fee in enumerate(self.receipt.fees):
            if fee.fee_id == fee_id:
                self.receipt.fees[i] = replace(fee, split_among=tuple(person_ids))
                return
        raise KeyError(fee_id)

    def set_discount_scope(self, discount_id: str, person_ids: list[str]) -> None:
        for i, discount in enumerate(self.receipt.discounts):
            if discount.discount_id == discount_id:
                self.receipt.discounts[i] = replace(discount, split_among=tuple(person_ids))
                return
        raise KeyError(discount_id)

    # --- bulk ---
    def replace_items(self, items: list[LineItem], assignments: dict[str, list[str]]) -> None:
        """Swap the whole item list (CSV import). Overrides do not survive."""
        self.receipt.line_items = list(items)
        self.assignments = {item_id: list(pids) for item_id, pids in assignments.items()}
        self.overrides = {}

    def to_split_request(self) -> SplitRequest:
        return SplitRequest(people=list(self.people), rules=build_split_rules(self))

    @classmethod
    def from_split_request(cls, receipt: Receipt, request: SplitRequest) -> SplitSession:
        """Rehydrate people, assignments and overrides from a persisted split request."""
        session = cls(receipt=receipt, people=[replace(p) for p in request.people])
        for rule in request.rules:
            session.assignments[rule.item_id] = list(rule.participants)
            if rule.amounts:
                session.overrides[rule.item_id] = dict(rule.amounts)
        return session
