from __future__ import annotations

from decimal import Decimal

from splitz.domain.engine import compute_shares
from splitz.domain.receipt import Discount, Fee, LineItem, Receipt, Taxable
from splitz.domain.rules import SplitMethod, SplitRule
from splitz.domain.session import Person
from splitz.domain.settings import SplitSettings

SETTINGS = SplitSettings()


def _item(item_id: str, price: str, taxable: bool = True, name: str | None = None) -> LineItem:
    return LineItem(
        item_id=item_id,
        name_raw=name or item_id.upper(),
        quantity=Decimal("1"),
        unit_price=Decimal(price),
        line_subtotal=Decimal(price),
        taxable=Taxable.from_flag(taxable),
    )


def _people(*names: str) -> list[Person]:
    return [Person(person_id=name.lower(), display_name=name) for name in names]


def _receipt(items=(), fees=(), discounts=(), grand_total: str = "0.00") -> Receipt:
    return Receipt(
        receipt_id="r1",
        grand_total=Decimal(grand_total),
        line_items=list(items),
        fees=list(fees),
        discounts=list(discounts),
    )


def _equal(item_id: str, *people: str) -> SplitRule:
    return SplitRule(item_id, SplitMethod.EQUAL, tuple(people))


def test_taxable_item_split_equally_between_two() -> None:
    receipt = _receipt(items=[_item("i1", "30.00")])
    outcome = compute_shares(receipt, [_equal("i1", "alice", "bob")], _people("Alice", "Bob"), SETTINGS)

    assert [share.amount_owed for share in outcome.shares] == [Decimal("16.95"), Decimal("16.95")]
    alice = outcome.shares[0]
    assert alice.item_total == Decimal("15.00")
    assert alice.item_tax == Decimal("1.95")
    assert outcome.errors == []


def test_taxable_fee_defaults_to_all_participants() -> None:
    fee = Fee(fee_id="f1", category="SERVICE", amount=Decimal("4.00"), taxable=Taxable.TAXABLE)
    receipt = _receipt(fees=[fee])
    outcome = compute_shares(receipt, [], _people("A", "B", "C", "D"), SETTINGS)

    assert [share.fee_total for share in outcome.shares] == [Decimal("1.13")] * 4
    assert all(share.amount_owed == Decimal("1.13") for share in outcome.shares)


def test_discount_split_among_everyone_leaves_remainder() -> None:
    discount = Discount(discount_id="d1", amount=Decimal("10.00"), description="COUPON")
    receipt = _receipt(discounts=[discount])
    outcome = compute_shares(receipt, [], _people("A", "B", "C"), SETTINGS)

    assert [share.amount_owed for share in outcome.shares] == [Decimal("-3.33")] * 3
    # 0.01 of the discount is never allocated.
    assert outcome.split_total == Decimal("-9.99")


def test_discount_reduces_each_participants_total() -> None:
    receipt = _receipt(
        items=[_item("i1", "30.00", taxable=False)],
        discounts=[Discount(discount_id="d1", amount=Decimal("10.00"))],
    )
    people = _people("A", "B", "C")
    without = compute_shares(_receipt(items=receipt.line_items), [_equal("i1", "a", "b", "c")], people, SETTINGS)
    with_discount = compute_shares(receipt, [_equal("i1", "a", "b", "c")], people, SETTINGS)

    for before, after in zip(without.shares, with_discount.shares):
        assert before.amount_owed - after.amount_owed == Decimal("3.33")


def test_equal_split_sum_is_within_a_cent_per_participant() -> None:
    for price in ("10.00", "0.01", "7.77", "99.99"):
        for count in range(1, 8):
            names = [f"P{i}" for i in range(count)]
            item = _item("i1", price)
            outcome = compute_shares(
                _receipt(items=[item]),
                [_equal("i1", *[name.lower() for name in names])],
                _people(*names),
                SETTINGS,
            )
            expected_total = Decimal(price) * Decimal("1.13")
            per_person = expected_total / count
            for share in outcome.shares:
                assert abs(share.amount_owed - per_person) <= Decimal("0.005")
            assert abs(outcome.split_total - expected_total) <= Decimal("0.01") * count


def test_engine_is_idempotent() -> None:
    receipt = _receipt(
        items=[_item("i1", "12.34"), _item("i2", "5.00", taxable=False)],
        fees=[Fee(fee_id="f1", category="BAG", amount=Decimal("0.10"), taxable=Taxable.TAXABLE)],
        discounts=[Discount(discount_id="d1", amount=Decimal("1.00"))],
    )
    rules = [_equal("i1", "a", "b"), _equal("i2", "b", "c")]
    people = _people("A", "B", "C")

    first = compute_shares(receipt, rules, people, SETTINGS)
    second = compute_shares(receipt, rules, people, SETTINGS)

    assert first.shares == second.shares
    assert first.errors == second.errors


def test_shares_follow_person_order_and_include_unassigned_people() -> None:
    receipt = _receipt(items=[_item("i1", "10.00", taxable=False)])
    outcome = compute_shares(receipt, [_equal("i1", "bob")], _people("Alice", "Bob"), SETTINGS)

    assert [share.person_id for share in outcome.shares] == ["alice", "bob"]
    assert outcome.shares[0].amount_owed == Decimal("0")
    assert outcome.shares[1].amount_owed == Decimal("10.00")


def test_unknown_participant_is_dropped_and_reported() -> None:
    receipt = _receipt(items=[_item("i1", "10.00", taxable=False, name="MILK")])
    outcome = compute_shares(receipt, [_equal("i1", "alice", "ghost")], _people("Alice"), SETTINGS)

    assert outcome.shares[0].amount_owed == Decimal("10.00")
    assert len(outcome.errors) == 1
    assert "MalformedAssignment" in outcome.errors[0]
    assert "'ghost'" in outcome.errors[0]
    assert "MILK" in outcome.errors[0]


def test_rule_with_only_unknown_participants_is_not_allocated() -> None:
    receipt = _receipt(items=[_item("i1", "10.00", name="BREAD")])
    outcome = compute_shares(receipt, [_equal("i1", "ghost")], _people("Alice"), SETTINGS)

    assert outcome.shares[0].amount_owed == Decimal("0")
    assert any("not allocated" in error for error in outcome.errors)


def test_rule_for_unknown_item_is_reported() -> None:
    outcome = compute_shares(_receipt(), [_equal("missing", "alice")], _people("Alice"), SETTINGS)

    assert outcome.errors == ["Rule references unknown item 'missing'; ignored"]


def test_fee_scope_limits_participants() -> None:
    fee = Fee(
        fee_id="f1",
        category="DELIVERY",
        amount=Decimal("6.00"),
        split_among=("alice", "carol"),
    )
    outcome = compute_shares(_receipt(fees=[fee]), [], _people("Alice", "Bob", "Carol"), SETTINGS)

    assert [share.fee_total for share in outcome.shares] == [Decimal("3.00"), Decimal("0"), Decimal("3.00")]


def test_fee_scope_with_unknown_participant() -> None:
    fee = Fee(fee_id="f1", category="DELIVERY", amount=Decimal("6.00"), split_among=("ghost",))
    outcome = compute_shares(_receipt(fees=[fee]), [], _people("Alice"), SETTINGS)

    assert outcome.shares[0].fee_total == Decimal("0")
    assert any("MalformedAssignment" in error for error in outcome.errors)
    assert any("Fee 'DELIVERY' has no participants" in error for error in outcome.errors)


def test_fixed_amount_defaults_are_not_renormalized() -> None:
    receipt = _receipt(items=[_item("i1", "30.00")])
    rule = SplitRule("i1", SplitMethod.FIXED_AMOUNT, ("alice", "bob"), {"alice": Decimal("20.00")})
    outcome = compute_shares(receipt, [rule], _people("Alice", "Bob"), SETTINGS)

    alice, bob = outcome.shares
    assert alice.amount_owed == Decimal("20.00")
    assert alice.item_tax == Decimal("2.30")
    assert alice.item_total == Decimal("17.70")
    # Bob is the only non-overridden participant, so he gets the full post-tax total.
    assert bob.amount_owed == Decimal("33.90")
    assert outcome.split_total == Decimal("53.90")


def test_discount_larger_than_items_makes_amount_owed_negative() -> None:
    receipt = _receipt(
        items=[_item("i1", "2.00", taxable=False)],
        discounts=[Discount(discount_id="d1", amount=Decimal("5.00"), split_among=("alice",))],
    )
    outcome = compute_shares(receipt, [_equal("i1", "alice")], _people("Alice"), SETTINGS)

    assert outcome.shares[0].amount_owed == Decimal("-3.00")
    assert outcome.shares[0].discount_credit == Decimal("5.00")


def test_custom_tax_rate() -> None:
    receipt = _receipt(items=[_item("i1", "10.00")])
    settings = SplitSettings(tax_rate=Decimal("0.05"))
    outcome = compute_shares(receipt, [_equal("i1", "alice")], _people("Alice"), settings)

    assert outcome.shares[0].amount_owed == Decimal("10.50")
