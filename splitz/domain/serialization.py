"""JSON-ready dict codec for receipts, split requests, shares and documents.

Money is written as strings so values survive a round trip through JSON
without float drift. Readers accept strings, ints or floats.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from splitz.domain.engine import Allocation, Share, SplitOutcome
from splitz.domain.receipt import (
    Discount,
    Fee,
    LineItem,
    Receipt,
    ReceiptDocument,
    ReceiptStatus,
    SplitResults,
    Taxable,
)
from splitz.domain.reconcile import TotalValidation, ValidationFlag
from splitz.domain.review import ChargeEdit, ItemEdit
from splitz.domain.rules import SplitMethod, SplitRequest, SplitRule
from splitz.domain.session import Person
from splitz.domain.tax import quantize_money

# Status spellings accepted from the extraction collaborator.
_STATUS_ALIASES = {"FINAL": ReceiptStatus.FINALIZED}


def _decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name}: invalid number {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{name}: expected a finite number, got {value!r}")
    return result


def _optional_decimal(value: Any, name: str) -> Decimal | None:
    return None if value is None else _decimal(value, name)


def _money(value: Decimal) -> str:
    return f"{quantize_money(value):.2f}"


def _raw(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _require(data: dict[str, Any], key: str, context: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"{context}: expected an object, got {type(data).__name__}")
    if key not in data:
        raise ValueError(f"{context}: missing '{key}'")
    return data[key]


def _taxable(value: Any) -> Taxable:
    if value is None or isinstance(value, bool):
        return Taxable.from_flag(value)
    try:
        return Taxable(str(value).upper())
    except ValueError as exc:
        raise ValueError(f"taxable: unknown value {value!r}") from exc


def _status(value: Any) -> ReceiptStatus:
    text = str(value).upper()
    if text in _STATUS_ALIASES:
        return _STATUS_ALIASES[text]
    try:
        return ReceiptStatus(text)
    except ValueError as exc:
        raise ValueError(f"status: unknown value {value!r}") from exc


def _ids(value: Any, name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ValueError(f"{name}: expected a list of ids")
    return tuple(str(v) for v in value)


# --- receipt ---


def line_item_to_dict(item: LineItem) -> dict[str, Any]:
    return {
        "item_id": item.item_id,
        "name_raw": item.name_raw,
        "name_normalized": item.name_normalized,
        "quantity": str(item.quantity),
        "unit_price": str(item.unit_price),
        "line_subtotal": str(item.line_subtotal),
        "taxable": item.taxable.value,
        "tax_amount": _raw(item.tax_amount),
    }


def line_item_from_dict(data: dict[str, Any]) -> LineItem:
    item_id = str(_require(data, "item_id", "line_item"))
    context = f"line_item {item_id}"
    quantity = _decimal(data.get("quantity", 1), f"{context} quantity")
    unit_price = _optional_decimal(data.get("unit_price"), f"{context} unit_price")
    subtotal = _optional_decimal(data.get("line_subtotal"), f"{context} line_subtotal")
    if subtotal is None and unit_price is None:
        raise ValueError(f"{context}: needs line_subtotal or unit_price")
    if subtotal is None:
        subtotal = quantity * unit_price  # type: ignore[operator]
    if unit_price is None:
        unit_price = quantize_money(subtotal / quantity) if quantity else subtotal
    return LineItem(
        item_id=item_id,
        name_raw=str(data.get("name_raw") or data.get("name") or ""),
        name_normalized=data.get("name_normalized"),
        quantity=quantity,
        unit_price=unit_price,
        line_subtotal=subtotal,
        taxable=_taxable(data.get("taxable")),
        tax_amount=_optional_decimal(data.get("tax_amount"), f"{context} tax_amount"),
    )


def fee_to_dict(fee: Fee) -> dict[str, Any]:
    return {
        "fee_id": fee.fee_id,
        "type": fee.category,
        "amount": str(fee.amount),
        "taxable": fee.taxable.value,
        "tax_amount": _raw(fee.tax_amount),
        "split_among": list(fee.split_among),
    }


def fee_from_dict(data: dict[str, Any]) -> Fee:
    fee_id = str(_require(data, "fee_id", "fee"))
    return Fee(
        fee_id=fee_id,
        category=str(data.get("type") or data.get("category") or fee_id),
        amount=_decimal(_require(data, "amount", f"fee {fee_id}"), f"fee {fee_id} amount"),
        taxable=_taxable(data.get("taxable", Taxable.NON_TAXABLE.value)),
        tax_amount=_optional_decimal(data.get("tax_amount"), f"fee {fee_id} tax_amount"),
        split_among=_ids(data.get("split_among"), f"fee {fee_id} split_among"),
    )


def discount_to_dict(discount: Discount) -> dict[str, Any]:
    return {
        "discount_id": discount.discount_id,
        "description": discount.description,
        "amount": str(discount.amount),
        "taxable": discount.taxable.value,
        "tax_impact": _raw(discount.tax_impact),
        "split_among": list(discount.split_among),
    }


def discount_from_dict(data: dict[str, Any]) -> Discount:
    discount_id = str(_require(data, "discount_id", "discount"))
    amount = _decimal(_require(data, "amount", f"discount {discount_id}"), f"discount {discount_id} amount")
    return Discount(
        discount_id=discount_id,
        # Some extractors report discounts as negative numbers.
        amount=abs(amount),
        description=data.get("description"),
        taxable=_taxable(data.get("taxable", Taxable.NON_TAXABLE.value)),
        tax_impact=_optional_decimal(data.get("tax_impact"), f"discount {discount_id} tax_impact"),
        split_among=_ids(data.get("split_among"), f"discount {discount_id} split_among"),
    )


def receipt_to_dict(receipt: Receipt) -> dict[str, Any]:
    return {
        "receipt_id": receipt.receipt_id,
        "vendor": receipt.vendor,
        "line_items": [line_item_to_dict(item) for item in receipt.line_items],
        "fees": [fee_to_dict(fee) for fee in receipt.fees],
        "discounts": [discount_to_dict(discount) for discount in receipt.discounts],
        "subtotal_items": _raw(receipt.subtotal_items),
        "total_tax_reported": _raw(receipt.total_tax_reported),
        "total_tax_calculated": _raw(receipt.total_tax_calculated),
        "grand_total": str(receipt.grand_total),
        "status": receipt.status.value,
    }


def receipt_from_dict(data: dict[str, Any]) -> Receipt:
    grand_total = _decimal(_require(data, "grand_total", "receipt"), "receipt grand_total")
    return Receipt(
        receipt_id=str(data.get("receipt_id") or ""),
        vendor=data.get("vendor"),
        grand_total=grand_total,
        line_items=[line_item_from_dict(item) for item in data.get("line_items") or []],
        fees=[fee_from_dict(fee) for fee in data.get("fees") or []],
        discounts=[discount_from_dict(discount) for discount in data.get("discounts") or []],
        subtotal_items=_optional_decimal(data.get("subtotal_items"), "receipt subtotal_items"),
        total_tax_reported=_optional_decimal(data.get("total_tax_reported"), "receipt total_tax_reported"),
        total_tax_calculated=_optional_decimal(data.get("total_tax_calculated"), "receipt total_tax_calculated"),
        status=_status(data.get("status", ReceiptStatus.EXTRACTED.value)),
    )


# --- split request ---


def person_to_dict(person: Person) -> dict[str, Any]:
    return {"id": person.person_id, "name": person.display_name}


def person_from_dict(data: dict[str, Any]) -> Person:
    return Person(
        person_id=str(_require(data, "id", "person")),
        display_name=str(_require(data, "name", "person")),
    )


def split_rule_to_dict(rule: SplitRule) -> dict[str, Any]:
    return {
        "item_id": rule.item_id,
        "method": rule.method.value,
        "people": list(rule.people),
        "amounts": {pid: str(amount) for pid, amount in rule.amounts.items()},
    }


def split_rule_from_dict(data: dict[str, Any]) -> SplitRule:
    item_id = str(_require(data, "item_id", "split rule"))
    try:
        method = SplitMethod(str(data.get("method", SplitMethod.EQUAL.value)).upper())
    except ValueError as exc:
        raise ValueError(f"split rule {item_id}: unknown method {data.get('method')!r}") from exc
    raw_amounts = data.get("amounts") or {}
    if not isinstance(raw_amounts, dict):
        raise ValueError(f"split rule {item_id}: amounts must be an object")
    amounts = {str(pid): _decimal(value, f"split rule {item_id} amount") for pid, value in raw_amounts.items()}
    if method is SplitMethod.EQUAL and amounts:
        raise ValueError(f"split rule {item_id}: EQUAL rules take no amounts")
    return SplitRule(
        item_id=item_id,
        method=method,
        people=_ids(data.get("people"), f"split rule {item_id} people"),
        amounts=amounts,
    )


def split_request_to_dict(request: SplitRequest) -> dict[str, Any]:
    return {
        "people": [person_to_dict(person) for person in request.people],
        "item_split_rules": [split_rule_to_dict(rule) for rule in request.rules],
    }


def split_request_from_dict(data: dict[str, Any]) -> SplitRequest:
    people = _require(data, "people", "split request")
    rules = data.get("item_split_rules") or []
    if not isinstance(people, list) or not isinstance(rules, list):
        raise ValueError("split request: people and item_split_rules must be lists")
    parsed = [person_from_dict(person) for person in people]
    seen: set[str] = set()
    for person in parsed:
        if person.person_id in seen:
            raise ValueError(f"split request: duplicate person id '{person.person_id}'")
        seen.add(person.person_id)
    return SplitRequest(
        people=parsed,
        rules=[split_rule_from_dict(rule) for rule in rules],
    )


# --- results ---


def _allocation_to_dict(allocation: Allocation) -> dict[str, Any]:
    return {"id": allocation.source_id, "label": allocation.label, "amount": _money(allocation.amount)}


def _allocation_from_dict(data: dict[str, Any]) -> Allocation:
    return Allocation(
        source_id=str(data["id"]),
        label=str(data.get("label", "")),
        amount=_decimal(data["amount"], "allocation amount"),
    )


def share_to_dict(share: Share) -> dict[str, Any]:
    return {
        "person_id": share.person_id,
        "name": share.display_name,
        "item_total": _money(share.item_total),
        "item_tax": _money(share.item_tax),
        "fees": [_allocation_to_dict(fee) for fee in share.fees],
        "discounts": [_allocation_to_dict(discount) for discount in share.discounts],
        "fee_total": _money(share.fee_total),
        "discount_credit": _money(share.discount_credit),
        "amount_owed": _money(share.amount_owed),
    }


def share_from_dict(data: dict[str, Any]) -> Share:
    return Share(
        person_id=str(data["person_id"]),
        display_name=str(data.get("name", "")),
        item_total=_decimal(data["item_total"], "share item_total"),
        item_tax=_decimal(data["item_tax"], "share item_tax"),
        fees=[_allocation_from_dict(fee) for fee in data.get("fees", [])],
        discounts=[_allocation_from_dict(discount) for discount in data.get("discounts", [])],
    )


def validation_to_dict(validation: TotalValidation) -> dict[str, Any]:
    return {
        "calculated_items_subtotal": _money(validation.calculated_items_subtotal),
        "calculated_items_tax": _money(validation.calculated_items_tax),
        "calculated_fees_total": _money(validation.calculated_fees_total),
        "calculated_discounts_total": _money(validation.calculated_discounts_total),
        "calculated_grand_total": _money(validation.calculated_grand_total),
        "receipt_total": _money(validation.receipt_total),
        "split_total": _money(validation.split_total),
        "difference": _money(validation.difference),
        "tolerance": str(validation.tolerance),
        "is_valid": validation.is_valid,
        "split_matches": validation.split_matches,
        "can_finalize": validation.can_finalize,
        "flags": [
            {
                "field": flag.field,
                "expected": _money(flag.expected),
                "actual": _money(flag.actual),
                "difference": _money(flag.difference),
            }
            for flag in validation.flags
        ],
    }


def validation_from_dict(data: dict[str, Any]) -> TotalValidation:
    return TotalValidation(
        calculated_items_subtotal=_decimal(data["calculated_items_subtotal"], "calculated_items_subtotal"),
        calculated_items_tax=_decimal(data["calculated_items_tax"], "calculated_items_tax"),
        calculated_fees_total=_decimal(data["calculated_fees_total"], "calculated_fees_total"),
        calculated_discounts_total=_decimal(data["calculated_discounts_total"], "calculated_discounts_total"),
        calculated_grand_total=_decimal(data["calculated_grand_total"], "calculated_grand_total"),
        receipt_total=_decimal(data["receipt_total"], "receipt_total"),
        split_total=_decimal(data["split_total"], "split_total"),
        tolerance=_decimal(data["tolerance"], "tolerance"),
        is_valid=bool(data["is_valid"]),
        split_matches=bool(data["split_matches"]),
        flags=[
            ValidationFlag(
                field=str(flag["field"]),
                expected=_decimal(flag["expected"], "flag expected"),
                actual=_decimal(flag["actual"], "flag actual"),
            )
            for flag in data.get("flags", [])
        ],
    )


def split_response_to_dict(
    split_id: str,
    outcome: SplitOutcome,
    validation: TotalValidation,
) -> dict[str, Any]:
    """Body of the split/finalize endpoints."""
    return {
        "split_id": split_id,
        "shares": [share_to_dict(share) for share in outcome.shares],
        "total_validation": validation_to_dict(validation),
        "errors": list(outcome.errors),
    }


def split_results_to_dict(results: SplitResults) -> dict[str, Any]:
    return {
        "split_id": results.split_id,
        "shares": [share_to_dict(share) for share in results.shares],
        "total_validation": validation_to_dict(results.validation),
        "split_request": split_request_to_dict(results.split_request),
    }


def split_results_from_dict(data: dict[str, Any]) -> SplitResults:
    return SplitResults(
        split_id=str(data["split_id"]),
        shares=[share_from_dict(share) for share in data.get("shares", [])],
        validation=validation_from_dict(data["total_validation"]),
        split_request=split_request_from_dict(data["split_request"]),
    )


# --- documents ---


def _timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"invalid timestamp {value!r}") from exc


def document_to_dict(document: ReceiptDocument) -> dict[str, Any]:
    return {
        "id": document.document_id,
        "filenames": list(document.filenames),
        "upload_timestamp": document.upload_timestamp.isoformat(),
        "status": document.status.value,
        "receipt_data": receipt_to_dict(document.receipt) if document.receipt is not None else None,
        "split_results": split_results_to_dict(document.split_results) if document.split_results else None,
        "extracted_at": document.extracted_at.isoformat() if document.extracted_at else None,
        "finalized_at": document.finalized_at.isoformat() if document.finalized_at else None,
    }


def document_from_dict(data: dict[str, Any]) -> ReceiptDocument:
    upload_timestamp = _timestamp(_require(data, "upload_timestamp", "document"))
    if upload_timestamp is None:
        raise ValueError("document: upload_timestamp is required")
    receipt_data = data.get("receipt_data")
    split_data = data.get("split_results")
    return ReceiptDocument(
        document_id=str(_require(data, "id", "document")),
        filenames=[str(name) for name in data.get("filenames", [])],
        upload_timestamp=upload_timestamp,
        status=_status(data.get("status", ReceiptStatus.UPLOADED.value)),
        receipt=receipt_from_dict(receipt_data) if receipt_data else None,
        split_results=split_results_from_dict(split_data) if split_data else None,
        extracted_at=_timestamp(data.get("extracted_at")),
        finalized_at=_timestamp(data.get("finalized_at")),
    )


# --- reviewer edits ---


def _optional_flag(value: Any, name: str) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    raise ValueError(f"{name}: expected true, false or null, got {value!r}")


def _edit_table(data: dict[str, Any], key: str) -> dict[str, Any]:
    table = data.get(key) or {}
    if not isinstance(table, dict) or not all(isinstance(edit, dict) for edit in table.values()):
        raise ValueError(f"review edits: '{key}' must map ids to objects")
    return table


def _charge_edits(data: dict[str, Any], key: str) -> dict[str, ChargeEdit]:
    return {
        str(charge_id): ChargeEdit(
            amount=_optional_decimal(edit.get("amount"), f"{key} {charge_id} amount"),
            taxable=_optional_flag(edit.get("taxable"), f"{key} {charge_id} taxable"),
        )
        for charge_id, edit in _edit_table(data, key).items()
    }


def review_edits_from_dict(
    data: dict[str, Any],
) -> tuple[dict[str, ItemEdit], dict[str, ChargeEdit], dict[str, ChargeEdit]]:
    """Parse ``{"items": {id: {...}}, "fees": {...}, "discounts": {...}}``."""
    if not isinstance(data, dict):
        raise ValueError("review edits: expected an object")
    item_edits = {
        str(item_id): ItemEdit(
            quantity=_optional_decimal(edit.get("quantity"), f"item {item_id} quantity"),
            price=_optional_decimal(edit.get("price"), f"item {item_id} price"),
            taxable=_optional_flag(edit.get("taxable"), f"item {item_id} taxable"),
        )
        for item_id, edit in _edit_table(data, "items").items()
    }
    return item_edits, _charge_edits(data, "fees"), _charge_edits(data, "discounts")
