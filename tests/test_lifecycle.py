from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from splitz.domain.engine import compute_shares
from splitz.domain.errors import FinalizeRejected, InvalidTransition, SplitzError
from splitz.domain.lifecycle import can_transition, finalize_document, record_extraction, restore_session, transition
from splitz.domain.receipt import LineItem, Receipt, ReceiptDocument, ReceiptStatus, SplitResults, Taxable
from splitz.domain.reconcile import validate_totals
from splitz.domain.rules import SplitMethod, SplitRequest, SplitRule
from splitz.domain.session import Person
from splitz.domain.settings import SplitSettings

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
SETTINGS = SplitSettings()


def _receipt(grand_total: str) -> Receipt:
    return Receipt(
        receipt_id="r1",
        grand_total=Decimal(grand_total),
        line_items=[
            LineItem(
                item_id="item-1",
                name_raw="CHEESE",
                quantity=Decimal("1"),
                unit_price=Decimal("30.00"),
                line_subtotal=Decimal("30.00"),
                taxable=Taxable.TAXABLE,
            )
        ],
    )


def _document(status: ReceiptStatus = ReceiptStatus.EXTRACTED, grand_total: str = "33.90") -> ReceiptDocument:
    return ReceiptDocument(
        document_id="abc123",
        filenames=["items.jpg", "charges.jpg"],
        upload_timestamp=NOW,
        status=status,
        receipt=_receipt(grand_total),
    )


def _results(receipt: Receipt) -> SplitResults:
    request = SplitRequest(
        people=[Person("alice", "Alice"), Person("bob", "Bob")],
        rules=[SplitRule("item-1", SplitMethod.EQUAL, ("alice", "bob"))],
    )
    outcome = compute_shares(receipt, request.rules, request.people, SETTINGS)
    return SplitResults(
        split_id="split-1",
        shares=outcome.shares,
        validation=validate_totals(receipt, outcome.shares, SETTINGS),
        split_request=request,
    )


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (ReceiptStatus.UPLOADED, ReceiptStatus.EXTRACTED, True),
        (ReceiptStatus.UPLOADED, ReceiptStatus.NEEDS_REVIEW, True),
        (ReceiptStatus.UPLOADED, ReceiptStatus.FINALIZED, False),
        (ReceiptStatus.EXTRACTED, ReceiptStatus.FINALIZED, True),
        (ReceiptStatus.NEEDS_REVIEW, ReceiptStatus.FINALIZED, True),
        (ReceiptStatus.FINALIZED, ReceiptStatus.EXTRACTED, False),
        (ReceiptStatus.FINALIZED, ReceiptStatus.FINALIZED, False),
    ],
)
def test_transitions(current: ReceiptStatus, target: ReceiptStatus, allowed: bool) -> None:
    assert can_transition(current, target) is allowed
    if allowed:
        assert transition(current, target) is target
    else:
        with pytest.raises(InvalidTransition):
            transition(current, target)


def test_record_extraction_sets_status_from_review_hint() -> None:
    uploaded = ReceiptDocument(document_id="abc", filenames=[], upload_timestamp=NOW)

    extracted = record_extraction(uploaded, _receipt("33.90"), needs_review=False, extracted_at=NOW)
    flagged = record_extraction(uploaded, _receipt("33.90"), needs_review=True, extracted_at=NOW)

    assert extracted.status is ReceiptStatus.EXTRACTED
    assert extracted.receipt.status is ReceiptStatus.EXTRACTED
    assert extracted.extracted_at == NOW
    assert flagged.status is ReceiptStatus.NEEDS_REVIEW
    assert uploaded.status is ReceiptStatus.UPLOADED


def test_finalize_snapshots_results_and_advances_status() -> None:
    document = _document()
    finalized = finalize_document(document, _results(document.receipt), NOW)

    assert finalized.status is ReceiptStatus.FINALIZED
    assert finalized.receipt.status is ReceiptStatus.FINALIZED
    assert finalized.split_results.split_id == "split-1"
    assert finalized.finalized_at == NOW
    assert document.status is ReceiptStatus.EXTRACTED
    assert document.split_results is None

    # Later edits to the working receipt do not leak into the snapshot.
    document.receipt.line_items[0].line_subtotal = Decimal("1.00")
    assert finalized.receipt.line_items[0].line_subtotal == Decimal("30.00")


def test_finalize_rejected_when_totals_disagree() -> None:
    document = _document(grand_total="40.00")
    results = _results(document.receipt)

    with pytest.raises(FinalizeRejected) as excinfo:
        finalize_document(document, results, NOW)

    assert excinfo.value.field == "grand_total"
    assert excinfo.value.difference == Decimal("-6.10")
    assert "off by -6.10" in str(excinfo.value)
    assert document.status is ReceiptStatus.EXTRACTED
    assert document.split_results is None


def test_finalize_from_uploaded_is_an_invalid_transition() -> None:
    document = _document(status=ReceiptStatus.UPLOADED)
    with pytest.raises(InvalidTransition):
        finalize_document(document, _results(document.receipt), NOW)


def test_finalized_document_cannot_be_finalized_again() -> None:
    document = _document()
    finalized = finalize_document(document, _results(document.receipt), NOW)
    with pytest.raises(InvalidTransition):
        finalize_document(finalized, _results(finalized.receipt), NOW)


def test_restore_session_rehydrates_people_and_assignments() -> None:
    document = _document()
    finalized = finalize_document(document, _results(document.receipt), NOW)

    session = restore_session(finalized)

    assert [person.display_name for person in session.people] == ["Alice", "Bob"]
    assert session.assigned_people("item-1") == ["alice", "bob"]


def test_restore_session_requires_a_snapshot() -> None:
    with pytest.raises(SplitzError):
        restore_session(_document())


def test_restored_session_owns_its_receipt() -> None:
    document = _document()
    finalized = finalize_document(document, _results(document.receipt), NOW)

    session = restore_session(finalized)
    session.receipt.line_items[0].name_normalized = "BRIE"
    session.receipt.line_items.clear()

    assert session.receipt is not finalized.receipt
    assert [item.display_name for item in finalized.receipt.line_items] == ["CHEESE"]
