"""Receipt lifecycle: UPLOADED -> EXTRACTED | NEEDS_REVIEW -> FINALIZED."""

from __future__ import annotations

import copy
from dataclasses import replace
from datetime import datetime

from splitz.domain.errors import FinalizeRejected, InvalidTransition, SplitzError
from splitz.domain.receipt import Receipt, ReceiptDocument, ReceiptStatus, SplitResults
from splitz.domain.session import SplitSession

_TRANSITIONS: dict[ReceiptStatus, frozenset[ReceiptStatus]] = {
    ReceiptStatus.UPLOADED: frozenset({ReceiptStatus.EXTRACTED, ReceiptStatus.NEEDS_REVIEW}),
    ReceiptStatus.EXTRACTED: frozenset({ReceiptStatus.FINALIZED}),
    ReceiptStatus.NEEDS_REVIEW: frozenset({ReceiptStatus.FINALIZED}),
    ReceiptStatus.FINALIZED: frozenset(),
}


def can_transition(current: ReceiptStatus, target: ReceiptStatus) -> bool:
    return target in _TRANSITIONS[current]


def transition(current: ReceiptStatus, target: ReceiptStatus) -> ReceiptStatus:
    if not can_transition(current, target):
        raise InvalidTransition(current.value, target.value)
    return target


def record_extraction(
    document: ReceiptDocument,
    receipt: Receipt,
    needs_review: bool,
    extracted_at: datetime,
) -> ReceiptDocument:
    """Attach an extracted receipt and move the document out of UPLOADED."""
    target = ReceiptStatus.NEEDS_REVIEW if needs_review else ReceiptStatus.EXTRACTED
    status = transition(document.status, target)
    return replace(
        document,
        status=status,
        receipt=replace(receipt, status=status),
        extracted_at=extracted_at,
    )


def finalize_document(
    document: ReceiptDocument,
    results: SplitResults,
    finalized_at: datetime,
) -> ReceiptDocument:
    """Return a FINALIZED copy of ``document`` carrying ``results``.

    The input document is never modified; a rejected finalize leaves no trace.
    """
    status = transition(document.status, ReceiptStatus.FINALIZED)
    if document.receipt is None:
        raise SplitzError(f"Receipt {document.document_id} has no extracted data to finalize")

    validation = results.validation
    if not validation.can_finalize:
        flag = validation.blocking_flag()
        if flag is None:
            raise FinalizeRejected("grand_total", validation.receipt_total, validation.calculated_grand_total)
        raise FinalizeRejected(flag.field, flag.expected, flag.actual)

    return replace(
        document,
        status=status,
        receipt=replace(copy.deepcopy(document.receipt), status=status),
        split_results=results,
        finalized_at=finalized_at,
    )


def restore_session(document: ReceiptDocument) -> SplitSession:
    """Rebuild the split view of a finalized receipt from its persisted split request."""
    if document.split_results is None or document.receipt is None:
        raise SplitzError(f"Receipt {document.document_id} has no finalized split to restore")
    return SplitSession.from_split_request(copy.deepcopy(document.receipt), document.split_results.split_request)
