"""Review-stage workflows: reviewer edits and taxability classification."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Literal

from splitz.domain.receipt import Receipt, ReceiptDocument, ReceiptStatus
from splitz.domain.review import ChargeEdit, ItemEdit, TaxabilityResult, apply_review_edits, merge_taxability
from splitz.domain.settings import SplitSettings
from splitz.runtime import get_logger, load_split_settings
from splitz.runtime.classifier import ClassifierUnavailable, classify_taxability
from splitz.runtime.document_store import DocumentNotFound, DocumentStore, PersistenceFailure

logger = get_logger(__name__)

ReviewStatus = Literal["updated", "not_found", "no_receipt", "finalized", "invalid_edit", "storage_error"]

ClassifyStatus = Literal[
    "classified",
    "classifier_unavailable",
    "not_found",
    "no_receipt",
    "finalized",
    "storage_error",
]


@dataclass(frozen=True)
class ReviewEditsRequest:
    """Reviewer edits keyed by item, fee and discount id."""

    document_id: str
    item_edits: Mapping[str, ItemEdit] = field(default_factory=dict)
    fee_edits: Mapping[str, ChargeEdit] = field(default_factory=dict)
    discount_edits: Mapping[str, ChargeEdit] = field(default_factory=dict)


@dataclass(frozen=True)
class ReviewEditsResult:
    status: ReviewStatus
    receipt: Receipt | None = None
    error: str | None = None


@dataclass(frozen=True)
class TaxabilityClassificationRequest:
    document_id: str
    service_url: str
    locked_item_ids: tuple[str, ...] = ()
    classify: Callable[[list[str], str], list[TaxabilityResult]] | None = None


@dataclass(frozen=True)
class TaxabilityClassificationResult:
    status: ClassifyStatus
    receipt: Receipt | None = None
    changed_item_ids: list[str] = field(default_factory=list)
    error: str | None = None


def _load_editable(store: DocumentStore, document_id: str) -> tuple[ReceiptDocument | None, str | None, str | None]:
    """Return (document, failure_status, error) for a receipt that may still be edited."""
    try:
        document = store.read(document_id)
    except DocumentNotFound:
        return None, "not_found", f"Receipt not found: {document_id}"
    except PersistenceFailure as exc:
        return None, "storage_error", str(exc)
    if document.status is ReceiptStatus.FINALIZED:
        return None, "finalized", f"Receipt {document_id} is finalized; reopen it to view the split"
    if document.receipt is None:
        return None, "no_receipt", f"Receipt {document_id} has no extracted data"
    return document, None, None


def run_review_edits(
    request: ReviewEditsRequest,
    store: DocumentStore | None = None,
    settings: SplitSettings | None = None,
) -> ReviewEditsResult:
    """Apply reviewer corrections and persist the updated receipt data."""
    store = store or DocumentStore()
    settings = settings or load_split_settings()

    document, failure, error = _load_editable(store, request.document_id)
    if document is None or document.receipt is None:
        return ReviewEditsResult(status=failure, error=error)  # type: ignore[arg-type]

    try:
        receipt = apply_review_edits(
            document.receipt,
            settings,
            item_edits=request.item_edits,
            fee_edits=request.fee_edits,
            discount_edits=request.discount_edits,
        )
    except KeyError as exc:
        return ReviewEditsResult(status="invalid_edit", error=str(exc.args[0]) if exc.args else str(exc))

    try:
        store.update(request.document_id, receipt)
    except PersistenceFailure as exc:
        return ReviewEditsResult(status="storage_error", receipt=receipt, error=str(exc))
    return ReviewEditsResult(status="updated", receipt=receipt)


def run_taxability_classification(
    request: TaxabilityClassificationRequest,
    store: DocumentStore | None = None,
) -> TaxabilityClassificationResult:
    """Ask the classifier about every item name and merge its verdicts."""
    store = store or DocumentStore()

    document, failure, error = _load_editable(store, request.document_id)
    if document is None or document.receipt is None:
        return TaxabilityClassificationResult(status=failure, error=error)  # type: ignore[arg-type]

    names = sorted({item.display_name for item in document.receipt.line_items})
    classify = request.classify or classify_taxability
    try:
        results = classify(names, request.service_url)
    except ClassifierUnavailable as exc:
        return TaxabilityClassificationResult(
            status="classifier_unavailable",
            receipt=document.receipt,
            error=str(exc),
        )

    receipt, changed = merge_taxability(document.receipt, results, request.locked_item_ids)
    if changed:
        try:
            store.update(request.document_id, receipt)
        except PersistenceFailure as exc:
            return TaxabilityClassificationResult(status="storage_error", receipt=receipt, error=str(exc))
    logger.info("Classifier changed taxability of %d item(s) on %s", len(changed), request.document_id)
    return TaxabilityClassificationResult(status="classified", receipt=receipt, changed_item_ids=changed)
