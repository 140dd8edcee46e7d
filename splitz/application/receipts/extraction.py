"""Receipt extraction workflow orchestration."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from splitz.domain.errors import InvalidTransition
from splitz.domain.lifecycle import record_extraction
from splitz.domain.receipt import Receipt
from splitz.runtime import get_logger
from splitz.runtime.document_store import DocumentNotFound, DocumentStore, PersistenceFailure
from splitz.runtime.extraction import ExtractionFailure, ExtractionResult, call_extraction_service

logger = get_logger(__name__)

ExtractStatus = Literal[
    "file_not_found",
    "not_found",
    "extraction_failed",
    "invalid_state",
    "extracted",
    "needs_review",
    "not_saved",
]


@dataclass(frozen=True)
class ReceiptExtractionRequest:
    """Inputs for extracting receipt data from uploaded images."""

    items_images: list[Path]
    charges_image: Path
    service_url: str
    document_id: str | None = None
    preserve_on_failure: bool = False
    extract: Callable[[list[Path], Path, str], ExtractionResult] | None = None


@dataclass(frozen=True)
class ReceiptExtractionResult:
    """Outcome from the extraction workflow."""

    status: ExtractStatus
    document_id: str | None = None
    receipt: Receipt | None = None
    errors: list[str] | None = None
    error: str | None = None
    warning: str | None = None


def store_extraction(
    store: DocumentStore,
    document_id: str,
    extraction: ExtractionResult,
    extracted_at: datetime | None = None,
) -> ReceiptExtractionResult:
    """Record an extraction on a stored document and persist it."""
    try:
        document = store.read(document_id)
    except DocumentNotFound:
        return ReceiptExtractionResult(
            status="not_found",
            document_id=document_id,
            error=f"Receipt not found: {document_id}",
        )
    except PersistenceFailure as exc:
        return ReceiptExtractionResult(
            status="not_saved",
            document_id=document_id,
            receipt=extraction.receipt,
            errors=extraction.errors,
            warning=f"Results not saved: {exc}",
        )

    try:
        updated = record_extraction(
            document,
            extraction.receipt,
            extraction.needs_review,
            extracted_at or datetime.now(timezone.utc),
        )
    except InvalidTransition as exc:
        return ReceiptExtractionResult(status="invalid_state", document_id=document_id, error=str(exc))

    try:
        store.save(updated)
    except PersistenceFailure as exc:
        return ReceiptExtractionResult(
            status="not_saved",
            document_id=document_id,
            receipt=updated.receipt,
            errors=extraction.errors,
            warning=f"Results not saved: {exc}",
        )

    status: ExtractStatus = "needs_review" if extraction.needs_review else "extracted"
    logger.info("Stored extraction for %s (%s)", document_id, status)
    return ReceiptExtractionResult(
        status=status,
        document_id=document_id,
        receipt=updated.receipt,
        errors=extraction.errors,
    )


def run_receipt_extraction(
    request: ReceiptExtractionRequest,
    store: DocumentStore | None = None,
) -> ReceiptExtractionResult:
    """Run extraction flow: upload images -> parse payload -> record on the document."""
    for path in [*request.items_images, request.charges_image]:
        if not path.exists():
            return ReceiptExtractionResult(status="file_not_found", error=f"Receipt image not found: {path}")

    store = store or DocumentStore()
    document_id = request.document_id
    if document_id is None:
        try:
            document_id = store.create(
                [path.name for path in [*request.items_images, request.charges_image]],
                datetime.now(timezone.utc),
            )
        except PersistenceFailure as exc:
            return ReceiptExtractionResult(status="not_saved", warning=f"Results not saved: {exc}")

    extract = request.extract or call_extraction_service
    try:
        extraction = extract(request.items_images, request.charges_image, request.service_url)
    except ExtractionFailure as exc:
        logger.error("Extraction failed for %s: %s", document_id, exc)
        preserved: Receipt | None = None
        if request.preserve_on_failure:
            try:
                preserved = store.read(document_id).receipt
            except (DocumentNotFound, PersistenceFailure):
                preserved = None
        return ReceiptExtractionResult(
            status="extraction_failed",
            document_id=document_id,
            receipt=preserved,
            error=str(exc),
        )

    return store_extraction(store, document_id, extraction)
