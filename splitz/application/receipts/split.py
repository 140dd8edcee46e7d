"""Split, finalize and reopen workflow orchestration."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from splitz.domain.engine import SplitOutcome, compute_shares
from splitz.domain.errors import FinalizeRejected, InvalidTransition, SplitzError
from splitz.domain.lifecycle import finalize_document, restore_session
from splitz.domain.receipt import Receipt, ReceiptDocument, SplitResults
from splitz.domain.reconcile import TotalValidation, validate_totals
from splitz.domain.rules import SplitRequest
from splitz.domain.session import SplitSession
from splitz.domain.settings import SplitSettings
from splitz.runtime import get_logger, load_split_settings
from splitz.runtime.document_store import DocumentNotFound, DocumentStore, PersistenceFailure

logger = get_logger(__name__)

SplitStatus = Literal["calculated", "not_found", "no_receipt", "storage_error"]

FinalizeStatus = Literal[
    "finalized",
    "rejected",
    "not_saved",
    "not_found",
    "no_receipt",
    "invalid_state",
    "storage_error",
]

ReopenStatus = Literal["restored", "not_finalized", "not_found", "storage_error"]


@dataclass(frozen=True)
class SplitCalculation:
    """Engine output plus reconciliation for one calculate request."""

    split_id: str
    outcome: SplitOutcome
    validation: TotalValidation


@dataclass(frozen=True)
class SplitWorkflowRequest:
    """Inputs shared by the split and finalize workflows."""

    document_id: str
    split_request: SplitRequest


@dataclass(frozen=True)
class SplitWorkflowResult:
    status: SplitStatus
    calculation: SplitCalculation | None = None
    error: str | None = None


@dataclass(frozen=True)
class FinalizeResult:
    status: FinalizeStatus
    calculation: SplitCalculation | None = None
    document: ReceiptDocument | None = None
    error: str | None = None
    warning: str | None = None


@dataclass(frozen=True)
class ReopenResult:
    status: ReopenStatus
    session: SplitSession | None = None
    error: str | None = None


def calculate_split(receipt: Receipt, split_request: SplitRequest, settings: SplitSettings) -> SplitCalculation:
    """Run the engine and the validator over one receipt snapshot."""
    outcome = compute_shares(receipt, split_request.rules, split_request.people, settings)
    validation = validate_totals(receipt, outcome.shares, settings)
    if not validation.can_finalize:
        for flag in validation.flags:
            logger.warning(
                "Validation mismatch on %s: expected %.2f, got %.2f",
                flag.field,
                flag.expected,
                flag.actual,
            )
    for error in outcome.errors:
        logger.warning("%s", error)
    return SplitCalculation(split_id=uuid.uuid4().hex, outcome=outcome, validation=validation)


def _load(store: DocumentStore, document_id: str) -> tuple[ReceiptDocument | None, str | None, str | None]:
    """Return (document, failure_status, error)."""
    try:
        return store.read(document_id), None, None
    except DocumentNotFound:
        return None, "not_found", f"Receipt not found: {document_id}"
    except PersistenceFailure as exc:
        return None, "storage_error", str(exc)


def run_split(
    request: SplitWorkflowRequest,
    store: DocumentStore | None = None,
    settings: SplitSettings | None = None,
) -> SplitWorkflowResult:
    """Calculate shares for a stored receipt. Never blocked by validation."""
    store = store or DocumentStore()
    settings = settings or load_split_settings()

    document, failure, error = _load(store, request.document_id)
    if document is None:
        return SplitWorkflowResult(status=failure, error=error)  # type: ignore[arg-type]
    if document.receipt is None:
        return SplitWorkflowResult(status="no_receipt", error=f"Receipt {request.document_id} has no extracted data")

    calculation = calculate_split(document.receipt, request.split_request, settings)
    return SplitWorkflowResult(status="calculated", calculation=calculation)


def run_finalize(
    request: SplitWorkflowRequest,
    store: DocumentStore | None = None,
    settings: SplitSettings | None = None,
    now: datetime | None = None,
) -> FinalizeResult:
    """Calculate, validate, then persist the snapshot and FINALIZED status in one write."""
    store = store or DocumentStore()
    settings = settings or load_split_settings()

    document, failure, error = _load(store, request.document_id)
    if document is None:
        return FinalizeResult(status=failure, error=error)  # type: ignore[arg-type]
    if document.receipt is None:
        return FinalizeResult(status="no_receipt", error=f"Receipt {request.document_id} has no extracted data")

    calculation = calculate_split(document.receipt, request.split_request, settings)
    results = SplitResults(
        split_id=calculation.split_id,
        shares=calculation.outcome.shares,
        validation=calculation.validation,
        split_request=request.split_request,
    )
    try:
        finalized = finalize_document(document, results, now or datetime.now(timezone.utc))
    except FinalizeRejected as exc:
        logger.warning("Finalize rejected for %s: %s", request.document_id, exc)
        return FinalizeResult(status="rejected", calculation=calculation, document=document, error=str(exc))
    except InvalidTransition as exc:
        return FinalizeResult(status="invalid_state", calculation=calculation, document=document, error=str(exc))

    try:
        store.save(finalized)
    except PersistenceFailure as exc:
        return FinalizeResult(
            status="not_saved",
            calculation=calculation,
            document=document,
            warning=f"Results not saved: {exc}",
        )

    logger.info("Finalized receipt %s (split %s)", request.document_id, calculation.split_id)
    return FinalizeResult(status="finalized", calculation=calculation, document=finalized)


def run_reopen(document_id: str, store: DocumentStore | None = None) -> ReopenResult:
    """Restore people and assignments of a finalized receipt."""
    store = store or DocumentStore()
    document, failure, error = _load(store, document_id)
    if document is None:
        return ReopenResult(status=failure, error=error)  # type: ignore[arg-type]
    try:
        session = restore_session(document)
    except SplitzError as exc:
        return ReopenResult(status="not_finalized", error=str(exc))
    return ReopenResult(status="restored", session=session)
