"""CSV export/import workflow orchestration."""

from __future__ import annotations

import copy
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Literal

from splitz.domain.errors import CsvFormatError
from splitz.domain.receipt import ReceiptDocument, ReceiptStatus
from splitz.domain.rules import SplitRequest
from splitz.domain.session import Person, SplitSession
from splitz.domain.settings import SplitSettings
from splitz.domain.split_csv import export_csv, import_csv
from splitz.runtime import get_logger, load_split_settings
from splitz.runtime.document_store import DocumentNotFound, DocumentStore, PersistenceFailure

logger = get_logger(__name__)

ExportStatus = Literal["exported", "not_found", "no_receipt", "write_failed", "storage_error"]

ImportStatus = Literal[
    "imported",
    "file_not_found",
    "invalid_csv",
    "not_found",
    "no_receipt",
    "finalized",
    "storage_error",
]


@dataclass(frozen=True)
class CsvExportRequest:
    """Export a stored receipt's split as CSV.

    ``split_request`` defaults to the finalized split when the document has one.
    """

    document_id: str
    split_request: SplitRequest | None = None
    output_path: Path | None = None


@dataclass(frozen=True)
class CsvExportResult:
    status: ExportStatus
    csv_text: str | None = None
    output_path: Path | None = None
    error: str | None = None


@dataclass(frozen=True)
class CsvImportRequest:
    document_id: str
    csv_path: Path
    people: list[Person] | None = None
    save: bool = True


@dataclass(frozen=True)
class CsvImportResult:
    status: ImportStatus
    session: SplitSession | None = None
    error: str | None = None


def _load(store: DocumentStore, document_id: str) -> tuple[ReceiptDocument | None, str | None, str | None]:
    try:
        document = store.read(document_id)
    except DocumentNotFound:
        return None, "not_found", f"Receipt not found: {document_id}"
    except PersistenceFailure as exc:
        return None, "storage_error", str(exc)
    if document.receipt is None:
        return None, "no_receipt", f"Receipt {document_id} has no extracted data"
    return document, None, None


def run_csv_export(
    request: CsvExportRequest,
    store: DocumentStore | None = None,
    settings: SplitSettings | None = None,
) -> CsvExportResult:
    """Render the split as CSV text and optionally write it to disk."""
    store = store or DocumentStore()
    settings = settings or load_split_settings()

    document, failure, error = _load(store, request.document_id)
    if document is None or document.receipt is None:
        return CsvExportResult(status=failure, error=error)  # type: ignore[arg-type]

    split_request = request.split_request
    if split_request is None and document.split_results is not None:
        split_request = document.split_results.split_request
    receipt = copy.deepcopy(document.receipt)
    if split_request is None:
        session = SplitSession(receipt=receipt)
    else:
        session = SplitSession.from_split_request(receipt, split_request)

    csv_text = export_csv(session, settings)
    if request.output_path is None:
        return CsvExportResult(status="exported", csv_text=csv_text)

    try:
        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        request.output_path.write_text(csv_text, encoding="utf-8")
    except OSError as exc:
        return CsvExportResult(status="write_failed", csv_text=csv_text, error=str(exc))
    logger.info("Exported split CSV to %s", request.output_path)
    return CsvExportResult(status="exported", csv_text=csv_text, output_path=request.output_path)


def run_csv_import(request: CsvImportRequest, store: DocumentStore | None = None) -> CsvImportResult:
    """Replace a receipt's items and assignments with the contents of a CSV file."""
    if not request.csv_path.exists():
        return CsvImportResult(status="file_not_found", error=f"CSV file not found: {request.csv_path}")

    store = store or DocumentStore()
    document, failure, error = _load(store, request.document_id)
    if document is None or document.receipt is None:
        return CsvImportResult(status=failure, error=error)  # type: ignore[arg-type]
    if document.status is ReceiptStatus.FINALIZED:
        return CsvImportResult(status="finalized", error=f"Receipt {request.document_id} is finalized")

    try:
        imported = import_csv(request.csv_path.read_text(encoding="utf-8"), people=request.people)
    except CsvFormatError as exc:
        return CsvImportResult(status="invalid_csv", error=str(exc))
    except UnicodeDecodeError as exc:
        return CsvImportResult(status="invalid_csv", error=f"{request.csv_path} is not UTF-8 text: {exc}")

    session = SplitSession(receipt=copy.deepcopy(document.receipt), people=imported.people)
    session.replace_items(imported.items, imported.assignments)

    if request.save:
        try:
            store.update(request.document_id, replace(session.receipt))
        except PersistenceFailure as exc:
            return CsvImportResult(status="storage_error", session=session, error=str(exc))
    logger.info("Imported %d item(s) into %s", len(imported.items), request.document_id)
    return CsvImportResult(status="imported", session=session)
