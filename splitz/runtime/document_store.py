"""File-backed store for receipt documents.

Each document is one JSON file::

    receipts_db/
    ├── 3f2a...c1.json
    └── 9b7e...04.json

Writes go to a temporary file that is then renamed over the target, so a
document's status and split snapshot always land together.
"""

from __future__ import annotations

import json
import os
import tempfile
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from splitz.domain.receipt import Receipt, ReceiptDocument, ReceiptStatus
from splitz.domain.serialization import document_from_dict, document_to_dict
from splitz.runtime.logging import get_logger
from splitz.runtime.paths import get_paths

logger = get_logger(__name__)

_ID_PATTERN = set("0123456789abcdef")


class PersistenceFailure(RuntimeError):
    """Raised when the document store cannot read or write a document."""


class DocumentNotFound(KeyError):
    """Raised when no document exists for the requested id."""


@dataclass(frozen=True)
class DocumentSummary:
    """One row of the receipts list."""

    document_id: str
    vendor: str | None
    grand_total: Decimal | None
    status: ReceiptStatus
    upload_timestamp: datetime


class DocumentStore:
    """CRUD over receipt documents stored as JSON files in one directory."""

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = directory if directory is not None else get_paths().receipts_db

    def _path(self, document_id: str) -> Path:
        # Ids are uuid hex; anything else could escape the directory.
        if not document_id or not set(document_id) <= _ID_PATTERN:
            raise DocumentNotFound(document_id)
        return self.directory / f"{document_id}.json"

    def _write(self, document: ReceiptDocument) -> None:
        path = self._path(document.document_id)
        payload = json.dumps(document_to_dict(document), indent=2)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error("Failed to write document %s: %s", document.document_id, exc)
            raise PersistenceFailure(f"Failed to write document {document.document_id}: {exc}") from exc
        logger.debug("Wrote document %s (%s)", document.document_id, document.status.value)

    def create(self, filenames: list[str], timestamp: datetime) -> str:
        """Register an upload and return its new document id."""
        document = ReceiptDocument(
            document_id=uuid.uuid4().hex,
            filenames=list(filenames),
            upload_timestamp=timestamp,
        )
        self._write(document)
        logger.info("Created receipt document %s for %d file(s)", document.document_id, len(filenames))
        return document.document_id

    def read(self, document_id: str) -> ReceiptDocument:
        path = self._path(document_id)
        if not path.exists():
            raise DocumentNotFound(document_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return document_from_dict(data)
        except (OSError, ValueError, KeyError) as exc:
            logger.error("Failed to read document %s: %s", document_id, exc)
            raise PersistenceFailure(f"Failed to read document {document_id}: {exc}") from exc

    def update(self, document_id: str, receipt: Receipt) -> None:
        """Replace the receipt data of an existing document."""
        document = self.read(document_id)
        self._write(replace(document, receipt=receipt))
        logger.info("Updated receipt data for %s", document_id)

    def save(self, document: ReceiptDocument) -> None:
        """Write a whole document (status, receipt and split results) at once."""
        self._write(document)

    def delete(self, document_id: str) -> None:
        path = self._path(document_id)
        if not path.exists():
            raise DocumentNotFound(document_id)
        try:
            path.unlink()
        except OSError as exc:
            raise PersistenceFailure(f"Failed to delete document {document_id}: {exc}") from exc
        logger.info("Deleted %s", path)

    def list(self) -> list[DocumentSummary]:
        """Summaries of every stored document, newest upload first."""
        if not self.directory.exists():
            return []
        summaries: list[DocumentSummary] = []
        for path in self.directory.glob("*.json"):
            if path.name.startswith("."):
                continue
            try:
                document = self.read(path.stem)
            except (PersistenceFailure, DocumentNotFound) as exc:
                logger.warning("Skipping %s: %s", path, exc)
                continue
            summaries.append(
                DocumentSummary(
                    document_id=document.document_id,
                    vendor=document.vendor,
                    grand_total=document.grand_total,
                    status=document.status,
                    upload_timestamp=document.upload_timestamp,
                )
            )
        return sorted(summaries, key=lambda s: s.upload_timestamp.isoformat(), reverse=True)
