"""Receipt listing workflow orchestration."""

from __future__ import annotations

from dataclasses import dataclass

from splitz.runtime.document_store import DocumentStore, DocumentSummary


@dataclass(frozen=True)
class DocumentListing:
    """Stored receipt summaries for CLI and API display."""

    documents: list[DocumentSummary]


def run_list_documents(store: DocumentStore | None = None) -> DocumentListing:
    """Load stored receipt summaries, newest upload first."""
    return DocumentListing(documents=(store or DocumentStore()).list())
