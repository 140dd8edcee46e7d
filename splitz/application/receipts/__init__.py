"""Receipt workflows."""

from splitz.application.receipts.csv_transfer import (
    CsvExportRequest,
    CsvImportRequest,
    run_csv_export,
    run_csv_import,
)
from splitz.application.receipts.extraction import ReceiptExtractionRequest, run_receipt_extraction, store_extraction
from splitz.application.receipts.listing import run_list_documents
from splitz.application.receipts.review import (
    ReviewEditsRequest,
    TaxabilityClassificationRequest,
    run_review_edits,
    run_taxability_classification,
)
from splitz.application.receipts.split import (
    SplitWorkflowRequest,
    calculate_split,
    run_finalize,
    run_reopen,
    run_split,
)

__all__ = [
    "ReceiptExtractionRequest",
    "run_receipt_extraction",
    "store_extraction",
    "ReviewEditsRequest",
    "run_review_edits",
    "TaxabilityClassificationRequest",
    "run_taxability_classification",
    "SplitWorkflowRequest",
    "calculate_split",
    "run_split",
    "run_finalize",
    "run_reopen",
    "CsvExportRequest",
    "run_csv_export",
    "CsvImportRequest",
    "run_csv_import",
    "run_list_documents",
]
