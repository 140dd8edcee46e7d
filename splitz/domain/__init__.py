"""Core domain models and pure split/reconciliation logic.

This package provides:
- Receipt, LineItem, Fee, Discount, ReceiptDocument: receipt models
- SplitSession, Person: explicit split-stage state
- build_split_rules, compute_shares, validate_totals: the split pipeline
- record_extraction, finalize_document, restore_session: lifecycle

Usage:
    from splitz.domain import SplitSession, compute_shares, validate_totals
"""

from splitz.domain.engine import Allocation, Share, SplitOutcome, compute_shares
from splitz.domain.errors import CsvFormatError, FinalizeRejected, InvalidTransition, SplitzError
from splitz.domain.lifecycle import finalize_document, record_extraction, restore_session
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
from splitz.domain.reconcile import TotalValidation, ValidationFlag, validate_totals
from splitz.domain.rules import SplitMethod, SplitRequest, SplitRule, build_split_rules
from splitz.domain.session import Person, SplitSession
from splitz.domain.settings import SplitSettings
from splitz.domain.tax import tax

__all__ = [
    # Models
    "Discount",
    "Fee",
    "LineItem",
    "Receipt",
    "ReceiptDocument",
    "ReceiptStatus",
    "SplitResults",
    "Taxable",
    "Person",
    "SplitSession",
    "SplitSettings",
    # Split pipeline
    "tax",
    "SplitMethod",
    "SplitRule",
    "SplitRequest",
    "build_split_rules",
    "Allocation",
    "Share",
    "SplitOutcome",
    "compute_shares",
    "TotalValidation",
    "ValidationFlag",
    "validate_totals",
    # Lifecycle
    "record_extraction",
    "finalize_document",
    "restore_session",
    # Errors
    "SplitzError",
    "InvalidTransition",
    "FinalizeRejected",
    "CsvFormatError",
]
