"""Data models for receipts and their persisted documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from splitz.domain.engine import Share
    from splitz.domain.reconcile import TotalValidation
    from splitz.domain.rules import SplitRequest


class Taxable(str, Enum):
    """Tri-state taxability reported by extraction or set by a reviewer."""

    TAXABLE = "TAXABLE"
    NON_TAXABLE = "NON_TAXABLE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_flag(cls, flag: bool | None) -> Taxable:
        if flag is None:
            return cls.UNKNOWN
        return cls.TAXABLE if flag else cls.NON_TAXABLE

    @property
    def is_taxable(self) -> bool:
        return self is Taxable.TAXABLE


class ReceiptStatus(str, Enum):
    UPLOADED = "UPLOADED"
    EXTRACTED = "EXTRACTED"
    NEEDS_REVIEW = "NEEDS_REVIEW"
    FINALIZED = "FINALIZED"


@dataclass
class LineItem:
    """A single line item on a receipt."""

    item_id: str
    name_raw: str
    quantity: Decimal
    unit_price: Decimal
    line_subtotal: Decimal
    taxable: Taxable = Taxable.UNKNOWN
    name_normalized: str | None = None
    tax_amount: Decimal | None = None

    @property
    def price(self) -> Decimal:
        # The line subtotal is authoritative; a reviewer override replaces it
        # without touching quantity or unit price.
        return self.line_subtotal

    @property
    def display_name(self) -> str:
        return self.name_normalized or self.name_raw


@dataclass
class Fee:
    """A receipt-level charge (bag fee, service fee, delivery, ...)."""

    fee_id: str
    category: str
    amount: Decimal
    taxable: Taxable = Taxable.NON_TAXABLE
    tax_amount: Decimal | None = None
    # Person ids sharing this fee. Empty means every current participant.
    split_among: tuple[str, ...] = ()


@dataclass
class Discount:
    """A receipt-level reduction. ``amount`` is a positive magnitude."""

    discount_id: str
    amount: Decimal
    description: str | None = None
    taxable: Taxable = Taxable.NON_TAXABLE
    tax_impact: Decimal | None = None
    split_among: tuple[str, ...] = ()

    @property
    def label(self) -> str:
        return self.description or self.discount_id


@dataclass
class Receipt:
    """Receipt data as extracted and then edited by a reviewer."""

    receipt_id: str
    grand_total: Decimal
    line_items: list[LineItem] = field(default_factory=list)
    fees: list[Fee] = field(default_factory=list)
    discounts: list[Discount] = field(default_factory=list)
    vendor: str | None = None
    subtotal_items: Decimal | None = None
    total_tax_reported: Decimal | None = None
    total_tax_calculated: Decimal | None = None
    status: ReceiptStatus = ReceiptStatus.EXTRACTED

    def find_item(self, item_id: str) -> LineItem | None:
        for item in self.line_items:
            if item.item_id == item_id:
                return item
        return None


@dataclass
class SplitResults:
    """Immutable snapshot written when a split is finalized."""

    split_id: str
    shares: list[Share]
    validation: TotalValidation
    split_request: SplitRequest


@dataclass
class ReceiptDocument:
    """A persisted receipt plus upload metadata and an optional finalized split."""

    document_id: str
    filenames: list[str]
    upload_timestamp: datetime
    status: ReceiptStatus = ReceiptStatus.UPLOADED
    receipt: Receipt | None = None
    split_results: SplitResults | None = None
    extracted_at: datetime | None = None
    finalized_at: datetime | None = None

    @property
    def vendor(self) -> str | None:
        return self.receipt.vendor if self.receipt is not None else None

    @property
    def grand_total(self) -> Decimal | None:
        return self.receipt.grand_total if self.receipt is not None else None
