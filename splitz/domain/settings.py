"""Split settings shared by the tax calculator, engine and validator."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

DEFAULT_TAX_RATE = Decimal("0.13")
DEFAULT_TOLERANCE = Decimal("0.02")


@dataclass(frozen=True)
class SplitSettings:
    """Flat tax rate and reconciliation tolerance for one split context."""

    tax_rate: Decimal = DEFAULT_TAX_RATE
    tolerance: Decimal = DEFAULT_TOLERANCE
    tax_label: str = "HST"

    def __post_init__(self) -> None:
        if self.tax_rate < 0:
            raise ValueError(f"tax_rate must not be negative: {self.tax_rate}")
        if self.tolerance <= 0:
            raise ValueError(f"tolerance must be positive: {self.tolerance}")
