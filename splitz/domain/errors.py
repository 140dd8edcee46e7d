"""Errors raised by the pure split/reconciliation layer."""

from __future__ import annotations

from decimal import Decimal


class SplitzError(Exception):
    """Base class for domain errors."""


class InvalidTransition(SplitzError):
    """Raised when a receipt status change is not allowed by the lifecycle."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move receipt from {current} to {target}")
        self.current = current
        self.target = target


class FinalizeRejected(SplitzError):
    """Raised when finalize is attempted while totals do not reconcile."""

    def __init__(self, field: str, expected: Decimal, actual: Decimal) -> None:
        self.field = field
        self.expected = expected
        self.actual = actual
        self.difference = actual - expected
        super().__init__(
            f"Cannot finalize: {field} is off by {self.difference:+.2f} "
            f"(expected {expected:.2f}, got {actual:.2f})"
        )


class CsvFormatError(SplitzError, ValueError):
    """Raised when an imported CSV lacks the columns needed to rebuild items."""


def malformed_assignment(subject: str, person_id: str) -> str:
    """Error entry for a rule or scope naming a participant that no longer exists."""
    return f"MalformedAssignment: {subject} references unknown participant '{person_id}'; ignored"
