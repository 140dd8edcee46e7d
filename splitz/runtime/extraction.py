"""Client for the receipt extraction collaborator (non-HTTP-server side)."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from splitz.domain.receipt import Receipt, ReceiptStatus
from splitz.domain.serialization import receipt_from_dict
from splitz.runtime.logging import get_logger

logger = get_logger(__name__)

EXTRACTION_TIMEOUT = 120.0


class ExtractionFailure(RuntimeError):
    """Raised when the extraction service is unreachable or returns an unusable payload."""


@dataclass(frozen=True)
class ExtractionResult:
    receipt: Receipt
    needs_review: bool
    errors: list[str]


def _content_type(path: Path) -> str:
    return "image/png" if path.suffix.lower() == ".png" else "image/jpeg"


def parse_extraction_payload(payload: Any) -> ExtractionResult:
    """
    Turn the extraction service's JSON body into an ExtractionResult.

    Expected shape: ``{"success": bool, "receipt": {...}, "errors": [str]}``.
    The receipt's ``status`` is the collaborator's hint: NEEDS_REVIEW flags a
    confidence or validation concern.
    """
    if not isinstance(payload, dict):
        raise ExtractionFailure("Extraction service returned a non-object payload")
    errors = [str(e) for e in payload.get("errors") or []]
    if not payload.get("success"):
        raise ExtractionFailure("; ".join(errors) or "Extraction failed")
    receipt_data = payload.get("receipt")
    if not isinstance(receipt_data, dict):
        raise ExtractionFailure("Extraction payload has no receipt")
    try:
        receipt = receipt_from_dict(receipt_data)
    except ValueError as exc:
        raise ExtractionFailure(f"Malformed receipt from extraction service: {exc}") from exc

    needs_review = receipt.status is ReceiptStatus.NEEDS_REVIEW or bool(errors)
    return ExtractionResult(receipt=receipt, needs_review=needs_review, errors=errors)


def call_extraction_service(
    items_images: list[Path],
    charges_image: Path,
    service_url: str,
    client: httpx.Client | None = None,
) -> ExtractionResult:
    """
    Send item and charge images to the extraction service.

    Args:
        items_images: Images showing item names and prices.
        charges_image: Image showing fees, taxes and totals.
        service_url: Base URL of the extraction service.
        client: Optional preconfigured httpx client (tests inject a mock transport).

    Raises:
        ExtractionFailure: on transport errors, non-200 responses or bad payloads.
    """
    service_url = service_url.rstrip("/")
    logger.info("Sending %d item image(s) to extraction service at %s...", len(items_images), service_url)

    files: list[tuple[str, tuple[str, bytes, str]]] = [
        ("items_images", (path.name, path.read_bytes(), _content_type(path))) for path in items_images
    ]
    files.append(("charges_image", (charges_image.name, charges_image.read_bytes(), _content_type(charges_image))))

    owns_client = client is None
    http = client or httpx.Client(timeout=EXTRACTION_TIMEOUT)
    try:
        start_time = time.time()
        response = http.post(f"{service_url}/extract-receipt", files=files)
        logger.info("Extraction service returned in %.2f seconds", time.time() - start_time)
    except httpx.RequestError as e:
        logger.error("Failed to connect to extraction service: %s", e)
        raise ExtractionFailure(f"Failed to connect to extraction service: {e}") from e
    finally:
        if owns_client:
            http.close()

    if response.status_code != 200:
        logger.error("Extraction service error: %s", response.status_code)
        raise ExtractionFailure(f"Extraction service error: {response.status_code}")

    try:
        payload = response.json()
    except ValueError as e:
        raise ExtractionFailure("Extraction service returned invalid JSON") from e
    return parse_extraction_payload(payload)
