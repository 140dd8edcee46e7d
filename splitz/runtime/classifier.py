"""Client for the taxability classifier collaborator."""

from __future__ import annotations

import httpx

from splitz.domain.review import TaxabilityResult
from splitz.runtime.logging import get_logger

logger = get_logger(__name__)

CLASSIFIER_TIMEOUT = 60.0


class ClassifierUnavailable(RuntimeError):
    """Raised when the classifier cannot be reached or returns an error."""


def classify_taxability(
    names: list[str],
    service_url: str,
    client: httpx.Client | None = None,
) -> list[TaxabilityResult]:
    """
    Ask the classifier whether each item name is taxable.

    Request body: ``{"items": [{"name": ...}, ...]}``.
    Response body: ``[{"name": ..., "taxable": bool}, ...]``.
    """
    if not names:
        return []
    service_url = service_url.rstrip("/")
    logger.info("Classifying taxability of %d item(s) via %s", len(names), service_url)

    owns_client = client is None
    http = client or httpx.Client(timeout=CLASSIFIER_TIMEOUT)
    try:
        response = http.post(
            f"{service_url}/classify-taxability",
            json={"items": [{"name": name} for name in names]},
        )
    except httpx.RequestError as e:
        logger.error("Failed to connect to classifier: %s", e)
        raise ClassifierUnavailable(f"Failed to connect to classifier: {e}") from e
    finally:
        if owns_client:
            http.close()

    if response.status_code != 200:
        logger.error("Classifier error: %s", response.status_code)
        raise ClassifierUnavailable(f"Classifier error: {response.status_code}")

    try:
        payload = response.json()
    except ValueError as e:
        raise ClassifierUnavailable("Classifier returned invalid JSON") from e
    if not isinstance(payload, list):
        raise ClassifierUnavailable("Classifier returned a non-list payload")

    results: list[TaxabilityResult] = []
    for entry in payload:
        if not isinstance(entry, dict) or "name" not in entry or not isinstance(entry.get("taxable"), bool):
            logger.warning("Ignoring malformed classifier entry: %r", entry)
            continue
        results.append(TaxabilityResult(name=str(entry["name"]), taxable=entry["taxable"]))
    return results
