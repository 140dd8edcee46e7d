"""FastAPI server for split calculation, finalize and the receipt document store."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from splitz.application.receipts.extraction import store_extraction
from splitz.application.receipts.split import (
    SplitWorkflowRequest,
    calculate_split,
    run_finalize,
    run_reopen,
    run_split,
)
from splitz.domain.receipt import ReceiptStatus
from splitz.domain.serialization import (
    document_to_dict,
    receipt_from_dict,
    receipt_to_dict,
    split_request_from_dict,
    split_request_to_dict,
    split_response_to_dict,
)
from splitz.domain.settings import SplitSettings
from splitz.runtime import get_logger, get_paths, load_split_settings
from splitz.runtime.document_store import DocumentNotFound, DocumentStore, PersistenceFailure
from splitz.runtime.extraction import EXTRACTION_TIMEOUT, ExtractionFailure, parse_extraction_payload
from splitz.runtime.settings import extraction_service_url

logger = get_logger(__name__)

_FAILURE_CODES = {
    "not_found": 404,
    "no_receipt": 409,
    "invalid_state": 409,
    "rejected": 409,
    "not_finalized": 409,
    "storage_error": 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create data directories on startup."""
    get_paths().ensure_data_directories()
    yield


app = FastAPI(title="Splitz", lifespan=lifespan)


def get_store() -> DocumentStore:
    return DocumentStore()


def get_settings() -> SplitSettings:
    return load_split_settings()


async def get_extraction_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(timeout=EXTRACTION_TIMEOUT) as client:
        yield client


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"status": "error", "message": message}, status_code=status_code)


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValueError(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.post("/split")
async def split(request: Request, settings: SplitSettings = Depends(get_settings)) -> JSONResponse:
    """Stateless calculate: ``{receipt, people, item_split_rules}`` in, shares and validation out."""
    try:
        body = await _json_body(request)
        receipt_data = body.get("receipt")
        if not isinstance(receipt_data, dict):
            raise ValueError("receipt: expected an object")
        receipt = receipt_from_dict(receipt_data)
        split_request = split_request_from_dict(body)
    except (ValueError, KeyError) as exc:
        return _error(f"Malformed split request: {exc}", 400)

    calculation = calculate_split(receipt, split_request, settings)
    return JSONResponse(split_response_to_dict(calculation.split_id, calculation.outcome, calculation.validation))


# --- receipt document store ---


@app.post("/receipts_db/create")
async def create_receipt(request: Request, store: DocumentStore = Depends(get_store)) -> JSONResponse:
    """Register an upload: ``{filenames: [...]}`` -> ``{id}``."""
    try:
        body = await _json_body(request)
    except ValueError as exc:
        return _error(str(exc), 400)
    filenames = body.get("filenames", [])
    if not isinstance(filenames, list) or not all(isinstance(name, str) for name in filenames):
        return _error("filenames must be a list of strings", 400)

    try:
        document_id = store.create(filenames, datetime.now(timezone.utc))
    except PersistenceFailure as exc:
        return _error(str(exc), 500)
    return JSONResponse({"id": document_id, "status": ReceiptStatus.UPLOADED.value}, status_code=201)


@app.get("/receipts_db/list")
async def list_receipts(store: DocumentStore = Depends(get_store)) -> JSONResponse:
    summaries = store.list()
    return JSONResponse(
        {
            "receipts": [
                {
                    "id": summary.document_id,
                    "vendor": summary.vendor,
                    "grand_total": f"{summary.grand_total:.2f}" if summary.grand_total is not None else None,
                    "status": summary.status.value,
                    "upload_timestamp": summary.upload_timestamp.isoformat(),
                }
                for summary in summaries
            ]
        }
    )


@app.get("/receipts_db/{document_id}")
async def get_receipt(document_id: str, store: DocumentStore = Depends(get_store)) -> JSONResponse:
    try:
        document = store.read(document_id)
    except DocumentNotFound:
        return _error(f"Receipt not found: {document_id}", 404)
    except PersistenceFailure as exc:
        return _error(str(exc), 500)
    return JSONResponse(document_to_dict(document))


@app.put("/receipts_db/{document_id}/update")
async def update_receipt(
    document_id: str,
    request: Request,
    store: DocumentStore = Depends(get_store),
) -> JSONResponse:
    """Replace the stored receipt data with reviewer-edited values."""
    try:
        body = await _json_body(request)
        receipt_data = body.get("receipt_data", body)
        if not isinstance(receipt_data, dict):
            raise ValueError("receipt_data: expected an object")
        receipt = receipt_from_dict(receipt_data)
    except (ValueError, KeyError) as exc:
        return _error(f"Malformed receipt: {exc}", 400)

    try:
        document = store.read(document_id)
        if document.status is ReceiptStatus.FINALIZED:
            return _error(f"Receipt {document_id} is finalized", 409)
        store.update(document_id, receipt)
    except DocumentNotFound:
        return _error(f"Receipt not found: {document_id}", 404)
    except PersistenceFailure as exc:
        return _error(str(exc), 500)
    return JSONResponse({"status": "updated", "id": document_id})


@app.delete("/receipts_db/{document_id}")
async def delete_receipt(document_id: str, store: DocumentStore = Depends(get_store)) -> JSONResponse:
    try:
        store.delete(document_id)
    except DocumentNotFound:
        return _error(f"Receipt not found: {document_id}", 404)
    except PersistenceFailure as exc:
        return _error(str(exc), 500)
    return JSONResponse({"status": "deleted", "id": document_id})


async def _workflow_request(document_id: str, request: Request) -> SplitWorkflowRequest:
    body = await _json_body(request)
    return SplitWorkflowRequest(document_id=document_id, split_request=split_request_from_dict(body))


@app.post("/receipts_db/{document_id}/split")
async def split_stored_receipt(
    document_id: str,
    request: Request,
    store: DocumentStore = Depends(get_store),
    settings: SplitSettings = Depends(get_settings),
) -> JSONResponse:
    try:
        workflow_request = await _workflow_request(document_id, request)
    except (ValueError, KeyError) as exc:
        return _error(f"Malformed split request: {exc}", 400)

    result = run_split(workflow_request, store=store, settings=settings)
    if result.calculation is None:
        return _error(result.error or result.status, _FAILURE_CODES.get(result.status, 500))
    calculation = result.calculation
    return JSONResponse(split_response_to_dict(calculation.split_id, calculation.outcome, calculation.validation))


@app.post("/receipts_db/{document_id}/finalize")
async def finalize_receipt(
    document_id: str,
    request: Request,
    store: DocumentStore = Depends(get_store),
    settings: SplitSettings = Depends(get_settings),
) -> JSONResponse:
    """Same contract as split; persists the snapshot and advances status on success."""
    try:
        workflow_request = await _workflow_request(document_id, request)
    except (ValueError, KeyError) as exc:
        return _error(f"Malformed split request: {exc}", 400)

    result = run_finalize(workflow_request, store=store, settings=settings)
    if result.status in ("finalized", "not_saved") and result.calculation is not None:
        calculation = result.calculation
        body = split_response_to_dict(calculation.split_id, calculation.outcome, calculation.validation)
        saved = result.status == "finalized"
        body["status"] = result.document.status.value if result.document is not None else None
        body["saved"] = saved
        if result.warning:
            body["warning"] = result.warning
        return JSONResponse(body)

    status_code = _FAILURE_CODES.get(result.status, 500)
    if result.calculation is None:
        return _error(result.error or result.status, status_code)
    calculation = result.calculation
    body = split_response_to_dict(calculation.split_id, calculation.outcome, calculation.validation)
    body.update({"status": "error", "message": result.error, "saved": False})
    return JSONResponse(body, status_code=status_code)


@app.get("/receipts_db/{document_id}/reopen")
async def reopen_receipt(document_id: str, store: DocumentStore = Depends(get_store)) -> JSONResponse:
    """Rehydrate people and rules of a finalized receipt."""
    result = run_reopen(document_id, store=store)
    if result.session is None:
        return _error(result.error or result.status, _FAILURE_CODES.get(result.status, 500))
    body = split_request_to_dict(result.session.to_split_request())
    body["receipt_data"] = receipt_to_dict(result.session.receipt)
    return JSONResponse(body)


# --- extraction proxy ---


@app.post("/extract_receipt/extract-receipt")
async def extract_receipt(
    request: Request,
    store: DocumentStore = Depends(get_store),
    client: httpx.AsyncClient = Depends(get_extraction_client),
) -> JSONResponse:
    """Forward item and charge images to the extraction service.

    When a ``document_id`` form field is present the extracted receipt is
    recorded on that stored document.
    """
    form = await request.form()
    items_images = [value for value in form.getlist("items_images") if hasattr(value, "read")]
    charges_image = form.get("charges_image")
    if not items_images or charges_image is None or not hasattr(charges_image, "read"):
        return _error("items_images and charges_image are required", 400)

    files: list[tuple[str, tuple[str, bytes, str]]] = []
    for upload in items_images:
        files.append(("items_images", (upload.filename or "items.jpg", await upload.read(), upload.content_type)))
    files.append(
        (
            "charges_image",
            (charges_image.filename or "charges.jpg", await charges_image.read(), charges_image.content_type),
        )
    )

    service_url = extraction_service_url()
    try:
        response = await client.post(f"{service_url}/extract-receipt", files=files)
        if response.status_code != 200:
            logger.error(f"Extraction service error: {response.status_code}")
            raise ExtractionFailure(f"Extraction service error: {response.status_code}")
        extraction = parse_extraction_payload(response.json())
    except httpx.RequestError as e:
        logger.error(f"Extraction service unavailable: {e}")
        return JSONResponse({"success": False, "receipt": None, "errors": [str(e)]}, status_code=502)
    except (ExtractionFailure, ValueError) as e:
        return JSONResponse({"success": False, "receipt": None, "errors": [str(e)]}, status_code=502)

    status = ReceiptStatus.NEEDS_REVIEW if extraction.needs_review else ReceiptStatus.EXTRACTED
    body: dict[str, Any] = {
        "success": True,
        "receipt": receipt_to_dict(extraction.receipt),
        "status": status.value,
        "errors": extraction.errors,
    }

    document_id = form.get("document_id")
    if isinstance(document_id, str) and document_id:
        stored = store_extraction(store, document_id, extraction)
        body["document_id"] = document_id
        body["saved"] = stored.status in ("extracted", "needs_review")
        if stored.warning:
            body["warning"] = stored.warning
        elif stored.error:
            body["warning"] = stored.error
    return JSONResponse(body)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
