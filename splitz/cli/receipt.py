"""Receipt command handlers used by the unified CLI."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn

from splitz.runtime import get_logger

if TYPE_CHECKING:
    from splitz.application.receipts.split import SplitCalculation
    from splitz.domain.rules import SplitRequest

logger = get_logger(__name__)


def _load_json(path: str) -> dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        print(f"Error: file not found: {path}")
        sys.exit(1)
    except json.JSONDecodeError as exc:
        print(f"Error: {path} is not valid JSON: {exc}")
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"Error: {path} must contain a JSON object")
        sys.exit(1)
    return data


def _load_split_request(path: str) -> SplitRequest:
    from splitz.domain.serialization import split_request_from_dict

    try:
        return split_request_from_dict(_load_json(path))
    except (ValueError, KeyError) as exc:
        print(f"Error: malformed split request in {path}: {exc}")
        sys.exit(1)


def _fail(error: str | None) -> NoReturn:
    logger.error("%s", error)
    print(f"Error: {error}")
    sys.exit(1)


def _print_calculation(calculation: SplitCalculation) -> None:
    outcome = calculation.outcome
    validation = calculation.validation

    print("\n" + "=" * 60)
    print(f"SPLIT {calculation.split_id}")
    print("=" * 60)
    for share in outcome.shares:
        print(f"{share.display_name}")
        print(f"  Items:     ${share.item_total:.2f}  (tax ${share.item_tax:.2f})")
        if share.fees:
            print(f"  Fees:      ${share.fee_total:.2f}")
        if share.discounts:
            print(f"  Discounts: -${share.discount_credit:.2f}")
        print(f"  Owes:      ${share.amount_owed:.2f}")
    print("-" * 60)
    print(f"Receipt total:    ${validation.receipt_total:.2f}")
    print(f"Calculated total: ${validation.calculated_grand_total:.2f}")
    print(f"Split total:      ${validation.split_total:.2f}  (difference {validation.difference:+.2f})")
    if not validation.can_finalize:
        for flag in validation.flags:
            print(f"  Mismatch: {flag.field} off by {flag.difference:+.2f}")
    for error in outcome.errors:
        print(f"  Warning: {error}")
    print("=" * 60)


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI split server."""
    import uvicorn

    from splitz.application import split_server as server

    print(f"Starting split server on {args.host}:{args.port}")
    print(f"Endpoints: http://{args.host}:{args.port}/split | /receipts_db/...")
    print("Press Ctrl+C to stop")

    uvicorn.run(server.app, host=args.host, port=args.port)


def cmd_list(args: argparse.Namespace) -> None:
    """List stored receipts, newest first."""
    from splitz.application.receipts.listing import run_list_documents

    listing = run_list_documents()
    if not listing.documents:
        print("No receipts stored.")
        return

    print(f"\n{'ID':<34} {'Vendor':<24} {'Total':>10}  {'Status':<13} Uploaded")
    for summary in listing.documents:
        total = f"${summary.grand_total:.2f}" if summary.grand_total is not None else "-"
        vendor = summary.vendor or "-"
        print(
            f"{summary.document_id:<34} {vendor[:24]:<24} {total:>10}  {summary.status.value:<13} "
            f"{summary.upload_timestamp:%Y-%m-%d %H:%M}"
        )


def cmd_show(args: argparse.Namespace) -> None:
    """Print one stored receipt."""
    from splitz.runtime.document_store import DocumentNotFound, DocumentStore, PersistenceFailure

    try:
        document = DocumentStore().read(args.id)
    except DocumentNotFound:
        _fail(f"Receipt not found: {args.id}")
    except PersistenceFailure as exc:
        _fail(str(exc))

    print(f"Receipt {document.document_id} [{document.status.value}]")
    print(f"Files: {', '.join(document.filenames) or '-'}")
    receipt = document.receipt
    if receipt is None:
        print("No extracted data yet.")
        return

    print(f"Vendor: {receipt.vendor or 'UNKNOWN'}")
    print(f"Grand total: ${receipt.grand_total:.2f}")
    print(f"\nItems ({len(receipt.line_items)}):")
    for item in receipt.line_items:
        qty_str = f" x{item.quantity}" if item.quantity != 1 else ""
        print(f"  {item.item_id}: {item.display_name}{qty_str} - ${item.line_subtotal:.2f} [{item.taxable.value}]")
    for fee in receipt.fees:
        print(f"  {fee.fee_id}: {fee.category} - ${fee.amount:.2f} [{fee.taxable.value}]")
    for discount in receipt.discounts:
        print(f"  {discount.discount_id}: {discount.label} - -${discount.amount:.2f}")

    if document.split_results is not None:
        results = document.split_results
        print(f"\nFinalized split {results.split_id}:")
        for share in results.shares:
            print(f"  {share.display_name}: ${share.amount_owed:.2f}")


def cmd_extract(args: argparse.Namespace) -> None:
    """Send receipt images to the extraction service and store the result."""
    from splitz.application.receipts.extraction import ReceiptExtractionRequest, run_receipt_extraction
    from splitz.runtime.settings import extraction_service_url

    result = run_receipt_extraction(
        ReceiptExtractionRequest(
            items_images=[Path(image) for image in args.items_images],
            charges_image=Path(args.charges),
            service_url=args.extraction_url or extraction_service_url(),
            document_id=args.id,
            preserve_on_failure=args.keep_previous,
        )
    )

    if result.status in ("file_not_found", "not_found", "invalid_state"):
        _fail(result.error)
    if result.status == "extraction_failed":
        logger.error("%s", result.error)
        print(f"Extraction failed: {result.error}")
        if result.receipt is not None:
            print(f"Stored receipt {result.document_id} is unchanged ({len(result.receipt.line_items)} item(s)).")
        print("Make sure the extraction service is running before extracting receipts.")
        sys.exit(1)

    receipt = result.receipt
    if receipt is not None:
        print(f"Extracted {len(receipt.line_items)} item(s), grand total ${receipt.grand_total:.2f}")
    for error in result.errors or []:
        print(f"  Extraction note: {error}")
    if result.status == "not_saved":
        print(result.warning)
        sys.exit(1)
    print(f"Receipt {result.document_id} is {result.status.replace('_', ' ')}.")


def cmd_review(args: argparse.Namespace) -> None:
    """Apply reviewer edits from a JSON file."""
    from splitz.application.receipts.review import ReviewEditsRequest, run_review_edits
    from splitz.domain.serialization import review_edits_from_dict

    try:
        item_edits, fee_edits, discount_edits = review_edits_from_dict(_load_json(args.edits))
    except ValueError as exc:
        _fail(str(exc))

    result = run_review_edits(
        ReviewEditsRequest(
            document_id=args.id,
            item_edits=item_edits,
            fee_edits=fee_edits,
            discount_edits=discount_edits,
        )
    )
    if result.status != "updated":
        _fail(result.error)
    print(f"Updated receipt {args.id}.")


def cmd_split(args: argparse.Namespace) -> None:
    """Calculate shares for a stored receipt."""
    from splitz.application.receipts.split import SplitWorkflowRequest, run_split

    result = run_split(SplitWorkflowRequest(document_id=args.id, split_request=_load_split_request(args.request)))
    if result.calculation is None:
        _fail(result.error)
    _print_calculation(result.calculation)


def cmd_finalize(args: argparse.Namespace) -> None:
    """Calculate, validate and persist the split snapshot."""
    from splitz.application.receipts.split import SplitWorkflowRequest, run_finalize

    result = run_finalize(SplitWorkflowRequest(document_id=args.id, split_request=_load_split_request(args.request)))
    if result.calculation is not None:
        _print_calculation(result.calculation)

    if result.status == "finalized":
        print(f"Receipt {args.id} finalized.")
        return
    if result.status == "not_saved":
        print(result.warning)
        sys.exit(1)
    _fail(result.error)


def cmd_reopen(args: argparse.Namespace) -> None:
    """Show people and assignments restored from a finalized split."""
    from splitz.application.receipts.split import run_reopen

    result = run_reopen(args.id)
    if result.session is None:
        _fail(result.error)

    session = result.session
    print(f"People: {', '.join(person.display_name for person in session.people)}")
    for item in session.receipt.line_items:
        names = [
            person.display_name
            for pid in session.assigned_people(item.item_id)
            if (person := session.find_person(pid)) is not None
        ]
        overrides = session.overrides.get(item.item_id, {})
        override_str = f" (fixed: {', '.join(f'{pid}=${amount:.2f}' for pid, amount in overrides.items())})"
        print(f"  {item.display_name}: {', '.join(names) or '-'}{override_str if overrides else ''}")


def cmd_export_csv(args: argparse.Namespace) -> None:
    """Export a receipt's split as CSV."""
    from splitz.application.receipts.csv_transfer import CsvExportRequest, run_csv_export

    split_request = _load_split_request(args.request) if args.request else None
    result = run_csv_export(
        CsvExportRequest(
            document_id=args.id,
            split_request=split_request,
            output_path=Path(args.output) if args.output else None,
        )
    )
    if result.status != "exported":
        _fail(result.error)
    if result.output_path is not None:
        print(f"Wrote {result.output_path}")
    else:
        sys.stdout.write(result.csv_text or "")


def cmd_import_csv(args: argparse.Namespace) -> None:
    """Replace a receipt's items and assignments from a CSV file."""
    from splitz.application.receipts.csv_transfer import CsvImportRequest, run_csv_import

    result = run_csv_import(CsvImportRequest(document_id=args.id, csv_path=Path(args.csv_file), save=args.save))
    if result.session is None:
        _fail(result.error)
    if result.status != "imported":
        print(f"Warning: {result.error}")

    session = result.session
    print(f"Imported {len(session.receipt.line_items)} item(s) for {len(session.people)} people.")
    if not args.save:
        print("Not saved (use --save to replace the stored items).")


def cmd_classify(args: argparse.Namespace) -> None:
    """Run the taxability classifier over a stored receipt."""
    from splitz.application.receipts.review import TaxabilityClassificationRequest, run_taxability_classification
    from splitz.domain.receipt import Taxable
    from splitz.runtime.document_store import DocumentNotFound, DocumentStore, PersistenceFailure
    from splitz.runtime.settings import classifier_service_url

    locked: tuple[str, ...] = ()
    if args.keep_reviewed:
        try:
            document = DocumentStore().read(args.id)
        except (DocumentNotFound, PersistenceFailure) as exc:
            _fail(f"Cannot read receipt {args.id}: {exc}")
        if document.receipt is not None:
            locked = tuple(
                item.item_id for item in document.receipt.line_items if item.taxable is not Taxable.UNKNOWN
            )

    result = run_taxability_classification(
        TaxabilityClassificationRequest(
            document_id=args.id,
            service_url=args.classifier_url or classifier_service_url(),
            locked_item_ids=locked,
        )
    )
    if result.status != "classified":
        _fail(result.error)
    print(f"Taxability changed on {len(result.changed_item_ids)} item(s).")
    for item_id in result.changed_item_ids:
        print(f"  {item_id}")
