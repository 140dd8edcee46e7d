#!/usr/bin/env python3

import argparse
from collections.abc import Callable, Sequence


def _coerce_exit_code(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


def _run_command(command: Callable[[argparse.Namespace], None], args: argparse.Namespace) -> int:
    """
    Normalize command handlers that call sys.exit().

    This keeps process termination centralized in this module's entrypoint.
    """
    try:
        command(args)
    except SystemExit as exc:
        return _coerce_exit_code(exc.code)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Receipt splitting CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  serve [--host --port]       Start the split server
  list                        List stored receipts
  show <id>                   Show one stored receipt
  extract <images...> --charges <image> [--id <id>] [--keep-previous]
                              Extract receipt data from images
  review <id> <edits.json>    Apply reviewer edits
  classify <id>               Run the taxability classifier
  split <id> <request.json>   Calculate shares
  finalize <id> <request.json>
                              Calculate, validate and freeze the split
  reopen <id>                 Show a finalized split
  export-csv <id> [request.json] [-o file]
  import-csv <id> <file> [--save]

Notes:
  request.json = {"people": [{"id", "name"}], "item_split_rules": [...]}
""",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the split server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")

    subparsers.add_parser("list", help="List stored receipts")

    show_parser = subparsers.add_parser("show", help="Show one stored receipt")
    show_parser.add_argument("id", help="Receipt id")

    extract_parser = subparsers.add_parser("extract", help="Extract receipt data from images")
    extract_parser.add_argument("items_images", nargs="+", help="Images showing item names and prices")
    extract_parser.add_argument("--charges", required=True, help="Image showing fees, taxes and totals")
    extract_parser.add_argument("--id", default=None, help="Existing receipt id (default: create a new one)")
    extract_parser.add_argument("--extraction-url", default=None, help="Extraction service URL")
    extract_parser.add_argument(
        "--keep-previous",
        action="store_true",
        help="On failure, report the receipt data already stored for --id",
    )

    review_parser = subparsers.add_parser("review", help="Apply reviewer edits from a JSON file")
    review_parser.add_argument("id", help="Receipt id")
    review_parser.add_argument("edits", help='JSON file: {"items": {...}, "fees": {...}, "discounts": {...}}')

    classify_parser = subparsers.add_parser("classify", help="Run the taxability classifier")
    classify_parser.add_argument("id", help="Receipt id")
    classify_parser.add_argument(
        "--keep-reviewed",
        action="store_true",
        help="Leave items whose taxability is already set untouched",
    )
    classify_parser.add_argument("--classifier-url", default=None, help="Classifier service URL")

    split_parser = subparsers.add_parser("split", help="Calculate shares")
    split_parser.add_argument("id", help="Receipt id")
    split_parser.add_argument("request", help="Split request JSON file")

    finalize_parser = subparsers.add_parser("finalize", help="Finalize a split")
    finalize_parser.add_argument("id", help="Receipt id")
    finalize_parser.add_argument("request", help="Split request JSON file")

    reopen_parser = subparsers.add_parser("reopen", help="Show a finalized split")
    reopen_parser.add_argument("id", help="Receipt id")

    export_parser = subparsers.add_parser("export-csv", help="Export the split as CSV")
    export_parser.add_argument("id", help="Receipt id")
    export_parser.add_argument(
        "request",
        nargs="?",
        default=None,
        help="Split request JSON file (default: the finalized split)",
    )
    export_parser.add_argument("-o", "--output", default=None, help="Output file (default: stdout)")

    import_parser = subparsers.add_parser("import-csv", help="Replace items and assignments from CSV")
    import_parser.add_argument("id", help="Receipt id")
    import_parser.add_argument("csv_file", help="CSV file to import")
    import_parser.add_argument("--save", action="store_true", help="Persist the imported items")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    from splitz.cli import receipt

    handlers: dict[str, Callable[[argparse.Namespace], None]] = {
        "serve": receipt.cmd_serve,
        "list": receipt.cmd_list,
        "show": receipt.cmd_show,
        "extract": receipt.cmd_extract,
        "review": receipt.cmd_review,
        "classify": receipt.cmd_classify,
        "split": receipt.cmd_split,
        "finalize": receipt.cmd_finalize,
        "reopen": receipt.cmd_reopen,
        "export-csv": receipt.cmd_export_csv,
        "import-csv": receipt.cmd_import_csv,
    }
    handler = handlers.get(args.command)
    if handler is None:
        return 1
    return _run_command(handler, args)


if __name__ == "__main__":
    raise SystemExit(main())
