from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from splitz.cli.main import main
from splitz.domain.lifecycle import record_extraction
from splitz.domain.receipt import LineItem, Receipt, ReceiptStatus, Taxable
from splitz.runtime.document_store import DocumentStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

SPLIT_REQUEST = {
    "people": [{"id": "p1", "name": "Alice"}, {"id": "p2", "name": "Bob"}],
    "item_split_rules": [
        {"item_id": "item-1", "method": "EQUAL", "people": ["p1", "p2"]},
        {"item_id": "item-2", "method": "EQUAL", "people": ["p2"]},
    ],
}


def _item(item_id: str, name: str, price: str, taxable: Taxable) -> LineItem:
    return LineItem(
        item_id=item_id,
        name_raw=name,
        quantity=Decimal("1"),
        unit_price=Decimal(price),
        line_subtotal=Decimal(price),
        taxable=taxable,
    )


def _receipt() -> Receipt:
    return Receipt(
        receipt_id="rcpt-1",
        vendor="CORNER GROCER",
        grand_total=Decimal("15.30"),
        line_items=[
            _item("item-1", "BREAD", "4.00", Taxable.NON_TAXABLE),
            _item("item-2", "SOAP", "10.00", Taxable.TAXABLE),
        ],
    )


@pytest.fixture
def document_id() -> str:
    store = DocumentStore()
    document_id = store.create(["items.jpg"], NOW)
    store.save(record_extraction(store.read(document_id), _receipt(), False, NOW))
    return document_id


@pytest.fixture
def request_file(tmp_path):
    path = tmp_path / "request.json"
    path.write_text(json.dumps(SPLIT_REQUEST), encoding="utf-8")
    return path


def test_no_command_prints_help(capsys) -> None:
    assert main([]) == 1
    assert "Receipt splitting CLI" in capsys.readouterr().out


def test_list_without_receipts(capsys) -> None:
    assert main(["list"]) == 0
    assert "No receipts stored." in capsys.readouterr().out


def test_list_and_show(document_id, capsys) -> None:
    assert main(["list"]) == 0
    assert document_id in capsys.readouterr().out

    assert main(["show", document_id]) == 0
    out = capsys.readouterr().out
    assert "CORNER GROCER" in out
    assert "item-2: SOAP - $10.00 [TAXABLE]" in out


def test_show_missing_receipt(capsys) -> None:
    assert main(["show", "abc123"]) == 1
    assert "Receipt not found" in capsys.readouterr().out


def test_split_prints_shares(document_id, request_file, capsys) -> None:
    assert main(["split", document_id, str(request_file)]) == 0
    out = capsys.readouterr().out
    assert "Owes:      $2.00" in out
    assert "Owes:      $13.30" in out
    assert DocumentStore().read(document_id).status is ReceiptStatus.EXTRACTED


def test_split_with_bad_request_file(document_id, tmp_path, capsys) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("not json", encoding="utf-8")
    assert main(["split", document_id, str(bad)]) == 1
    assert "not valid JSON" in capsys.readouterr().out


def test_finalize_then_reopen(document_id, request_file, capsys) -> None:
    assert main(["finalize", document_id, str(request_file)]) == 0
    assert "finalized" in capsys.readouterr().out
    assert DocumentStore().read(document_id).status is ReceiptStatus.FINALIZED

    assert main(["reopen", document_id]) == 0
    out = capsys.readouterr().out
    assert "People: Alice, Bob" in out
    assert "SOAP: Bob" in out


def test_finalize_rejected_exits_nonzero(document_id, tmp_path, capsys) -> None:
    partial = tmp_path / "partial.json"
    partial.write_text(json.dumps({**SPLIT_REQUEST, "item_split_rules": SPLIT_REQUEST["item_split_rules"][:1]}))

    assert main(["finalize", document_id, str(partial)]) == 1
    assert "Cannot finalize" in capsys.readouterr().out
    assert DocumentStore().read(document_id).status is ReceiptStatus.EXTRACTED


def test_review_applies_edits(document_id, tmp_path) -> None:
    edits = tmp_path / "edits.json"
    edits.write_text(json.dumps({"items": {"item-1": {"price": "5.00"}}}), encoding="utf-8")

    assert main(["review", document_id, str(edits)]) == 0
    assert DocumentStore().read(document_id).receipt.line_items[0].line_subtotal == Decimal("5.00")


def test_export_csv_to_stdout_and_file(document_id, request_file, tmp_path, capsys) -> None:
    assert main(["export-csv", document_id, str(request_file)]) == 0
    assert '"Alice (Pays)","Bob (Pays)"' in capsys.readouterr().out

    output = tmp_path / "out.csv"
    assert main(["export-csv", document_id, "-o", str(output)]) == 0
    assert output.read_text(encoding="utf-8").startswith('"Item Name"')


def test_import_csv_requires_save_to_persist(document_id, tmp_path, capsys) -> None:
    csv_path = tmp_path / "items.csv"
    csv_path.write_text('"Item Name","Qty","Price","Alice"\n"Eggs","1","4.50","X"\n', encoding="utf-8")

    assert main(["import-csv", document_id, str(csv_path)]) == 0
    assert "Not saved" in capsys.readouterr().out
    assert len(DocumentStore().read(document_id).receipt.line_items) == 2

    assert main(["import-csv", document_id, str(csv_path), "--save"]) == 0
    assert [item.name_raw for item in DocumentStore().read(document_id).receipt.line_items] == ["Eggs"]


def test_extract_missing_image(tmp_path, capsys) -> None:
    assert main(["extract", str(tmp_path / "items.jpg"), "--charges", str(tmp_path / "charges.jpg")]) == 1
    assert "Receipt image not found" in capsys.readouterr().out


def test_extract_keep_previous_reports_stored_receipt(document_id, tmp_path, monkeypatch, capsys) -> None:
    from splitz.application.receipts import extraction
    from splitz.runtime.extraction import ExtractionFailure

    def unavailable(items_images, charges_image, service_url):
        raise ExtractionFailure("service unavailable")

    monkeypatch.setattr(extraction, "call_extraction_service", unavailable)
    items = tmp_path / "items.jpg"
    items.write_bytes(b"items")
    charges = tmp_path / "charges.jpg"
    charges.write_bytes(b"charges")
    argv = ["extract", str(items), "--charges", str(charges), "--id", document_id]

    assert main(argv) == 1
    assert "unchanged" not in capsys.readouterr().out

    assert main([*argv, "--keep-previous"]) == 1
    assert f"Stored receipt {document_id} is unchanged (2 item(s))." in capsys.readouterr().out
