from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from splitz.domain.receipt import Receipt, ReceiptStatus
from splitz.runtime.document_store import DocumentNotFound, DocumentStore, PersistenceFailure

T0 = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def _receipt(vendor: str = "GROCER") -> Receipt:
    return Receipt(receipt_id="r1", grand_total=Decimal("12.34"), vendor=vendor)


def test_create_and_read(tmp_path) -> None:
    store = DocumentStore(tmp_path / "db")
    document_id = store.create(["items.jpg", "charges.jpg"], T0)

    document = store.read(document_id)

    assert document.document_id == document_id
    assert document.filenames == ["items.jpg", "charges.jpg"]
    assert document.status is ReceiptStatus.UPLOADED
    assert document.receipt is None
    assert document.upload_timestamp == T0


def test_update_replaces_receipt_data(tmp_path) -> None:
    store = DocumentStore(tmp_path)
    document_id = store.create(["a.jpg"], T0)

    store.update(document_id, _receipt())

    assert store.read(document_id).receipt == _receipt()
    stored = json.loads((tmp_path / f"{document_id}.json").read_text())
    assert stored["receipt_data"]["grand_total"] == "12.34"


def test_save_writes_status_and_receipt_together(tmp_path) -> None:
    store = DocumentStore(tmp_path)
    document_id = store.create(["a.jpg"], T0)
    document = replace(store.read(document_id), status=ReceiptStatus.EXTRACTED, receipt=_receipt())

    store.save(document)

    reread = store.read(document_id)
    assert reread.status is ReceiptStatus.EXTRACTED
    assert reread.receipt == _receipt()
    assert not list(tmp_path.glob(".tmp-*"))


def test_missing_documents(tmp_path) -> None:
    store = DocumentStore(tmp_path)
    with pytest.raises(DocumentNotFound):
        store.read("0123abcd")
    with pytest.raises(DocumentNotFound):
        store.delete("0123abcd")
    with pytest.raises(DocumentNotFound):
        store.update("0123abcd", _receipt())


def test_ids_cannot_escape_the_directory(tmp_path) -> None:
    store = DocumentStore(tmp_path / "db")
    with pytest.raises(DocumentNotFound):
        store.read("../secrets")


def test_corrupt_document_is_a_persistence_failure(tmp_path) -> None:
    store = DocumentStore(tmp_path)
    (tmp_path / "abcdef.json").write_text("{not json")
    with pytest.raises(PersistenceFailure):
        store.read("abcdef")


def test_document_without_upload_timestamp_is_a_persistence_failure(tmp_path) -> None:
    store = DocumentStore(tmp_path)
    kept = store.create(["a.jpg"], T0)
    (tmp_path / "abcdef.json").write_text(json.dumps({"id": "abcdef", "upload_timestamp": None}))

    with pytest.raises(PersistenceFailure):
        store.read("abcdef")
    assert [summary.document_id for summary in store.list()] == [kept]


def test_delete(tmp_path) -> None:
    store = DocumentStore(tmp_path)
    document_id = store.create([], T0)
    store.delete(document_id)
    with pytest.raises(DocumentNotFound):
        store.read(document_id)


def test_list_newest_first_and_skips_corrupt_files(tmp_path) -> None:
    store = DocumentStore(tmp_path)
    older = store.create(["old.jpg"], T0)
    newer = store.create(["new.jpg"], T0 + timedelta(days=1))
    store.update(newer, _receipt("BAKERY"))
    (tmp_path / "ffff.json").write_text("{not json")

    summaries = store.list()

    assert [summary.document_id for summary in summaries] == [newer, older]
    assert summaries[0].vendor == "BAKERY"
    assert summaries[0].grand_total == Decimal("12.34")
    assert summaries[1].vendor is None


def test_list_of_missing_directory_is_empty(tmp_path) -> None:
    assert DocumentStore(tmp_path / "nowhere").list() == []


def test_default_directory_follows_project_paths(splitz_home) -> None:
    assert DocumentStore().directory == splitz_home.resolve() / "receipts_db"
