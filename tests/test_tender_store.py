"""
Tender stores: lookups, the non-negative value rule, JSON persistence.
"""

from datetime import date

import pytest

from ingestion.models import (
    CriterionResult,
    ImportBatch,
    Requirements,
    ScoreBreakdown,
    TenderRecord,
)
from storage.tender_store import ImportBatchStore, JsonFileTenderStore


def test_lookups_ignore_case_and_padding(store):
    rec = store.create(TenderRecord(title="Road Work", reference_number="PWD/1"))
    assert store.find_by_reference(" pwd/1 ") is rec
    assert store.find_by_title("ROAD WORK") is rec
    assert store.find_by_reference("") is None
    assert store.find_by_title("") is None


def test_negative_value_rejected(store):
    with pytest.raises(ValueError):
        store.create(TenderRecord(title="Refund", value=-1))
    rec = store.create(TenderRecord(title="Road Work", value=100))
    with pytest.raises(ValueError):
        store.update(rec.id, value=-100)
    assert store.get(rec.id).value == 100


def test_update_unknown_id(store):
    assert store.update("missing", title="x") is None
    assert store.delete("missing") is False


def test_empty_store_is_truthy(store):
    assert bool(store)


def test_json_store_survives_reload(tmp_path):
    path = tmp_path / "data" / "tenders.json"
    first = JsonFileTenderStore(path)
    rec = TenderRecord(
        title="Road Work",
        reference_number="PWD/1",
        value=50_000_000,
        deadline=date(2025, 8, 14),
        requirements=Requirements(turnover="1 crore", extra={"Quantity": "40"}),
        link="https://portal.example/t/1",
        score=ScoreBreakdown(80, [CriterionResult("turnover", "1 crore", "₹5.00 Cr", True, 80, "ok")]),
    )
    first.create(rec)

    second = JsonFileTenderStore(path)
    loaded = second.get(rec.id)
    assert loaded == rec

    second.delete(rec.id)
    assert JsonFileTenderStore(path).list() == []


def test_batch_store_lists_newest_first():
    batches = ImportBatchStore()
    a = batches.create(ImportBatch(file_name="a.xlsx"))
    b = batches.create(ImportBatch(file_name="b.xlsx"))
    b.started_at = a.started_at.replace(year=a.started_at.year + 1)
    assert [x.file_name for x in batches.list()] == ["b.xlsx", "a.xlsx"]
    assert batches.get(a.id) is a


def test_find_by_title_reference_less(store):
    referenced = store.create(TenderRecord(title="Road Work", reference_number="PWD/1"))
    assert store.find_by_title("road work") is referenced
    assert store.find_by_title("road work", reference_less=True) is None

    bare = store.create(TenderRecord(title="Road Work"))
    assert store.find_by_title("road work", reference_less=True) is bare


def test_batch_store_keeps_recent_history():
    batches = ImportBatchStore(limit=2)
    running = batches.create(ImportBatch(file_name="running.xlsx"))
    done = []
    for name in ("a.xlsx", "b.xlsx", "c.xlsx"):
        batch = ImportBatch(file_name=name, status="completed")
        done.append(batches.create(batch))

    names = {b.file_name for b in batches.list()}
    assert "running.xlsx" in names
    assert len(names) == 2
    assert batches.get(running.id) is running
    assert batches.get(done[-1].id) is not None
