"""
JSON API: tender list and edits, background uploads, profile changes.
"""

import yaml
import pytest

import config
import webapp
from ingestion.models import Requirements, TenderRecord
from scoring.eligibility import score_tender
from storage.tender_store import ImportBatchStore, InMemoryTenderStore


@pytest.fixture
def client(monkeypatch, tmp_path, construction_profile):
    profile_file = tmp_path / "company_profile.yaml"
    profile_file.write_text(yaml.safe_dump({"minimum_eligibility_score": 50}), encoding="utf-8")

    monkeypatch.setattr(webapp, "store", InMemoryTenderStore())
    monkeypatch.setattr(webapp, "batches", ImportBatchStore())
    monkeypatch.setattr(webapp, "profile", construction_profile)
    monkeypatch.setattr(webapp, "_PROFILE_FILE", profile_file)
    monkeypatch.setattr(webapp, "import_status", "idle")
    monkeypatch.setattr(webapp, "import_error", "")
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))

    webapp.app.config["TESTING"] = True
    return webapp.app.test_client()


def _court(profile):
    court = TenderRecord(
        title="Construction of District Court Building",
        reference_number="PWD/77",
        requirements=Requirements(turnover="15 crores"),
    )
    webapp.store.create(score_tender(court, profile))
    return court


def test_list_is_ranked(client, construction_profile):
    _court(construction_profile)
    webapp.store.create(score_tender(TenderRecord(title="Construction of hostel"), construction_profile))

    data = client.get("/api/tenders").get_json()
    assert [(t["rank"], t["overall_score"]) for t in data] == [(1, 100), (2, 65)]
    assert client.get("/api/tenders?min_score=70").get_json()[0]["title"] == "Construction of hostel"


def test_get_unknown_tender(client):
    assert client.get("/api/tenders/nope").status_code == 404


def test_edit_rescores(client, construction_profile):
    court = _court(construction_profile)
    resp = client.patch(f"/api/tenders/{court.id}", json={"requirements": {"turnover": "1 crore"}})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["requirements"]["turnover"] == "1 crore"
    assert body["overall_score"] == 100
    assert webapp.store.get(court.id).overall_score == 100


def test_edit_rejects_bad_values(client, construction_profile):
    court = _court(construction_profile)
    assert client.patch(f"/api/tenders/{court.id}", json={"value": -1}).status_code == 400
    assert client.patch(f"/api/tenders/{court.id}", json={"title": "  "}).status_code == 400
    assert client.patch("/api/tenders/nope", json={"title": "x"}).status_code == 404
    assert webapp.store.get(court.id).value == 0


def test_delete(client, construction_profile):
    court = _court(construction_profile)
    assert client.delete(f"/api/tenders/{court.id}").status_code == 200
    assert client.delete(f"/api/tenders/{court.id}").status_code == 404


def test_upload_runs_in_background(client, make_workbook, tmp_path):
    path = make_workbook(
        {"Tenders": [["Title", "Department", "Turnover"],
                     ["Construction of hostel", "PWD", "1 crore"]]},
        name="hostel.xlsx",
    )
    with open(path, "rb") as f:
        resp = client.post(
            "/api/imports",
            data={"file": (f, "hostel.xlsx"), "uploaded_by": "priya"},
            content_type="multipart/form-data",
        )
    assert resp.status_code == 202
    webapp._worker.join(timeout=10)

    status = client.get("/api/status").get_json()
    assert status["status"] == "done"
    assert status["progress"]["stage"] == "finished"

    batch = client.get(f"/api/imports/{status['batch_id']}").get_json()
    assert batch["rows_imported"] == 1
    assert batch["uploaded_by"] == "priya"
    assert batch["file_name"] == "hostel.xlsx"

    [tender] = webapp.store.list()
    assert tender.organization == "PWD"
    assert tender.overall_score == 100
    assert list((tmp_path / "uploads").iterdir()) == []


def test_upload_validation(client, tmp_path, monkeypatch):
    csv = tmp_path / "t.csv"
    csv.write_text("Title\nRoad\n", encoding="utf-8")
    with open(csv, "rb") as f:
        resp = client.post("/api/imports", data={"file": (f, "t.csv")},
                           content_type="multipart/form-data")
    assert resp.status_code == 400
    assert client.post("/api/imports", data={}, content_type="multipart/form-data").status_code == 400

    monkeypatch.setattr(webapp, "import_status", "running")
    xlsx = tmp_path / "t.xlsx"
    xlsx.write_bytes(b"not really a workbook")
    with open(xlsx, "rb") as f:
        resp = client.post("/api/imports", data={"file": (f, "t.xlsx")},
                           content_type="multipart/form-data")
    assert resp.status_code == 409


def test_cancel_without_running_import(client):
    assert client.post("/api/imports/cancel").status_code == 409


def test_unknown_batch(client):
    assert client.get("/api/imports/nope").status_code == 404


def test_save_profile_rescores_everything(client, construction_profile):
    court = _court(construction_profile)
    assert webapp.store.get(court.id).overall_score == 65

    resp = client.post("/api/profile", json={
        "company_name": "Acme Infra",
        "turnover": "20 crore",
        "business_sectors": ["Construction", "construction "],
    })
    assert resp.get_json() == {"status": "saved", "rescored": 1}
    assert webapp.store.get(court.id).overall_score == 100

    saved = yaml.safe_load(webapp._PROFILE_FILE.read_text(encoding="utf-8"))
    assert saved["minimum_eligibility_score"] == 50
    assert saved["company"]["annual_turnover"] == "20 crore"

    profile = client.get("/api/profile").get_json()
    assert profile["turnover_amount"] == 200_000_000
    assert profile["business_sectors"] == ["Construction"]


def test_cancel_running_import(client, monkeypatch):
    monkeypatch.setattr(webapp, "import_status", "running")
    try:
        assert client.post("/api/imports/cancel").status_code == 202
        assert webapp._cancel_event.is_set()
    finally:
        webapp._cancel_event.clear()
