"""
webapp.py — JSON API around the tender importer and eligibility engine.

Run:  python webapp.py
API:  http://localhost:5000/api/...

Uploads are imported on a background thread; poll /api/status for progress.
"""

import importlib
import logging
import threading
from datetime import date, datetime
from pathlib import Path

import yaml
from flask import Flask, abort, jsonify, request, send_file
from werkzeug.utils import secure_filename

import config
from ingestion.importer import TenderImporter
from ingestion.models import Requirements
from ingestion.reporter import CallbackReporter, LoggingReporter, ProgressEvent
from output_engine.excel_exporter import export_to_excel
from scoring.eligibility import rank_tenders, rescore_all, score
from storage.tender_store import ImportBatchStore, JsonFileTenderStore

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s — %(message)s")
log = logging.getLogger("webapp")

app = Flask(__name__)

# ── Global state ──────────────────────────────────────────────────────────────
store = JsonFileTenderStore(config.STORE_FILE)
batches = ImportBatchStore(limit=config.MAX_BATCH_HISTORY)
profile = config.load_company_profile()

import_status: str = "idle"     # idle | running | done | error
import_error: str = ""
current_batch_id: str = ""
last_event: dict = {}
_cancel_event = threading.Event()
_worker: threading.Thread = None
_lock = threading.Lock()

_PROFILE_FILE = Path(config.PROFILE_FILE)

EDITABLE_FIELDS = ("title", "organization", "location", "reference_number",
                   "value", "deadline", "description", "link", "requirements")

# ── Serialiser ────────────────────────────────────────────────────────────────

def _days_left(deadline) -> int | None:
    """Return days until deadline, or None if unknown. Negative = already passed."""
    if deadline is None:
        return None
    return (deadline - date.today()).days


def _to_dict(t, rank: int = None) -> dict:
    data = t.to_dict()
    data.update({
        "overall_score": t.overall_score,
        "value_display": t.display_value(),
        "days_left": _days_left(t.deadline),
    })
    if rank is not None:
        data["rank"] = rank
    return data

# ── Background import ─────────────────────────────────────────────────────────

def _on_progress(event: ProgressEvent) -> None:
    global last_event, current_batch_id
    with _lock:
        last_event = event.to_dict()
        current_batch_id = event.batch_id


def _do_import(path: Path, file_name: str, uploaded_by: str) -> None:
    global import_status, import_error
    try:
        importer = TenderImporter(
            store,
            batches=batches,
            profile=profile,
            reporter=CallbackReporter(_on_progress, also_log=LoggingReporter()),
            cancel_event=_cancel_event,
        )
        batch = importer.import_workbook(path, uploaded_by=uploaded_by, file_name=file_name)
        with _lock:
            import_status = "done"
            import_error = "; ".join(batch.errors[:3]) if batch.status == "failed" else ""
    except Exception as exc:
        log.error("Import failed: %s", exc, exc_info=True)
        with _lock:
            import_status = "error"
            import_error = str(exc)
    finally:
        # Uploads are not kept once imported
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            log.warning("Could not remove upload %s: %s", path, exc)

# ── Routes: tenders ───────────────────────────────────────────────────────────

@app.get("/api/tenders")
def api_tenders():
    min_score = request.args.get("min_score", default=0, type=int)
    ranked = rank_tenders(store.list(), min_score=min_score)
    return jsonify([_to_dict(t, i + 1) for i, t in enumerate(ranked)])


@app.get("/api/tenders/<tender_id>")
def api_tender(tender_id: str):
    tender = store.get(tender_id)
    if tender is None:
        abort(404)
    return jsonify(_to_dict(tender))


@app.patch("/api/tenders/<tender_id>")
def api_edit_tender(tender_id: str):
    """Explicit user edit. The score is recomputed from scratch afterwards."""
    tender = store.get(tender_id)
    if tender is None:
        abort(404)
    body = request.get_json(force=True) or {}

    fields = {k: v for k, v in body.items() if k in EDITABLE_FIELDS}
    try:
        if "value" in fields:
            fields["value"] = int(fields["value"])
            if fields["value"] < 0:
                raise ValueError("value must be non-negative")
        if "deadline" in fields:
            fields["deadline"] = date.fromisoformat(fields["deadline"]) if fields["deadline"] else None
        if "requirements" in fields:
            merged = tender.requirements.to_dict()
            merged.update(fields["requirements"] or {})
            fields["requirements"] = Requirements.from_dict(merged)
        if "title" in fields and not str(fields["title"]).strip():
            raise ValueError("title cannot be empty")
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400

    updated = store.update(tender_id, **fields)
    updated = store.update(tender_id, score=score(updated, profile))
    return jsonify(_to_dict(updated))


@app.delete("/api/tenders/<tender_id>")
def api_delete_tender(tender_id: str):
    if not store.delete(tender_id):
        abort(404)
    return jsonify({"status": "deleted"})

# ── Routes: imports ───────────────────────────────────────────────────────────

@app.post("/api/imports")
def api_upload():
    global import_status, import_error, _worker
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return jsonify({"error": "no file uploaded"}), 400
    if not upload.filename.lower().endswith(".xlsx"):
        return jsonify({"error": "only .xlsx workbooks are supported"}), 400

    with _lock:
        if import_status == "running":
            return jsonify({"error": "already running"}), 409
        import_status = "running"
        import_error = ""

    upload_dir = Path(config.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d%H%M%S")
    path = upload_dir / f"{stamp}_{secure_filename(upload.filename)}"
    upload.save(path)

    _cancel_event.clear()
    _worker = threading.Thread(
        target=_do_import,
        args=(path, upload.filename, request.form.get("uploaded_by", "")),
        daemon=True,
    )
    _worker.start()
    return jsonify({"status": "started"}), 202


@app.post("/api/imports/cancel")
def api_cancel_import():
    with _lock:
        if import_status != "running":
            return jsonify({"error": "no import running"}), 409
        _cancel_event.set()
    return jsonify({"status": "cancelling"}), 202


@app.get("/api/imports")
def api_batches():
    return jsonify([b.to_dict() for b in batches.list()])


@app.get("/api/imports/<batch_id>")
def api_batch(batch_id: str):
    batch = batches.get(batch_id)
    if batch is None:
        abort(404)
    return jsonify(batch.to_dict())


@app.get("/api/status")
def api_status():
    with _lock:
        return jsonify({
            "status":   import_status,
            "error":    import_error,
            "batch_id": current_batch_id,
            "progress": last_event,
        })

# ── Routes: profile & scoring ─────────────────────────────────────────────────

@app.get("/api/profile")
def api_get_profile():
    return jsonify(profile.to_dict())


@app.post("/api/profile")
def api_save_profile():
    """Replace the company profile, write company_profile.yaml, rescore everything."""
    global profile
    body = request.get_json(force=True) or {}

    try:
        with open(_PROFILE_FILE, encoding="utf-8") as f:
            existing = yaml.safe_load(f) or {}
    except OSError:
        existing = {}

    company = {
        "name":             body.get("company_name", ""),
        "annual_turnover":  body.get("turnover", body.get("turnover_amount", 0)),
        "headquarters":     body.get("headquarters", ""),
        "established_year": body.get("established_year"),
        "business_sectors": list(body.get("business_sectors", [])),
        "project_types":    list(body.get("project_types", [])),
        "certifications":   list(body.get("certifications", [])),
    }
    existing["company"] = company

    try:
        with open(_PROFILE_FILE, "w", encoding="utf-8") as f:
            yaml.dump(existing, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
    except OSError as exc:
        return jsonify({"error": f"Could not write profile: {exc}"}), 500

    profile = config.load_company_profile({
        "company_name":     company["name"],
        "turnover":         company["annual_turnover"],
        "headquarters":     company["headquarters"],
        "established_year": company["established_year"],
        "business_sectors": company["business_sectors"],
        "project_types":    company["project_types"],
        "certifications":   company["certifications"],
    })

    # Reload config so the CLI and later imports see the same values
    try:
        importlib.reload(config)
    except Exception as exc:
        log.warning("Config reload failed: %s", exc)

    rescored = rescore_all(store, profile)
    return jsonify({"status": "saved", "rescored": rescored})


@app.post("/api/rescore")
def api_rescore():
    return jsonify({"rescored": rescore_all(store, profile)})


@app.get("/api/export")
def api_export():
    min_score = request.args.get("min_score", default=config.DEFAULT_MIN_SCORE, type=int)
    all_tenders = rank_tenders(store.list())
    path = export_to_excel(rank_tenders(all_tenders, min_score=min_score), all_tenders)
    return send_file(path, as_attachment=True)


if __name__ == "__main__":
    log.info("Tender API running at http://localhost:5000")
    app.run(host="127.0.0.1", port=5000, debug=False)
