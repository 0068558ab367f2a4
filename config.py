"""
config.py — reads all settings from company_profile.yaml and exposes them
as the constants that the rest of the application uses.

You should NOT need to edit this file.
Edit company_profile.yaml instead.
"""

import os
import sys

import yaml

from ingestion.models import CompanyProfile
from ingestion.normalizer import parse_inr_amount

# ── Load company_profile.yaml ─────────────────────────────────────────────────

_HERE = os.path.dirname(os.path.abspath(__file__))
PROFILE_FILE = os.path.join(_HERE, "company_profile.yaml")

if not os.path.exists(PROFILE_FILE):
    print(
        "ERROR: company_profile.yaml not found.\n"
        f"Expected it at: {PROFILE_FILE}\n"
        "Please make sure the file exists and try again."
    )
    sys.exit(1)

with open(PROFILE_FILE, encoding="utf-8") as _f:
    _p = yaml.safe_load(_f) or {}

# ── Build the company profile dict ───────────────────────────────────────────

_company = _p.get("company", {}) or {}

COMPANY_PROFILE = {
    "company_name":     _company.get("name", ""),
    "turnover":         _company.get("annual_turnover", 0),      # "5 cr", "50000000", …
    "business_sectors": _company.get("business_sectors", []) or [],
    "project_types":    _company.get("project_types", []) or [],
    "certifications":   _company.get("certifications", []) or [],
    "headquarters":     _company.get("headquarters", "") or "",
    "established_year": _company.get("established_year"),
}


def load_company_profile(data: dict = None) -> CompanyProfile:
    """Build the active CompanyProfile from a profile dict (default: the YAML)."""
    data = COMPANY_PROFILE if data is None else data
    year = data.get("established_year")
    return CompanyProfile(
        company_name=str(data.get("company_name") or ""),
        turnover_amount=parse_inr_amount(data.get("turnover")),
        business_sectors=list(data.get("business_sectors") or []),
        project_types=list(data.get("project_types") or []),
        certifications=list(data.get("certifications") or []),
        headquarters=str(data.get("headquarters") or ""),
        established_year=int(year) if year else None,
    )

# ── Import behaviour ──────────────────────────────────────────────────────────

_imp = _p.get("import", {}) or {}

DEFAULT_DEADLINE_DAYS = int(_imp.get("default_deadline_days", 30))
HEADER_PROBE_ROWS     = int(_imp.get("header_probe_rows", 3))
PROGRESS_EVERY        = max(int(_imp.get("progress_every", 25)), 1)
MAX_BATCH_ERRORS      = 500
MAX_BATCH_HISTORY     = 200

# ── Scoring & output ──────────────────────────────────────────────────────────

DEFAULT_MIN_SCORE = int(_p.get("minimum_eligibility_score", 50))

OUTPUT_DIR      = "reports"
OUTPUT_FILENAME = "eligibility_{date}.xlsx"
STORE_FILE      = os.getenv("TENDER_STORE_FILE", os.path.join("data", "tenders.json"))
UPLOAD_DIR      = "uploads"
