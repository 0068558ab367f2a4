"""
Shared fixtures. Workbooks are built on the fly with openpyxl so the tests
exercise the same hyperlink handling a real upload goes through.
"""

import sys
from pathlib import Path

import openpyxl
import pytest

# Make sure the project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ingestion.models import CompanyProfile  # noqa: E402
from storage.tender_store import ImportBatchStore, InMemoryTenderStore  # noqa: E402


@pytest.fixture
def make_workbook(tmp_path):
    """
    make_workbook({"Sheet": [[header...], [row...]]}, links={("Sheet", "A2"): url})
    → path of a saved .xlsx
    """
    counter = {"n": 0}

    def _make(sheets, links=None, name=None):
        counter["n"] += 1
        wb = openpyxl.Workbook()
        wb.remove(wb.active)
        for sheet_name, rows in sheets.items():
            ws = wb.create_sheet(sheet_name)
            for row in rows:
                ws.append(row)
        for (sheet_name, address), url in (links or {}).items():
            wb[sheet_name][address].hyperlink = url
        path = tmp_path / (name or f"tenders_{counter['n']}.xlsx")
        wb.save(path)
        return path

    return _make


@pytest.fixture
def store():
    return InMemoryTenderStore()


@pytest.fixture
def batches():
    return ImportBatchStore()


@pytest.fixture
def construction_profile():
    return CompanyProfile(
        company_name="Acme Infra",
        turnover_amount=50_000_000,
        business_sectors=["Construction"],
    )
