"""
Excel exporter — writes scored tenders to a formatted .xlsx report.

The workbook has two sheets:
  1. "Eligible Tenders" — tenders at or above the minimum score (best first)
  2. "All Tenders"      — every stored tender, for reference

Colour scheme (fill colour in the Score column):
  80-100: Dark green  — eligible
  60-79:  Green       — likely eligible
  30-59:  Yellow      — partial fit
  0-29:   Red/grey    — not eligible
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List

import openpyxl
from openpyxl.styles import (
    Alignment,
    Border,
    Font,
    PatternFill,
    Side,
)
from openpyxl.utils import get_column_letter

from ingestion.models import TenderRecord
import config

logger = logging.getLogger(__name__)

# ── Colour fills ──────────────────────────────────────────────────────────────
FILL_EXCELLENT = PatternFill("solid", fgColor="1A7A3C")   # Dark green
FILL_GOOD      = PatternFill("solid", fgColor="4CAF50")   # Green
FILL_POSSIBLE  = PatternFill("solid", fgColor="FFC107")   # Amber
FILL_POOR      = PatternFill("solid", fgColor="B0BEC5")   # Grey
FILL_HEADER    = PatternFill("solid", fgColor="1B3A6B")   # Navy blue header
FILL_ALT_ROW   = PatternFill("solid", fgColor="F0F4FF")   # Light blue alt row

FONT_HEADER  = Font(name="Calibri", bold=True, color="FFFFFF", size=11)
FONT_TITLE   = Font(name="Calibri", bold=True, color="1B3A6B", size=10)
FONT_BODY    = Font(name="Calibri", size=10)
FONT_SCORE   = Font(name="Calibri", bold=True, color="FFFFFF", size=10)
FONT_LINK    = Font(name="Calibri", size=10, color="0563C1", underline="single")

THIN_BORDER = Border(
    left=Side(style="thin", color="D0D7E5"),
    right=Side(style="thin", color="D0D7E5"),
    top=Side(style="thin", color="D0D7E5"),
    bottom=Side(style="thin", color="D0D7E5"),
)

LINK_TEXT = "Open ↗"


def _score(t: TenderRecord):
    return t.overall_score if t.overall_score is not None else "—"


def _rupees(t: TenderRecord):
    # Stored in paise; the report shows rupees
    return t.value / 100 if t.value else "—"


def _criteria(t: TenderRecord) -> str:
    return t.score.summary() if t.score else ""


COLUMN_DEFS = [
    # (header,           width, getter)
    ("#",                5,     None),
    ("Score",            8,     _score),
    ("Source",           9,     lambda t: "GeM" if t.source_tag == "gem" else "Non-GeM"),
    ("Reference",        22,    lambda t: t.reference_number),
    ("Title",            48,    lambda t: t.title),
    ("Organization",     28,    lambda t: t.organization),
    ("Location",         18,    lambda t: t.location),
    ("Value (₹)",        16,    _rupees),
    ("Deadline",         14,    lambda t: t.display_deadline()),
    ("Turnover Req.",    20,    lambda t: t.requirements.turnover or "—"),
    ("Criteria",         44,    _criteria),
    ("Link",             12,    lambda t: t.link or ""),
]

WRAPPED = ("Title", "Organization", "Criteria", "Turnover Req.")


def _score_fill(score) -> PatternFill:
    if not isinstance(score, int):
        return FILL_POOR
    if score >= 80:
        return FILL_EXCELLENT
    if score >= 60:
        return FILL_GOOD
    if score >= 30:
        return FILL_POSSIBLE
    return FILL_POOR


def _write_sheet(
    ws,
    tenders: List[TenderRecord],
    title: str,
    run_date: str,
) -> None:
    """Write the tender list into a worksheet."""

    # ── Title row ─────────────────────────────────────────────────────────────
    ws.merge_cells(f"A1:{get_column_letter(len(COLUMN_DEFS))}1")
    title_cell = ws["A1"]
    title_cell.value = f"{title}  |  Run: {run_date}  |  {len(tenders)} result(s)"
    title_cell.font = Font(name="Calibri", bold=True, size=13, color="1B3A6B")
    title_cell.alignment = Alignment(horizontal="center", vertical="center")
    ws.row_dimensions[1].height = 24

    # ── Header row ────────────────────────────────────────────────────────────
    for col_idx, (header, width, _) in enumerate(COLUMN_DEFS, start=1):
        cell = ws.cell(row=2, column=col_idx, value=header)
        cell.font = FONT_HEADER
        cell.fill = FILL_HEADER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    ws.row_dimensions[2].height = 22

    # ── Data rows ─────────────────────────────────────────────────────────────
    for row_idx, tender in enumerate(tenders, start=1):
        excel_row = row_idx + 2
        alt = (row_idx % 2 == 0)

        for col_idx, (header, _, getter) in enumerate(COLUMN_DEFS, start=1):
            value = row_idx if getter is None else getter(tender)

            cell = ws.cell(row=excel_row, column=col_idx)
            cell.border = THIN_BORDER
            cell.font = FONT_BODY
            cell.alignment = Alignment(vertical="center", wrap_text=(header in WRAPPED))

            if alt and header != "Score":
                cell.fill = FILL_ALT_ROW

            if header == "Score":
                cell.fill = _score_fill(value)
                cell.font = FONT_SCORE
                cell.alignment = Alignment(horizontal="center", vertical="center")
            elif header == "Title":
                cell.font = FONT_TITLE
            elif header == "Value (₹)" and not isinstance(value, str):
                cell.number_format = "#,##0.00"

            if header == "Link":
                if value:
                    cell.hyperlink = value
                    cell.font = FONT_LINK
                    value = LINK_TEXT
                else:
                    value = "—"
            cell.value = value

        ws.row_dimensions[excel_row].height = 36

    # ── Freeze panes & auto-filter ────────────────────────────────────────────
    ws.freeze_panes = "A3"
    ws.auto_filter.ref = f"A2:{get_column_letter(len(COLUMN_DEFS))}{len(tenders) + 2}"


def export_to_excel(
    eligible: List[TenderRecord],
    all_tenders: List[TenderRecord],
    output_dir: str = None,
) -> str:
    """
    Write the two-sheet report and return the file path.

    Args:
        eligible:    Ranked tenders at/above the minimum score.
        all_tenders: Every stored tender.
        output_dir:  Directory to save the file. Defaults to config.OUTPUT_DIR.

    Returns:
        Absolute path of the saved .xlsx file.
    """
    out_dir = Path(output_dir or config.OUTPUT_DIR)
    out_dir.mkdir(parents=True, exist_ok=True)

    run_date = datetime.now().strftime("%d %b %Y %H:%M")
    date_tag = datetime.now().strftime("%Y-%m-%d")
    filepath = out_dir / config.OUTPUT_FILENAME.format(date=date_tag)

    wb = openpyxl.Workbook()

    ws1 = wb.active
    ws1.title = "Eligible Tenders"
    _write_sheet(ws1, eligible, "Eligible Tenders — Best Fit First", run_date)

    ws2 = wb.create_sheet("All Tenders")
    _write_sheet(ws2, all_tenders, "All Imported Tenders", run_date)

    wb.save(filepath)
    logger.info("Excel saved: %s", filepath.resolve())
    return str(filepath.resolve())
