"""
Row assembler — builds one TenderRecord from one spreadsheet row.

Contract:
  * returns None when the row has no usable title (skipped, not failed)
  * raises RowError when the row is present but unusable
  * everything else (bad dates, bad amounts) is defaulted by the normaliser
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional, Sequence

from ingestion.link_extractor import extract_link
from ingestion.models import SOURCE_GEM, SOURCE_NON_GEM, Requirements, TenderRecord
from ingestion.normalizer import (
    DEFAULT_DEADLINE_DAYS,
    normalize_currency,
    normalize_date,
    normalize_text,
)
from ingestion.schema_resolver import FieldMap
from ingestion.workbook import SheetData

logger = logging.getLogger(__name__)


class RowError(ValueError):
    """A data row that cannot become a tender."""


@dataclass
class SheetContext:
    sheet: SheetData
    row_index: int                      # 0-based position in sheet.rows
    file_name: str = ""
    today: date = field(default_factory=date.today)
    default_deadline_days: int = DEFAULT_DEADLINE_DAYS

    @property
    def sheet_name(self) -> str:
        return self.sheet.name


def _cell(row: Sequence, idx: Optional[int]) -> Any:
    if idx is None or idx >= len(row):
        return None
    return row[idx]


def source_tag_for(reference_number: str, sheet_name: str = "") -> str:
    """GeM vs non-GeM from the reference number; sheet name only as fallback."""
    signal = reference_number if reference_number else sheet_name
    return SOURCE_GEM if "gem" in (signal or "").lower() else SOURCE_NON_GEM


def _requirements(row: Sequence, field_map: FieldMap, sheet_name: str) -> Requirements:
    req = Requirements(sheet=sheet_name)
    req.turnover = normalize_text(_cell(row, field_map.get("turnover")))
    for name, idx in field_map.requirement_columns.items():
        setattr(req, name, normalize_text(_cell(row, idx)))

    claimed = field_map.claimed_columns()
    for idx, header in enumerate(field_map.headers):
        if idx in claimed or not header:
            continue
        text = normalize_text(_cell(row, idx))
        if text:
            req.extra[header] = text
    return req


def assemble_row(
    raw_row: Sequence,
    field_map: FieldMap,
    context: SheetContext,
) -> Optional[TenderRecord]:
    if not field_map.has_title:
        return None

    title = normalize_text(_cell(raw_row, field_map.get("title")))
    if not title:
        return None

    value = normalize_currency(_cell(raw_row, field_map.get("value")))
    if value < 0:
        raise RowError(f"negative tender value {value / 100:.2f}")

    reference = normalize_text(_cell(raw_row, field_map.get("reference_number")))

    record = TenderRecord(
        title=title,
        reference_number=reference,
        source_tag=source_tag_for(reference, context.sheet_name),
        organization=normalize_text(_cell(raw_row, field_map.get("organization"))),
        location=normalize_text(_cell(raw_row, field_map.get("location"))),
        value=value,
        deadline=normalize_date(
            _cell(raw_row, field_map.get("deadline")),
            today=context.today,
            default_days=context.default_deadline_days,
        ),
        requirements=_requirements(raw_row, field_map, context.sheet_name),
        link=extract_link(context.sheet, context.row_index, field_map),
        notes=f"Imported from {context.sheet_name} - {context.file_name}".rstrip(" -"),
    )
    return record
