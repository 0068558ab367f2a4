"""
Schema resolver — maps a sheet's header row to canonical tender fields.

Tender spreadsheets from GeM, CPPP and the aggregators all name their
columns differently ("TENDER BRIEF", "Work Description", "Dept",
"Estimated Cost (₹)", "End Submission date" …). Each canonical field has a
list of synonyms; a header matches a field when the lowercased header
*contains* one of them. A single header may satisfy several fields.

Last match wins: when several headers satisfy the same field, the column
that appears latest in the row is kept. This is fragile (a trailing
"Last Updated on" column steals `deadline` from "Bid End Date") but the
stored data was produced this way, so it stays until product says otherwise.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

# Order matters only for readability; every field is tested for every header.
FIELD_SYNONYMS: Dict[str, tuple] = {
    "title":            ("title", "name", "work", "description", "brief"),
    "organization":     ("organization", "dept", "department", "ministry"),
    "value":            ("value", "amount", "cost", "estimated"),
    "deadline":         ("deadline", "date", "last", "submission"),
    "turnover":         ("turnover", "eligibility", "qualification", "criteria",
                         "minimum average annual"),
    "location":         ("location", "place", "site", "address"),
    "reference_number": ("reference", "ref", "t247 id"),
}

BRIEF_SYNONYMS = ("brief",)

# Secondary columns copied into TenderRecord.requirements
REQUIREMENT_SYNONYMS: Dict[str, tuple] = {
    "emd":               ("emd",),
    "category":          ("category",),
    "msme_exemption":    ("msme",),
    "startup_exemption": ("startup",),
    "document_fees":     ("document fee", "tender fee"),
}


@dataclass
class FieldMap:
    """Canonical field name → 0-based column index for one sheet."""
    columns: Dict[str, int] = field(default_factory=dict)
    brief_column: Optional[int] = None
    requirement_columns: Dict[str, int] = field(default_factory=dict)
    headers: List[str] = field(default_factory=list)

    def get(self, name: str) -> Optional[int]:
        return self.columns.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.columns

    @property
    def has_title(self) -> bool:
        return "title" in self.columns

    def claimed_columns(self) -> set:
        claimed = set(self.columns.values()) | set(self.requirement_columns.values())
        if self.brief_column is not None:
            claimed.add(self.brief_column)
        return claimed


def _normalise(header) -> str:
    if header is None:
        return ""
    return str(header).strip().lower()


def _matches(header: str, synonyms: Sequence[str]) -> bool:
    return any(s in header for s in synonyms)


def resolve_schema(header_row: Sequence) -> FieldMap:
    """Resolve a raw header row into a FieldMap (pure, no I/O)."""
    headers = [_normalise(h) for h in header_row]
    fmap = FieldMap(headers=[("" if h is None else str(h).strip()) for h in header_row])

    for idx, header in enumerate(headers):
        if not header:
            continue
        for name, synonyms in FIELD_SYNONYMS.items():
            if _matches(header, synonyms):
                fmap.columns[name] = idx          # last match wins
        for name, synonyms in REQUIREMENT_SYNONYMS.items():
            if _matches(header, synonyms):
                fmap.requirement_columns[name] = idx
        if _matches(header, BRIEF_SYNONYMS):
            fmap.brief_column = idx

    if not fmap.has_title:
        logger.debug("No title column among headers %s", fmap.headers)
    return fmap


def detect_header_row(rows: Sequence[Sequence], probe_rows: int = 3) -> int:
    """
    Return the index of the header row.

    Row 0 is the header whenever it has a title column. Only when it has
    none (a banner line such as "Tenders as on 28-07-2025") are the next
    rows, up to `probe_rows`, tried; the first that resolves a title plus
    at least one other field wins. Otherwise row 0.
    """
    if not rows or (rows[0] and resolve_schema(rows[0]).has_title):
        return 0
    for idx in range(1, min(probe_rows, len(rows))):
        row = rows[idx]
        if not row:
            continue
        fmap = resolve_schema(row)
        if fmap.has_title and len(fmap.columns) >= 2:
            return idx
    return 0
