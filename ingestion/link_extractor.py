"""
Link extractor — finds the tender URL for a data row.

Aggregator exports (Tender247 and friends) put the link on the TENDER BRIEF
cell as an Excel hyperlink; the cell value is only the brief text. Lookup
order, first hit wins:

  1. hyperlink embedded in the brief cell (title cell if no brief column)
  2. sheet-level hyperlink registry, by the same cell's address
  3. hyperlink embedded in the title cell, when that is a different column
  4. a URL typed literally into the title text

No hit is not an error — the tender simply has no link.
"""

import logging
import re
from typing import Optional

from ingestion.schema_resolver import FieldMap
from ingestion.workbook import SheetData

logger = logging.getLogger(__name__)

_URL = re.compile(r"https?://[^\s)\]>\"']+", re.IGNORECASE)


def extract_link(sheet: SheetData, row_index: int, field_map: FieldMap) -> Optional[str]:
    title_col = field_map.get("title")
    link_col = field_map.brief_column if field_map.brief_column is not None else title_col
    if link_col is None:
        return None

    link = sheet.hyperlink_at(row_index, link_col)
    if link:
        return link

    link = sheet.registry_link(row_index, link_col)
    if link:
        return link

    if title_col is not None and title_col != link_col:
        link = sheet.hyperlink_at(row_index, title_col)
        if link:
            return link

    if title_col is not None and row_index < len(sheet.rows):
        row = sheet.rows[row_index]
        if title_col < len(row) and row[title_col]:
            match = _URL.search(str(row[title_col]))
            if match:
                return match.group(0)
    return None
