"""
Workbook reader — decodes an .xlsx upload into SheetData objects.

Two places a tender link can hide in an export:

  * a real Excel hyperlink on the cell. openpyxl binds every <hyperlink>
    element to its cell on load, so the target survives even though the
    cell *value* is only the tender brief text. These become `cell_links`.
  * a =HYPERLINK("url", "text") formula. With data_only=True we only see
    the cached "text", so the sheet is read a second time (formulas, read
    only) and the URLs are put in the sheet-level `link_registry`, keyed
    by cell address.

Note: the value pass needs read_only=False — read-only worksheets drop
hyperlinks.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import openpyxl
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

_HYPERLINK_FORMULA = re.compile(r'^=\s*HYPERLINK\(\s*"([^"]+)"', re.IGNORECASE)


def cell_address(row_index: int, col_index: int) -> str:
    """0-based (row, col) → "B7" style address."""
    return f"{get_column_letter(col_index + 1)}{row_index + 1}"


@dataclass
class SheetData:
    """
    One decoded sheet. `rows` holds raw cell values (header row included);
    indices everywhere are 0-based positions in `rows`.
    """
    name: str
    rows: List[List[Any]] = field(default_factory=list)
    cell_links: Dict[Tuple[int, int], str] = field(default_factory=dict)
    link_registry: Dict[str, str] = field(default_factory=dict)

    def hyperlink_at(self, row_index: int, col_index: int) -> Optional[str]:
        """Hyperlink attached directly to the cell, if any."""
        return self.cell_links.get((row_index, col_index))

    def registry_link(self, row_index: int, col_index: int) -> Optional[str]:
        """Sheet-level hyperlink registered for the cell address, if any."""
        return self.link_registry.get(cell_address(row_index, col_index))


def _read_values(ws, sheet: SheetData) -> None:
    for r_idx, row in enumerate(ws.iter_rows()):
        values = []
        for c_idx, cell in enumerate(row):
            values.append(cell.value)
            link = getattr(cell, "hyperlink", None)
            if link is not None and link.target:
                sheet.cell_links[(r_idx, c_idx)] = link.target
        # Trim trailing empties so short rows don't look like data
        while values and values[-1] in (None, ""):
            values.pop()
        sheet.rows.append(values)


def _read_formula_links(ws, sheet: SheetData) -> None:
    for r_idx, row in enumerate(ws.iter_rows(values_only=True)):
        for c_idx, value in enumerate(row):
            if not isinstance(value, str) or not value.startswith("="):
                continue
            match = _HYPERLINK_FORMULA.match(value)
            if match:
                sheet.link_registry[cell_address(r_idx, c_idx)] = match.group(1)


class WorkbookReader:
    """Thin wrapper over an openpyxl workbook, read one sheet at a time."""

    def __init__(self, path, formula_links: bool = True):
        self.path = Path(path)
        # data_only → cached formula results instead of "=SUM(...)"
        self._wb = openpyxl.load_workbook(self.path, data_only=True)
        self._formulas = None
        if formula_links:
            self._formulas = openpyxl.load_workbook(self.path, read_only=True)

    @property
    def sheet_names(self) -> List[str]:
        return list(self._wb.sheetnames)

    def read_sheet(self, name: str) -> SheetData:
        sheet = SheetData(name=name)
        _read_values(self._wb[name], sheet)
        if self._formulas is not None:
            _read_formula_links(self._formulas[name], sheet)
        return sheet

    def sheets(self) -> Iterator[str]:
        yield from self.sheet_names

    def close(self) -> None:
        self._wb.close()
        if self._formulas is not None:
            self._formulas.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
