"""
Field normaliser — turns raw spreadsheet cells into typed values.

  currency  → int minor units (paise): input × 100, rounded half-up
  dates     → datetime.date; spreadsheet serials are days since 1899-12-30
  text      → trimmed str, "" when the cell is empty

None of these raise: a cell we can't read becomes the documented default
(0 for money, today + 30 days for a deadline) and the row carries on.
"""

import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_DAYS = 30

# Day 25569 is 1970-01-01; day 0 is 1899-12-30 (Lotus 1900 leap-year bug).
SERIAL_EPOCH = date(1899, 12, 30)
UNIX_EPOCH_SERIAL = 25569

# Digit-only strings above this are treated as serials, not years/amounts
MIN_TEXT_SERIAL = 40000

_CURRENCY_STRIP = re.compile(r"[^0-9.\-]")
_WHITESPACE = re.compile(r"\s+")
_AMOUNT = re.compile(r"(\d[\d,]*(?:\.\d+)?|\.\d+)")
_UNIT = re.compile(r"\s*(crores?|cr|lakhs?|lacs?|million|mn)\b", re.IGNORECASE)
_UNIT_FACTORS = {"cr": 1_00_00_000, "la": 1_00_000, "mi": 1_000_000, "mn": 1_000_000}

# Portal exports are day-first: "14-01-2026 1:26 PM", "28/07/2025", …
_DATE_FMTS = [
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%d-%m-%Y %I:%M %p",
    "%d-%m-%Y %H:%M",
    "%d-%m-%Y",
    "%d/%m/%Y %I:%M %p",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d.%m.%Y",
    "%d-%b-%Y %I:%M %p",
    "%d-%b-%Y %H:%M",
    "%d-%b-%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
]


def round_half_up(x: float) -> int:
    """Round .5 away from zero for positives (Python's round() is banker's)."""
    return int(math.floor(x + 0.5))


def normalize_text(raw) -> str:
    if raw is None:
        return ""
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)     # reference numbers typed as numbers: 12345.0 → "12345"
    return _WHITESPACE.sub(" ", str(raw)).strip()


def normalize_currency(raw) -> int:
    """
    "₹1,23,456.50" → 12345650.  Strips everything but digits, '.' and '-',
    parses a float (0 on failure) and stores it ×100 as an integer.
    """
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, (int, float)):
        amount = float(raw)
    else:
        cleaned = _CURRENCY_STRIP.sub("", str(raw))
        try:
            amount = float(cleaned) if cleaned else 0.0
        except ValueError:
            amount = 0.0
    if math.isnan(amount) or math.isinf(amount):
        amount = 0.0
    return round_half_up(amount * 100)


def _from_serial(serial: float) -> date:
    days = float(serial) - UNIX_EPOCH_SERIAL
    return date(1970, 1, 1) + timedelta(days=math.floor(days))


def normalize_date(
    raw,
    today: Optional[date] = None,
    default_days: int = DEFAULT_DEADLINE_DAYS,
) -> date:
    """Return a calendar date for a deadline cell; today + default_days on failure."""
    today = today or date.today()
    fallback = today + timedelta(days=default_days)

    if raw is None or isinstance(raw, bool):
        return fallback
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    try:
        if isinstance(raw, (int, float)):
            return _from_serial(raw)

        text = normalize_text(raw)
        if not text:
            return fallback
        if text.isdigit() and int(text) > MIN_TEXT_SERIAL:
            return _from_serial(int(text))
        for fmt in _DATE_FMTS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
    except (OverflowError, ValueError):
        pass

    logger.debug("Unparseable date %r — defaulting to %s", raw, fallback)
    return fallback


def parse_inr_amount(text) -> float:
    """
    Extract a rupee amount from strings like:
      "₹ 3,50,000", "350000", "3.5 Lakh", "1.2 Crore", "3 crores", "5 cr"
    When several numbers appear, the first one followed by a unit is used;
    otherwise the first bare number. Returns the amount in rupees, or 0.0
    if no number is present.
    """
    if text is None or isinstance(text, bool):
        return 0.0
    if isinstance(text, (int, float)):
        return max(float(text), 0.0)

    raw = str(text).strip().replace("₹", " ").replace("Rs.", " ")
    bare = None
    # "turnover of last 3 years: 5 Crore": the number with a unit wins
    for match in _AMOUNT.finditer(raw):
        try:
            num = float(match.group(1).replace(",", ""))
        except ValueError:
            continue
        unit = _UNIT.match(raw, match.end())
        if unit:
            return num * _UNIT_FACTORS[unit.group(1).lower()[:2]]
        if bare is None:
            bare = num
    return bare if bare is not None else 0.0
