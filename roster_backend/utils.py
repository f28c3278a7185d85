"""
Value coercion helpers shared by the adapters, extractors and scanner.

Spreadsheet cells arrive as whatever pandas produced (str, float NaN, int,
Timestamp, None), so every name, code, amount and date goes through one of
these before the engine looks at it.
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional

_ISO_DATE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})")

# Excel's day zero (it treats 1900 as a leap year)
_EXCEL_EPOCH = datetime(1899, 12, 30)


def safe_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        # Codes typed as numbers come back as 1001.0
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def safe_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    if isinstance(value, (int, float)):
        f = float(value)
        return default if math.isnan(f) else f
    s = str(value).strip().replace(",", "")
    if s.startswith("(") and s.endswith(")"):
        s = "-" + s[1:-1]
    try:
        f = float(s)
    except ValueError:
        return default
    return default if math.isnan(f) else f


def coalesce(*values: Optional[str]) -> str:
    """Return the first non-empty value, or "" when every value is blank."""
    for v in values:
        if v:
            return v
    return ""


def clean_name(value: Any, placeholders: Iterable[str] = ()) -> str:
    name = safe_str(value)
    if name in placeholders:
        return ""
    return name


def parse_date(value: Any) -> Optional[date]:
    """Parse a cell into a date; None when it cannot be read."""
    # NaN and pandas NaT are the only values not equal to themselves
    if value is None or value != value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if 40000 < value < 60000:
            return (_EXCEL_EPOCH + timedelta(days=float(value))).date()
        return None
    s = str(value).strip()
    if not s:
        return None
    m = _ISO_DATE.match(s)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None
    try:
        n = float(s)
    except ValueError:
        return None
    if 40000 < n < 60000:
        return (_EXCEL_EPOCH + timedelta(days=n)).date()
    return None


def month_of(value: Any) -> Optional[int]:
    d = parse_date(value)
    return d.month if d else None
