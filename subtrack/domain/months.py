from __future__ import annotations

import calendar
import re
from datetime import date, datetime

# Open-ended subscriptions bill up to this month; keeps overlap arithmetic finite.
OPEN_END = date(3000, 1, 1)

_MONTH_YEAR_RE = re.compile(r"^(0[1-9]|1[0-2])-(\d{4})$")


def month_start(value: date | datetime) -> date:
    """Normalize a date/datetime to the first day of its month."""
    return date(value.year, value.month, 1)


def month_end(value: date | datetime) -> date:
    """Last day of the calendar month containing ``value``."""
    last = calendar.monthrange(value.year, value.month)[1]
    return date(value.year, value.month, last)


def _month_index(d: date) -> int:
    return d.year * 12 + (d.month - 1)


def months_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> int:
    """
    Count whole calendar months shared by the inclusive ranges [a_start, a_end]
    and [b_start, b_end]. Day-of-month is ignored.

    Returns 0 when either range is inverted or the ranges do not meet.
    """
    a0, a1 = _month_index(a_start), _month_index(a_end)
    b0, b1 = _month_index(b_start), _month_index(b_end)
    if a1 < a0 or b1 < b0:
        return 0
    return max(min(a1, b1) - max(a0, b0) + 1, 0)


def parse_month_year(s: str) -> date:
    """Parse ``MM-YYYY`` into the first day of that month. Raises ValueError."""
    m = _MONTH_YEAR_RE.match((s or "").strip())
    if not m:
        raise ValueError(f"expected MM-YYYY, got {s!r}")
    year = int(m.group(2))
    if year < 1:
        raise ValueError(f"year out of range: {s!r}")
    return date(year, int(m.group(1)), 1)


def format_month_year(d: date) -> str:
    return f"{d.month:02d}-{d.year:04d}"
