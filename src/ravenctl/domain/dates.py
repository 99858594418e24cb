"""Date helpers — ISO dates, relative keywords, and daily-note IDs."""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Any

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
# Leading date of an ISO datetime string such as 2026-02-14T09:30:00.
_ISO_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ]\d{2}:\d{2}.*)?$")

RELATIVE_KEYWORDS: dict[str, int] = {
    "yesterday": -1,
    "today": 0,
    "tomorrow": 1,
}


def parse_iso_date(text: str) -> date | None:
    """Parse ``YYYY-MM-DD``; returns None for anything else or invalid dates."""
    m = _ISO_DATE.match(text.strip())
    if m is None:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def parse_date_ref(ref: str, *, today: date | None = None) -> date | None:
    """Interpret *ref* as an ISO date or a relative keyword.

    >>> parse_date_ref("tomorrow", today=date(2026, 2, 14))
    datetime.date(2026, 2, 15)
    """
    key = ref.strip().lower()
    if key in RELATIVE_KEYWORDS:
        base = today or date.today()
        return base + timedelta(days=RELATIVE_KEYWORDS[key])
    return parse_iso_date(ref)


def daily_note_id(day: date, daily_directory: str) -> str:
    """Object ID of the daily note for *day*."""
    directory = daily_directory.strip("/")
    if not directory:
        return day.isoformat()
    return f"{directory}/{day.isoformat()}"


def extract_date_string(value: Any) -> str | None:
    """Return the ``YYYY-MM-DD`` portion of a date-like value, if any."""
    if isinstance(value, date):
        return value.isoformat()[:10]
    if not isinstance(value, str):
        return None
    m = _ISO_DATE_PREFIX.match(value.strip())
    if m is None:
        return None
    if parse_iso_date(m.group(1)) is None:
        return None
    return m.group(1)
