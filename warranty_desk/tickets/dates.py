"""Calendar-only date helpers.

Dates that matter to the workflow (due dates, next actions) are stored and
compared as ``YYYY-MM-DD`` strings so that comparisons never depend on the
timezone of the process doing them.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "America/Sao_Paulo"

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_date_only(value: str | None) -> bool:
    if not value or not _DATE_ONLY_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def to_date_only(value: date | datetime | str | None, tz: str | None = None) -> str:
    """Return the calendar day of ``value`` as ``YYYY-MM-DD``.

    Aware datetimes, and ISO strings carrying an offset, are converted to ``tz``
    first; naive ones are taken as-is. Strings without an offset are truncated
    at the ``T`` separator. Anything that cannot be interpreted yields an empty
    string.
    """

    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.tzinfo is not None and tz:
            value = value.astimezone(ZoneInfo(tz))
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = value.strip()
    if is_date_only(text):
        return text
    try:
        # fromisoformat only accepts a trailing "Z" from Python 3.11 on.
        parsed = datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text)
    except ValueError:
        parsed = None
    if parsed is not None and parsed.tzinfo is not None:
        return to_date_only(parsed, tz)
    if "T" in text:
        head = text.split("T", 1)[0]
        return head if is_date_only(head) else ""
    return parsed.date().isoformat() if parsed is not None else ""


def parse_date_only(value: str) -> date:
    if not is_date_only(value):
        raise ValueError(f"Invalid date-only value: {value!r}")
    return date.fromisoformat(value)


def today_date_only(tz: str = DEFAULT_TIMEZONE, *, now: datetime | None = None) -> str:
    """Calendar day of ``now`` (default: current instant) in ``tz``."""

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(ZoneInfo(tz)).date().isoformat()


def add_days(value: str, days: int) -> str:
    return (parse_date_only(value) + timedelta(days=days)).isoformat()


def diff_days(start: str, end: str) -> int:
    """Whole calendar days from ``start`` to ``end``; 0 when either is malformed."""

    if not is_date_only(start) or not is_date_only(end):
        return 0
    return (parse_date_only(end) - parse_date_only(start)).days


def format_date_only(value: str | None) -> str:
    """Render ``YYYY-MM-DD`` as ``DD/MM/YYYY`` for timeline texts."""

    if not value or not is_date_only(value):
        return "—"
    year, month, day = value.split("-")
    return f"{day}/{month}/{year}"
