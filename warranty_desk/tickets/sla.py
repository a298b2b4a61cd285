from __future__ import annotations

from datetime import datetime

from .dates import DEFAULT_TIMEZONE, add_days, to_date_only


def compute_due_date(delivered_at: datetime | str, sla_days: int, tz: str = DEFAULT_TIMEZONE) -> str:
    """Due date for a ticket handed to a supplier.

    ``delivered_at`` is truncated to its calendar day in ``tz`` and ``sla_days``
    calendar days (not business days) are added.
    """

    if sla_days < 0:
        raise ValueError("sla_days must not be negative")
    delivered_day = to_date_only(delivered_at, tz)
    if not delivered_day:
        raise ValueError(f"Invalid delivery timestamp: {delivered_at!r}")
    return add_days(delivered_day, sla_days)


def is_overdue(due_date: str | None, today: str) -> bool:
    if not due_date:
        return False
    return due_date < today
