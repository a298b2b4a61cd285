from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from warranty_desk.tickets.dates import (
    add_days,
    diff_days,
    format_date_only,
    is_date_only,
    to_date_only,
    today_date_only,
)
from warranty_desk.tickets.sla import compute_due_date, is_overdue


@pytest.mark.parametrize("sla_days", [0, 1, 5, 10, 30, 365])
def test_due_date_is_sla_days_after_delivery_day(sla_days):
    delivered = datetime(2024, 2, 20, 13, 30, tzinfo=timezone.utc)

    due = compute_due_date(delivered, sla_days, "America/Sao_Paulo")

    assert diff_days("2024-02-20", due) == sla_days


def test_due_date_crosses_leap_day():
    assert compute_due_date("2024-02-25", 5) == "2024-03-01"


def test_delivery_instant_is_truncated_in_tenant_timezone():
    # 01:30 UTC is still the previous evening in Sao Paulo
    delivered = datetime(2024, 3, 15, 1, 30, tzinfo=timezone.utc)

    assert compute_due_date(delivered, 10, "America/Sao_Paulo") == "2024-03-24"
    assert compute_due_date(delivered, 10, "UTC") == "2024-03-25"


@pytest.mark.parametrize("delivered", ["2024-03-15T01:30:00+00:00", "2024-03-15T01:30:00Z"])
def test_iso_string_delivery_is_truncated_in_tenant_timezone(delivered):
    assert compute_due_date(delivered, 10, "America/Sao_Paulo") == "2024-03-24"
    assert compute_due_date(delivered, 10, "UTC") == "2024-03-25"


def test_naive_iso_string_keeps_its_own_day():
    assert to_date_only("2024-03-15T01:30:00", "America/Sao_Paulo") == "2024-03-15"
    assert to_date_only("2024-03-15T99:00", "UTC") == "2024-03-15"


def test_negative_sla_is_rejected():
    with pytest.raises(ValueError):
        compute_due_date("2024-03-14", -1)


def test_unparseable_delivery_is_rejected():
    with pytest.raises(ValueError):
        compute_due_date("ontem", 3)


def test_overdue_only_after_due_date():
    assert not is_overdue("2024-03-24", "2024-03-24")
    assert is_overdue("2024-03-24", "2024-03-25")
    assert not is_overdue(None, "2024-03-25")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024-03-14", "2024-03-14"),
        ("2024-03-14T23:59:00-03:00", "2024-03-14"),
        (date(2024, 3, 14), "2024-03-14"),
        ("", ""),
        ("14/03/2024", ""),
        (None, ""),
    ],
)
def test_to_date_only(value, expected):
    assert to_date_only(value) == expected


def test_is_date_only_rejects_impossible_days():
    assert is_date_only("2024-02-29")
    assert not is_date_only("2023-02-29")
    assert not is_date_only("2024-3-1")


def test_today_uses_the_given_timezone():
    now = datetime(2024, 3, 15, 2, 0, tzinfo=timezone.utc)

    assert today_date_only("America/Sao_Paulo", now=now) == "2024-03-14"
    assert today_date_only("UTC", now=now) == "2024-03-15"


def test_day_arithmetic_helpers():
    assert add_days("2024-12-30", 3) == "2025-01-02"
    assert diff_days("2024-03-01", "2024-02-28") == -2
    assert diff_days("bad", "2024-02-28") == 0
    assert format_date_only("2024-03-14") == "14/03/2024"
    assert format_date_only(None) == "—"
