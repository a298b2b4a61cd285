"""Builders shared by the test modules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from warranty_desk.tickets.models import Actor, NewTicket
from warranty_desk.tickets.state import Role

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"
# 15:00 UTC is noon in Sao Paulo, far from a calendar-day boundary.
START = datetime(2024, 3, 14, 15, 0, tzinfo=timezone.utc)
TODAY = "2024-03-14"


class SteppingClock:
    """Deterministic clock that moves one second forward on every read."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


def actor(role: Role, *, user_id: str | None = None, store_id: str | None = None) -> Actor:
    user_id = user_id or role.value.lower()
    return Actor(id=user_id, name=user_id.title(), role=role, store_id=store_id)


def new_ticket(**overrides) -> NewTicket:
    values = {
        "store_id": "store-a",
        "customer_name": "José da Silva",
        "customer_document": "123.456.789-09",
        "customer_phone": "(11) 98765-4321",
        "part_description": "Bomba d'água",
        "defect_description": "Vazamento na vedação",
        "sale_number": "VD-5501",
        "part_code": "BX-10",
    }
    values.update(overrides)
    return NewTicket(**values)
