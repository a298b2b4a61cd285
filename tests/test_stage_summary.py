from __future__ import annotations

from datetime import datetime, timedelta, timezone

from warranty_desk.tickets.models import (
    Attachment,
    AttachmentCategory,
    StageRecord,
    Ticket,
    TimelineEntry,
    TimelineType,
)
from warranty_desk.tickets.state import STATUS_ORDER, TicketStatus
from warranty_desk.tickets.summary import ATTACHMENT_PREVIEW_LIMIT, build_stage_summaries

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _at(hours: int) -> datetime:
    return T0 + timedelta(hours=hours)


def _ticket(history) -> Ticket:
    return Ticket(
        id="t-1",
        tenant_id="tenant-a",
        store_id="store-a",
        status=history[-1].status,
        customer_name="Cliente",
        customer_document="12345678909",
        customer_phone="11987654321",
        part_description="Peça",
        defect_description="Defeito",
        sale_number="100",
        created_by="u",
        created_at=T0,
        updated_at=T0,
        stage_history=tuple(history),
    )


def _record(status: TicketStatus, hours: int, name: str = "Ana") -> StageRecord:
    return StageRecord(status=status, completed_at=_at(hours), completed_by="u-1", completed_by_name=name)


def _note(hours: int, text: str) -> TimelineEntry:
    return TimelineEntry(
        id=f"n-{hours}",
        ticket_id="t-1",
        type=TimelineType.OBS,
        text=text,
        user_id="u-1",
        user_name="Ana",
        created_at=_at(hours),
    )


def _upload(hours: int, name: str) -> Attachment:
    return Attachment(
        id=name,
        ticket_id="t-1",
        category=AttachmentCategory.FOTO_PECA,
        name=name,
        mime_type="image/jpeg",
        size=10,
        storage_file_id=f"file-{name}",
        uploaded_by="u-1",
        uploaded_at=_at(hours),
    )


def test_every_status_gets_a_summary_even_when_unreached():
    ticket = _ticket([_record(TicketStatus.RECEBIMENTO, 0)])

    summaries = build_stage_summaries(ticket, [], [])

    assert list(summaries) == list(STATUS_ORDER)
    assert summaries[TicketStatus.RECEBIMENTO].at == _at(0)
    assert summaries[TicketStatus.INTERNO].at is None
    assert summaries[TicketStatus.INTERNO].by_name is None


def test_notes_and_uploads_are_attributed_by_time_window():
    ticket = _ticket(
        [
            _record(TicketStatus.RECEBIMENTO, 0),
            _record(TicketStatus.INTERNO, 10, "Bruno"),
            _record(TicketStatus.ENTREGA_LOGISTICA, 20, "Carla"),
        ]
    )
    timeline = [_note(5, "conferido"), _note(15, "enviado"), _note(25, "depois")]
    uploads = [_upload(0, "foto"), _upload(12, "nf"), _upload(18, "nf2")]

    summaries = build_stage_summaries(ticket, timeline, uploads)

    interno = summaries[TicketStatus.INTERNO]
    assert interno.by_name == "Bruno"
    assert interno.last_note == "conferido"
    assert [a.name for a in summaries[TicketStatus.RECEBIMENTO].attachments_preview] == ["foto"]
    assert interno.attachments_preview == ()
    logistica = summaries[TicketStatus.ENTREGA_LOGISTICA]
    assert logistica.last_note == "enviado"
    assert [a.name for a in logistica.attachments_preview] == ["nf2", "nf"]


def test_attachment_preview_is_capped_newest_first():
    ticket = _ticket([_record(TicketStatus.RECEBIMENTO, 0), _record(TicketStatus.INTERNO, 10)])
    uploads = [_upload(hour, f"a{hour}") for hour in range(1, 8)]

    preview = build_stage_summaries(ticket, [], uploads)[TicketStatus.INTERNO].attachments_preview

    assert len(preview) == ATTACHMENT_PREVIEW_LIMIT
    assert [a.name for a in preview] == ["a7", "a6", "a5"]
