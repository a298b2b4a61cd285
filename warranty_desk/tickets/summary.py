"""Per-stage summaries reconstructed from stage history.

Timeline notes and attachments carry no stage reference, so they are
attributed by time window: a stage owns what happened after the previous
stage completed and up to its own completion. Stored timestamps are trusted
as given; entries written with a skewed clock can land in a neighbouring
stage.
"""

from __future__ import annotations

from typing import Sequence

from .models import Attachment, StageSummary, Ticket, TimelineEntry
from .state import STATUS_ORDER, TicketStatus

ATTACHMENT_PREVIEW_LIMIT = 3


def build_stage_summaries(
    ticket: Ticket,
    timeline: Sequence[TimelineEntry],
    attachments: Sequence[Attachment],
) -> dict[TicketStatus, StageSummary]:
    summaries: dict[TicketStatus, StageSummary] = {status: StageSummary(status=status) for status in STATUS_ORDER}
    history = sorted(ticket.stage_history, key=lambda record: record.completed_at)
    notes = sorted(timeline, key=lambda entry: entry.created_at, reverse=True)
    uploads = sorted(attachments, key=lambda attachment: attachment.uploaded_at, reverse=True)

    for index, record in enumerate(history):
        start = history[index - 1].completed_at if index > 0 else None
        end = record.completed_at

        in_window = [
            attachment
            for attachment in uploads
            if attachment.uploaded_at <= end and (start is None or attachment.uploaded_at > start)
        ]
        last_note = next((entry.text for entry in notes if entry.created_at <= end), None)

        summaries[record.status] = StageSummary(
            status=record.status,
            at=record.completed_at,
            by_name=record.completed_by_name,
            last_note=last_note,
            attachments_preview=tuple(in_window[:ATTACHMENT_PREVIEW_LIMIT]),
        )
    return summaries
