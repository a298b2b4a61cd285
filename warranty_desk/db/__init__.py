"""Database models and utilities."""

from .models import (
    StoreTable,
    SupplierTable,
    TenantSettingsTable,
    TicketAttachmentTable,
    TicketAuditLogTable,
    TicketSearchTokenTable,
    TicketStageTable,
    TicketTable,
    TicketTimelineTable,
)

__all__ = [
    "StoreTable",
    "SupplierTable",
    "TenantSettingsTable",
    "TicketAttachmentTable",
    "TicketAuditLogTable",
    "TicketSearchTokenTable",
    "TicketStageTable",
    "TicketTable",
    "TicketTimelineTable",
]
