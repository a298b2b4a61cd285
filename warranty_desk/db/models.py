"""SQLModel table definitions for the warranty desk data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class TicketTable(SQLModel, table=True):
    """Warranty claim records and their workflow fields."""

    __tablename__ = "tickets"
    __table_args__ = (
        Index("ix_tickets_tenant_closed_due", "tenant_id", "is_closed", "due_date"),
        Index("ix_tickets_tenant_next_action", "tenant_id", "next_action_at"),
        Index("ix_tickets_tenant_created", "tenant_id", "created_at"),
    )

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    tenant_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    store_id: str = Field(sa_column=Column(String(64), nullable=False))
    status: str = Field(sa_column=Column(String(50), nullable=False))
    version: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))

    customer_name: str = Field(sa_column=Column(String(255), nullable=False))
    customer_nickname: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    customer_document: str = Field(sa_column=Column(String(14), nullable=False))
    customer_phone: str = Field(sa_column=Column(String(20), nullable=False))
    is_whatsapp: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))

    part_description: str = Field(sa_column=Column(Text, nullable=False))
    quantity: int = Field(default=1, sa_column=Column(Integer, nullable=False))
    part_ref: str | None = Field(default=None, sa_column=Column(String(100), nullable=True))
    part_code: str | None = Field(default=None, sa_column=Column(String(100), nullable=True))
    defect_description: str = Field(sa_column=Column(Text, nullable=False))
    sale_number: str = Field(sa_column=Column(String(100), nullable=False))
    supplier_sale_number: str | None = Field(default=None, sa_column=Column(String(100), nullable=True))
    sale_date: str | None = Field(default=None, sa_column=Column(String(10), nullable=True))
    received_date: str | None = Field(default=None, sa_column=Column(String(10), nullable=True))
    notes: str | None = Field(default=None, sa_column=Column(Text, nullable=True))

    outbound_invoice_number: str | None = Field(default=None, sa_column=Column(String(100), nullable=True))
    return_invoice_number: str | None = Field(default=None, sa_column=Column(String(100), nullable=True))
    sent_to_supplier_date: str | None = Field(default=None, sa_column=Column(String(10), nullable=True))

    supplier_id: str | None = Field(default=None, sa_column=Column(String(64), nullable=True, index=True))
    supplier_name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    sla_days: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    due_date: str | None = Field(default=None, sa_column=Column(String(10), nullable=True))
    delivered_to_supplier_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    next_action_at: str | None = Field(default=None, sa_column=Column(String(10), nullable=True))
    next_action_note: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    supplier_response: str | None = Field(default=None, sa_column=Column(Text, nullable=True))

    resolution_result: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    resolution_notes: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    closed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    is_closed: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))

    search_tokens: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_by: str = Field(sa_column=Column(String(255), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketSearchTokenTable(SQLModel, table=True):
    """Lookup rows mirroring ``TicketTable.search_tokens`` for indexed search."""

    __tablename__ = "ticket_search_tokens"
    __table_args__ = (Index("ix_ticket_search_tokens_tenant_token", "tenant_id", "token"),)

    ticket_id: str = Field(
        sa_column=Column(
            String(36), ForeignKey("tickets.id", ondelete="CASCADE"), primary_key=True, nullable=False
        )
    )
    token: str = Field(sa_column=Column(String(255), primary_key=True, nullable=False))
    tenant_id: str = Field(sa_column=Column(String(64), nullable=False))


class TicketStageTable(SQLModel, table=True):
    """Append-only record of every stage a ticket reached."""

    __tablename__ = "ticket_stage_history"
    __table_args__ = (Index("ux_ticket_stage_history_position", "ticket_id", "position", unique=True),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    position: int = Field(sa_column=Column(Integer, nullable=False))
    status: str = Field(sa_column=Column(String(50), nullable=False))
    completed_by: str = Field(sa_column=Column(String(255), nullable=False))
    completed_by_name: str = Field(sa_column=Column(String(255), nullable=False))
    completed_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketTimelineTable(SQLModel, table=True):
    """Operational narrative entries attached to a ticket."""

    __tablename__ = "ticket_timeline"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    type: str = Field(sa_column=Column(String(30), nullable=False))
    text: str = Field(sa_column=Column(Text, nullable=False))
    user_id: str = Field(sa_column=Column(String(255), nullable=False))
    user_name: str = Field(sa_column=Column(String(255), nullable=False))
    next_action_at: str | None = Field(default=None, sa_column=Column(String(10), nullable=True))
    next_action_note: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketAttachmentTable(SQLModel, table=True):
    """Metadata of files stored by the external storage provider."""

    __tablename__ = "ticket_attachments"
    __table_args__ = (Index("ix_ticket_attachments_ticket_category", "ticket_id", "category"),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    )
    category: str = Field(sa_column=Column(String(50), nullable=False))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    mime_type: str = Field(sa_column=Column(String(100), nullable=False))
    size: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    storage_file_id: str = Field(sa_column=Column(String(255), nullable=False))
    uploaded_by: str = Field(sa_column=Column(String(255), nullable=False))
    uploaded_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketAuditLogTable(SQLModel, table=True):
    """Compliance trail describing discrete ticket actions."""

    __tablename__ = "ticket_audit_logs"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    action: str = Field(sa_column=Column(String(100), nullable=False))
    user_id: str = Field(sa_column=Column(String(255), nullable=False))
    user_name: str = Field(sa_column=Column(String(255), nullable=False))
    from_status: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    to_status: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    reason: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    metadata_: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class SupplierTable(SQLModel, table=True):
    """Suppliers and their contractual SLA, maintained by the admin console."""

    __tablename__ = "suppliers"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    tenant_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    sla_days: int = Field(sa_column=Column(Integer, nullable=False))
    active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))


class StoreTable(SQLModel, table=True):
    """Stores that receive warranty claims."""

    __tablename__ = "stores"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    tenant_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))


class TenantSettingsTable(SQLModel, table=True):
    """Per-tenant workflow policies."""

    __tablename__ = "tenant_settings"

    tenant_id: str = Field(primary_key=True)
    timezone: str | None = Field(default=None, sa_column=Column(String(64), nullable=True))
    intake_only_own_store: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
