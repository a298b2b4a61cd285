from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence

from .state import ResolutionResult, Role, TicketStatus


class TimelineType(str, Enum):
    OBS = "OBS"
    LIGACAO = "LIGACAO"
    EMAIL = "EMAIL"
    PRAZO = "PRAZO"
    STATUS_CHANGE = "STATUS_CHANGE"
    DOCUMENTO = "DOCUMENTO"


class AttachmentCategory(str, Enum):
    FOTO_PECA = "FOTO_PECA"
    CUPOM_FISCAL = "CUPOM_FISCAL"
    CERTIFICADO_GARANTIA = "CERTIFICADO_GARANTIA"
    NOTA_GARANTIA = "NOTA_GARANTIA"
    CANHOTO = "CANHOTO"
    OUTRO = "OUTRO"
    ASSINATURA = "ASSINATURA"


class AuditAction(str, Enum):
    TICKET_CREATED = "TICKET_CREATED"
    STATUS_CHANGE = "STATUS_CHANGE"
    ADMIN_REVERT = "ADMIN_REVERT"
    UPLOAD = "UPLOAD"
    TICKET_EDIT = "TICKET_EDIT"


@dataclass(slots=True, frozen=True)
class Actor:
    """Authenticated user on whose behalf an operation runs."""

    id: str
    name: str
    role: Role
    store_id: str | None = None


@dataclass(slots=True, frozen=True)
class StageRecord:
    """A stage reached by a ticket, and when and by whom."""

    status: TicketStatus
    completed_at: datetime
    completed_by: str
    completed_by_name: str


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a warranty claim."""

    id: str
    tenant_id: str
    store_id: str
    status: TicketStatus
    customer_name: str
    customer_document: str
    customer_phone: str
    part_description: str
    defect_description: str
    sale_number: str
    created_by: str
    created_at: datetime
    updated_at: datetime
    version: int = 1
    customer_nickname: str | None = None
    is_whatsapp: bool = False
    quantity: int = 1
    part_ref: str | None = None
    part_code: str | None = None
    supplier_sale_number: str | None = None
    sale_date: str | None = None
    received_date: str | None = None
    notes: str | None = None
    outbound_invoice_number: str | None = None
    return_invoice_number: str | None = None
    sent_to_supplier_date: str | None = None
    supplier_id: str | None = None
    supplier_name: str | None = None
    sla_days: int | None = None
    due_date: str | None = None
    delivered_to_supplier_at: datetime | None = None
    next_action_at: str | None = None
    next_action_note: str | None = None
    supplier_response: str | None = None
    resolution_result: ResolutionResult | None = None
    resolution_notes: str | None = None
    closed_at: datetime | None = None
    is_closed: bool = False
    search_tokens: Sequence[str] = field(default_factory=tuple)
    stage_history: Sequence[StageRecord] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class TimelineEntry:
    """Human-visible event in a ticket's operational narrative."""

    id: str
    ticket_id: str
    type: TimelineType
    text: str
    user_id: str
    user_name: str
    created_at: datetime
    next_action_at: str | None = None
    next_action_note: str | None = None


@dataclass(slots=True, frozen=True)
class Attachment:
    id: str
    ticket_id: str
    category: AttachmentCategory
    name: str
    mime_type: str
    size: int
    storage_file_id: str
    uploaded_by: str
    uploaded_at: datetime


@dataclass(slots=True, frozen=True)
class AuditEntry:
    """Compliance trail entry: who did what, when, and why."""

    id: str
    ticket_id: str
    action: AuditAction
    user_id: str
    user_name: str
    created_at: datetime
    from_status: TicketStatus | None = None
    to_status: TicketStatus | None = None
    reason: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class Supplier:
    id: str
    tenant_id: str
    name: str
    sla_days: int
    active: bool = True


@dataclass(slots=True, frozen=True)
class Store:
    id: str
    tenant_id: str
    name: str
    active: bool = True


@dataclass(slots=True, frozen=True)
class TenantSettings:
    tenant_id: str
    timezone: str | None = None
    intake_only_own_store: bool = False


@dataclass(slots=True, frozen=True)
class ChecklistItem:
    key: str
    label: str
    satisfied: bool
    action: str | None = None
    action_label: str | None = None


@dataclass(slots=True, frozen=True)
class NextTransitionChecklist:
    """Advisory view of what is missing before the next advance."""

    next_status: TicketStatus | None
    can_advance: bool
    items: Sequence[ChecklistItem]


@dataclass(slots=True, frozen=True)
class StageSummary:
    status: TicketStatus
    at: datetime | None = None
    by_name: str | None = None
    last_note: str | None = None
    attachments_preview: Sequence[Attachment] = ()


@dataclass(slots=True, frozen=True)
class NewTicket:
    """Intake payload for a ticket."""

    store_id: str
    customer_name: str
    customer_document: str
    customer_phone: str
    part_description: str
    defect_description: str
    sale_number: str
    customer_nickname: str | None = None
    is_whatsapp: bool = False
    quantity: int = 1
    part_ref: str | None = None
    part_code: str | None = None
    supplier_sale_number: str | None = None
    sale_date: str | None = None
    received_date: str | None = None
    notes: str | None = None
    outbound_invoice_number: str | None = None
    return_invoice_number: str | None = None
    sent_to_supplier_date: str | None = None


@dataclass(slots=True, frozen=True)
class AdvanceRequest:
    """Optional values accompanying a request to move a ticket forward."""

    next_status: TicketStatus | None = None
    note: str | None = None
    supplier_id: str | None = None
    supplier_response: str | None = None
    resolution_result: str | None = None
    resolution_notes: str | None = None


class TicketOrdering(str, Enum):
    CREATED_DESC = "created_desc"
    DUE_DATE_ASC = "due_date_asc"
    NEXT_ACTION_ASC = "next_action_asc"


@dataclass(slots=True, frozen=True)
class TicketFilter:
    """Tenant-scoped ticket selection.

    ``search`` holds an already normalized token and ``today`` the tenant's
    current calendar day; the query engine fills both before handing the
    filter to a strategy.
    """

    tenant_id: str
    status: TicketStatus | None = None
    statuses: tuple[TicketStatus, ...] = ()
    store_id: str | None = None
    supplier_id: str | None = None
    search: str | None = None
    only_overdue: bool = False
    only_action_today: bool = False
    next_action_from: str | None = None
    next_action_to: str | None = None
    today: str = ""

    @property
    def ordering(self) -> TicketOrdering:
        if self.only_overdue:
            return TicketOrdering.DUE_DATE_ASC
        if self.only_action_today or self.next_action_from or self.next_action_to:
            return TicketOrdering.NEXT_ACTION_ASC
        return TicketOrdering.CREATED_DESC


@dataclass(slots=True, frozen=True)
class TicketPage:
    tickets: Sequence[Ticket]
    next_cursor: str | None = None


@dataclass(slots=True)
class TicketDetail:
    """Container bundling the ticket with its derived views."""

    ticket: Ticket
    timeline: Sequence[TimelineEntry]
    attachments: Sequence[Attachment]
    audit: Sequence[AuditEntry]
    checklist: NextTransitionChecklist
    stage_summaries: Mapping[TicketStatus, StageSummary]
