from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from warranty_desk.api.errors import to_http_exception
from warranty_desk.dependencies.auth import AdminPrincipal, CurrentPrincipal
from warranty_desk.dependencies.tickets import QueryEngineDep, WorkflowServiceDep
from warranty_desk.tickets.errors import WorkflowError
from warranty_desk.tickets.models import (
    AdvanceRequest,
    AttachmentCategory,
    AuditAction,
    NewTicket,
    Ticket,
    TicketFilter,
    TicketPage,
    TimelineType,
)
from warranty_desk.tickets.state import ResolutionResult, TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    store_id: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_nickname: str | None = Field(default=None, max_length=255)
    customer_document: str = Field(..., min_length=11, max_length=18)
    customer_phone: str = Field(..., min_length=10, max_length=20)
    is_whatsapp: bool = False
    part_description: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)
    part_ref: str | None = None
    part_code: str | None = None
    defect_description: str = Field(..., min_length=1)
    sale_number: str = Field(..., min_length=1, max_length=100)
    supplier_sale_number: str | None = None
    sale_date: str | None = None
    received_date: str | None = None
    notes: str | None = None
    outbound_invoice_number: str | None = None
    return_invoice_number: str | None = None
    sent_to_supplier_date: str | None = None


class TicketUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    store_id: str | None = None
    customer_name: str | None = None
    customer_nickname: str | None = None
    customer_document: str | None = None
    customer_phone: str | None = None
    is_whatsapp: bool | None = None
    part_description: str | None = None
    quantity: int | None = Field(default=None, ge=1)
    part_ref: str | None = None
    part_code: str | None = None
    defect_description: str | None = None
    sale_number: str | None = None
    supplier_sale_number: str | None = None
    notes: str | None = None
    outbound_invoice_number: str | None = None
    return_invoice_number: str | None = None
    sent_to_supplier_date: str | None = None
    supplier_id: str | None = None


class AdvanceTicketRequest(BaseModel):
    next_status: TicketStatus | None = None
    note: str | None = Field(default=None, max_length=2000)
    supplier_id: str | None = None
    supplier_response: str | None = None
    # Kept as a plain string so an unknown value reaches the requirement check.
    resolution_result: str | None = None
    resolution_notes: str | None = None


class RevertTicketRequest(BaseModel):
    target_status: TicketStatus
    reason: str = ""


class TimelineEntryRequest(BaseModel):
    type: TimelineType
    text: str
    next_action_at: str | None = None
    next_action_note: str | None = None


class AttachmentRequest(BaseModel):
    category: AttachmentCategory
    name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=100)
    size: int = Field(..., ge=0)
    storage_file_id: str = Field(..., min_length=1)


class StageRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: TicketStatus
    completed_at: datetime
    completed_by: str
    completed_by_name: str


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    store_id: str
    status: TicketStatus
    version: int
    customer_name: str
    customer_nickname: str | None
    customer_document: str
    customer_phone: str
    is_whatsapp: bool
    part_description: str
    quantity: int
    part_ref: str | None
    part_code: str | None
    defect_description: str
    sale_number: str
    supplier_sale_number: str | None
    sale_date: str | None
    received_date: str | None
    notes: str | None
    outbound_invoice_number: str | None
    return_invoice_number: str | None
    sent_to_supplier_date: str | None
    supplier_id: str | None
    supplier_name: str | None
    sla_days: int | None
    due_date: str | None
    delivered_to_supplier_at: datetime | None
    next_action_at: str | None
    next_action_note: str | None
    supplier_response: str | None
    resolution_result: ResolutionResult | None
    resolution_notes: str | None
    closed_at: datetime | None
    is_closed: bool
    stage_history: list[StageRecordResponse]
    created_by: str
    created_at: datetime
    updated_at: datetime


class TicketPageResponse(BaseModel):
    tickets: list[TicketResponse]
    next_cursor: str | None = None


class TimelineEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    type: TimelineType
    text: str
    user_id: str
    user_name: str
    next_action_at: str | None
    next_action_note: str | None
    created_at: datetime


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    category: AttachmentCategory
    name: str
    mime_type: str
    size: int
    storage_file_id: str
    uploaded_by: str
    uploaded_at: datetime


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    action: AuditAction
    user_id: str
    user_name: str
    from_status: TicketStatus | None
    to_status: TicketStatus | None
    reason: str | None
    metadata: dict[str, Any]
    created_at: datetime


class ChecklistItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    label: str
    satisfied: bool
    action: str | None
    action_label: str | None


class ChecklistResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    next_status: TicketStatus | None
    can_advance: bool
    items: list[ChecklistItemResponse]


class StageSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: TicketStatus
    at: datetime | None
    by_name: str | None
    last_note: str | None
    attachments_preview: list[AttachmentResponse]


class TicketDetailResponse(BaseModel):
    ticket: TicketResponse
    timeline: list[TimelineEntryResponse]
    attachments: list[AttachmentResponse]
    audit: list[AuditEntryResponse]
    checklist: ChecklistResponse
    stage_summaries: list[StageSummaryResponse]


def to_ticket_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def to_page_response(page: TicketPage) -> TicketPageResponse:
    return TicketPageResponse(
        tickets=[to_ticket_response(ticket) for ticket in page.tickets],
        next_cursor=page.next_cursor,
    )


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreateRequest,
    service: WorkflowServiceDep,
    principal: CurrentPrincipal,
) -> TicketResponse:
    try:
        ticket = await service.create_ticket(principal.tenant_id, principal.actor, NewTicket(**payload.model_dump()))
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_ticket_response(ticket)


@router.get("", response_model=TicketPageResponse)
async def list_tickets(
    engine: QueryEngineDep,
    principal: CurrentPrincipal,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    store_id: str | None = Query(default=None),
    supplier_id: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    only_overdue: bool = Query(default=False),
    only_action_today: bool = Query(default=False),
    limit: int | None = Query(default=None, ge=1, le=100),
    cursor: str | None = Query(default=None),
) -> TicketPageResponse:
    filters = TicketFilter(
        tenant_id=principal.tenant_id,
        status=status_filter,
        store_id=store_id,
        supplier_id=supplier_id,
        search=search,
        only_overdue=only_overdue,
        only_action_today=only_action_today,
    )
    try:
        page = await engine.list_tickets(filters, limit=limit, cursor=cursor)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_page_response(page)


@router.get("/{ticket_id}", response_model=TicketDetailResponse)
async def get_ticket(ticket_id: str, service: WorkflowServiceDep, principal: CurrentPrincipal) -> TicketDetailResponse:
    try:
        detail = await service.get_detail(ticket_id, principal.tenant_id, principal.actor)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailResponse(
        ticket=to_ticket_response(detail.ticket),
        timeline=[TimelineEntryResponse.model_validate(entry) for entry in detail.timeline],
        attachments=[AttachmentResponse.model_validate(item) for item in detail.attachments],
        audit=[AuditEntryResponse.model_validate(entry) for entry in detail.audit],
        checklist=ChecklistResponse.model_validate(detail.checklist),
        stage_summaries=[StageSummaryResponse.model_validate(item) for item in detail.stage_summaries.values()],
    )


@router.patch("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdateRequest,
    service: WorkflowServiceDep,
    principal: CurrentPrincipal,
) -> TicketResponse:
    try:
        ticket = await service.update_details(
            ticket_id, principal.tenant_id, principal.actor, payload.model_dump(exclude_unset=True)
        )
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_ticket_response(ticket)


@router.post("/{ticket_id}/advance", response_model=TicketResponse)
async def advance_ticket(
    ticket_id: str,
    payload: AdvanceTicketRequest,
    service: WorkflowServiceDep,
    principal: CurrentPrincipal,
) -> TicketResponse:
    try:
        ticket = await service.advance(
            ticket_id, principal.tenant_id, principal.actor, AdvanceRequest(**payload.model_dump())
        )
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_ticket_response(ticket)


@router.post("/{ticket_id}/revert", response_model=TicketResponse)
async def revert_ticket(
    ticket_id: str,
    payload: RevertTicketRequest,
    service: WorkflowServiceDep,
    principal: CurrentPrincipal,
) -> TicketResponse:
    try:
        ticket = await service.revert(
            ticket_id, principal.tenant_id, principal.actor, payload.target_status, payload.reason
        )
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_ticket_response(ticket)


@router.get("/{ticket_id}/checklist", response_model=ChecklistResponse)
async def get_checklist(ticket_id: str, service: WorkflowServiceDep, principal: CurrentPrincipal) -> ChecklistResponse:
    try:
        checklist = await service.get_checklist(ticket_id, principal.tenant_id, principal.actor)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return ChecklistResponse.model_validate(checklist)


@router.get("/{ticket_id}/stages", response_model=list[StageSummaryResponse])
async def get_stage_summaries(
    ticket_id: str, service: WorkflowServiceDep, principal: CurrentPrincipal
) -> list[StageSummaryResponse]:
    try:
        summaries = await service.get_stage_summaries(ticket_id, principal.tenant_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return [StageSummaryResponse.model_validate(item) for item in summaries.values()]


@router.get("/{ticket_id}/timeline", response_model=list[TimelineEntryResponse])
async def list_timeline(
    ticket_id: str, service: WorkflowServiceDep, principal: CurrentPrincipal
) -> list[TimelineEntryResponse]:
    try:
        entries = await service.list_timeline(ticket_id, principal.tenant_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return [TimelineEntryResponse.model_validate(entry) for entry in entries]


@router.post("/{ticket_id}/timeline", response_model=TimelineEntryResponse, status_code=status.HTTP_201_CREATED)
async def add_timeline_entry(
    ticket_id: str,
    payload: TimelineEntryRequest,
    service: WorkflowServiceDep,
    principal: CurrentPrincipal,
) -> TimelineEntryResponse:
    try:
        entry = await service.add_timeline_entry(
            ticket_id,
            principal.tenant_id,
            principal.actor,
            entry_type=payload.type,
            text=payload.text,
            next_action_at=payload.next_action_at,
            next_action_note=payload.next_action_note,
        )
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return TimelineEntryResponse.model_validate(entry)


@router.get("/{ticket_id}/attachments", response_model=list[AttachmentResponse])
async def list_attachments(
    ticket_id: str, service: WorkflowServiceDep, principal: CurrentPrincipal
) -> list[AttachmentResponse]:
    try:
        attachments = await service.list_attachments(ticket_id, principal.tenant_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return [AttachmentResponse.model_validate(item) for item in attachments]


@router.post("/{ticket_id}/attachments", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
async def register_attachment(
    ticket_id: str,
    payload: AttachmentRequest,
    service: WorkflowServiceDep,
    principal: CurrentPrincipal,
) -> AttachmentResponse:
    try:
        attachment = await service.register_attachment(
            ticket_id, principal.tenant_id, principal.actor, **payload.model_dump()
        )
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return AttachmentResponse.model_validate(attachment)


@router.get("/{ticket_id}/audit", response_model=list[AuditEntryResponse])
async def list_audit(
    ticket_id: str, service: WorkflowServiceDep, principal: AdminPrincipal
) -> list[AuditEntryResponse]:
    try:
        entries = await service.list_audit(ticket_id, principal.tenant_id, principal.actor)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return [AuditEntryResponse.model_validate(entry) for entry in entries]
