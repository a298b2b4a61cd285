from __future__ import annotations

from fastapi import APIRouter, Query
from pydantic import BaseModel

from warranty_desk.api.errors import to_http_exception
from warranty_desk.api.routes.tickets import TicketPageResponse, to_page_response
from warranty_desk.dependencies.auth import CurrentPrincipal
from warranty_desk.dependencies.tickets import QueryEngineDep
from warranty_desk.tickets.errors import WorkflowError
from warranty_desk.tickets.query import AgendaTab
from warranty_desk.tickets.state import TicketStatus

router = APIRouter(tags=["agenda"])


class CalendarDayResponse(BaseModel):
    total: int
    today: int
    overdue: int
    next_7_days: int


class CalendarResponse(BaseModel):
    start: str
    end: str
    days: dict[str, CalendarDayResponse]
    truncated: bool


class DashboardResponse(BaseModel):
    actions_today: int
    overdue: int
    by_status: dict[TicketStatus, int]
    resolved_30_days: int


@router.get("/agenda", response_model=TicketPageResponse)
async def agenda(
    engine: QueryEngineDep,
    principal: CurrentPrincipal,
    tab: AgendaTab = Query(default=AgendaTab.HOJE),
    store_id: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=100),
    cursor: str | None = Query(default=None),
) -> TicketPageResponse:
    try:
        page = await engine.agenda(principal.tenant_id, tab, store_id=store_id, limit=limit, cursor=cursor)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_page_response(page)


@router.get("/agenda/calendar", response_model=CalendarResponse)
async def agenda_calendar(
    engine: QueryEngineDep,
    principal: CurrentPrincipal,
    year: int = Query(..., ge=1),
    month: int = Query(..., ge=1, le=12),
    store_id: str | None = Query(default=None),
) -> CalendarResponse:
    try:
        result = await engine.agenda_calendar(principal.tenant_id, year, month, store_id=store_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return CalendarResponse(
        start=result.start,
        end=result.end,
        truncated=result.truncated,
        days={
            key: CalendarDayResponse(
                total=day.total, today=day.today, overdue=day.overdue, next_7_days=day.next_7_days
            )
            for key, day in result.days.items()
        },
    )


@router.get("/agenda/day", response_model=TicketPageResponse)
async def agenda_day(
    engine: QueryEngineDep,
    principal: CurrentPrincipal,
    date: str = Query(..., min_length=1),
    store_id: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=100),
    cursor: str | None = Query(default=None),
) -> TicketPageResponse:
    try:
        page = await engine.agenda_day(principal.tenant_id, date, store_id=store_id, limit=limit, cursor=cursor)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_page_response(page)


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    engine: QueryEngineDep,
    principal: CurrentPrincipal,
    store_id: str | None = Query(default=None),
) -> DashboardResponse:
    counts = await engine.dashboard_counts(principal.tenant_id, store_id=store_id)
    return DashboardResponse(
        actions_today=counts.actions_today,
        overdue=counts.overdue,
        by_status=counts.by_status,
        resolved_30_days=counts.resolved_30_days,
    )
