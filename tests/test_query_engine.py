from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from warranty_desk.tickets.errors import TicketValidationError
from warranty_desk.tickets.models import TicketFilter
from warranty_desk.tickets.query import (
    ActionBucket,
    AgendaTab,
    IndexedQueryStrategy,
    ScanAndFilterStrategy,
    build_query_strategy,
    bucket_next_action,
)
from warranty_desk.tickets.state import Role, TicketStatus

from factories import OTHER_TENANT, START, TENANT, TODAY, actor, new_ticket

RECEBEDOR = actor(Role.RECEBEDOR)


async def _create(service, **overrides):
    return await service.create_ticket(TENANT, RECEBEDOR, new_ticket(**overrides))


async def _set(repository, ticket_id, **changes):
    ticket = await repository.get_ticket(ticket_id)
    return await repository.commit_ticket_change(replace(ticket, **changes), expected_version=ticket.version)


async def _collect(query_engine, filters, *, limit):
    pages, cursor = [], None
    while True:
        page = await query_engine.list_tickets(filters, limit=limit, cursor=cursor)
        pages.append([ticket.id for ticket in page.tickets])
        if page.next_cursor is None:
            return pages
        cursor = page.next_cursor


@pytest.mark.asyncio
async def test_listing_is_newest_first_and_tenant_scoped(service, query_engine):
    first = await _create(service)
    second = await _create(service, customer_name="Ana Lima")
    await service.create_ticket(OTHER_TENANT, RECEBEDOR, new_ticket(store_id="store-b"))

    page = await query_engine.list_tickets(TicketFilter(tenant_id=TENANT))

    assert [ticket.id for ticket in page.tickets] == [second.id, first.id]
    assert page.next_cursor is None


@pytest.mark.asyncio
async def test_cursor_pagination_walks_every_ticket_once(service, query_engine):
    created = [await _create(service, sale_number=f"VD-{index}") for index in range(5)]

    pages = await _collect(query_engine, TicketFilter(tenant_id=TENANT), limit=2)

    assert [len(page) for page in pages] == [2, 2, 1]
    assert [ticket_id for page in pages for ticket_id in page] == [ticket.id for ticket in reversed(created)]


@pytest.mark.asyncio
async def test_exact_page_boundary_has_no_next_cursor(service, query_engine):
    for index in range(2):
        await _create(service, sale_number=f"VD-{index}")

    page = await query_engine.list_tickets(TicketFilter(tenant_id=TENANT), limit=2)

    assert len(page.tickets) == 2
    assert page.next_cursor is None


@pytest.mark.asyncio
async def test_bad_cursor_and_limit_are_validation_errors(service, query_engine):
    foreign = await service.create_ticket(OTHER_TENANT, RECEBEDOR, new_ticket(store_id="store-b"))

    with pytest.raises(TicketValidationError):
        await query_engine.list_tickets(TicketFilter(tenant_id=TENANT), cursor="missing")
    with pytest.raises(TicketValidationError):
        await query_engine.list_tickets(TicketFilter(tenant_id=TENANT), cursor=foreign.id)
    with pytest.raises(TicketValidationError):
        await query_engine.list_tickets(TicketFilter(tenant_id=TENANT), limit=0)


@pytest.mark.asyncio
async def test_overdue_only_returns_open_tickets_past_due(service, repository, query_engine):
    late = await _create(service)
    later = await _create(service)
    closed = await _create(service)
    due_today = await _create(service)
    await _create(service)
    await _set(repository, late.id, status=TicketStatus.COBRANCA_ACOMPANHAMENTO, due_date="2024-03-10")
    await _set(repository, later.id, status=TicketStatus.ENTREGA_LOGISTICA, due_date="2024-03-12")
    await _set(repository, closed.id, status=TicketStatus.ENCERRADO, is_closed=True, due_date="2024-03-01")
    await _set(repository, due_today.id, status=TicketStatus.ENTREGA_LOGISTICA, due_date=TODAY)

    page = await query_engine.list_tickets(TicketFilter(tenant_id=TENANT, only_overdue=True))
    assert [ticket.id for ticket in page.tickets] == [late.id, later.id]

    pages = await _collect(query_engine, TicketFilter(tenant_id=TENANT, only_overdue=True), limit=1)
    assert pages == [[late.id], [later.id]]


@pytest.mark.asyncio
async def test_filters_by_status_store_supplier_and_action_today(service, repository, query_engine):
    at_store = await _create(service)
    other_store = await _create(service, store_id="store-a2")
    await _set(repository, at_store.id, status=TicketStatus.INTERNO, supplier_id="S1", next_action_at=TODAY)
    await _set(repository, other_store.id, next_action_at="2024-03-15")

    by_status = await query_engine.list_tickets(TicketFilter(tenant_id=TENANT, status=TicketStatus.INTERNO))
    by_store = await query_engine.list_tickets(TicketFilter(tenant_id=TENANT, store_id="store-a2"))
    by_supplier = await query_engine.list_tickets(TicketFilter(tenant_id=TENANT, supplier_id="S1"))
    action_today = await query_engine.list_tickets(TicketFilter(tenant_id=TENANT, only_action_today=True))

    assert [ticket.id for ticket in by_status.tickets] == [at_store.id]
    assert [ticket.id for ticket in by_store.tickets] == [other_store.id]
    assert [ticket.id for ticket in by_supplier.tickets] == [at_store.id]
    assert [ticket.id for ticket in action_today.tickets] == [at_store.id]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("query", "found"),
    [("silva", True), ("JOSÉ", True), ("12345678909", True), ("11987654321", True), ("5501", True), ("xyz", False)],
)
async def test_search_matches_normalized_tokens(service, query_engine, query, found):
    ticket = await _create(service)

    page = await query_engine.list_tickets(TicketFilter(tenant_id=TENANT, search=query))

    assert [item.id for item in page.tickets] == ([ticket.id] if found else [])


@pytest.mark.asyncio
async def test_agenda_tabs_split_next_actions(service, repository, query_engine):
    today = await _create(service)
    overdue = await _create(service)
    upcoming = await _create(service)
    far = await _create(service)
    intake = await _create(service)
    await _set(repository, today.id, status=TicketStatus.COBRANCA_ACOMPANHAMENTO, next_action_at=TODAY)
    await _set(repository, overdue.id, status=TicketStatus.RESOLUCAO, next_action_at="2024-03-10")
    await _set(repository, upcoming.id, status=TicketStatus.ENTREGA_LOGISTICA, next_action_at="2024-03-18")
    await _set(repository, far.id, status=TicketStatus.COBRANCA_ACOMPANHAMENTO, next_action_at="2024-03-30")
    await _set(repository, intake.id, next_action_at=TODAY)

    hoje = await query_engine.agenda(TENANT, AgendaTab.HOJE)
    atrasadas = await query_engine.agenda(TENANT, "atrasadas")
    proximos = await query_engine.agenda(TENANT, "proximos")

    assert [ticket.id for ticket in hoje.tickets] == [today.id]
    assert [ticket.id for ticket in atrasadas.tickets] == [overdue.id]
    assert [ticket.id for ticket in proximos.tickets] == [upcoming.id]
    with pytest.raises(TicketValidationError):
        await query_engine.agenda(TENANT, "ontem")


@pytest.mark.asyncio
async def test_agenda_calendar_counts_per_day(service, repository, query_engine):
    today = await _create(service)
    overdue = await _create(service)
    upcoming = await _create(service)
    far = await _create(service)
    await _set(repository, today.id, status=TicketStatus.COBRANCA_ACOMPANHAMENTO, next_action_at=TODAY)
    await _set(repository, overdue.id, status=TicketStatus.RESOLUCAO, next_action_at="2024-03-10")
    await _set(repository, upcoming.id, status=TicketStatus.ENTREGA_LOGISTICA, next_action_at="2024-03-18")
    await _set(repository, far.id, status=TicketStatus.COBRANCA_ACOMPANHAMENTO, next_action_at="2024-04-05")

    result = await query_engine.agenda_calendar(TENANT, 2024, 3)

    assert (result.start, result.end) == ("2024-02-25", "2024-04-06")
    assert not result.truncated
    assert result.days[TODAY].today == 1
    assert result.days["2024-03-10"].overdue == 1
    assert result.days["2024-03-18"].next_7_days == 1
    assert result.days["2024-04-05"].total == 1
    assert result.days["2024-04-05"].next_7_days == 0
    with pytest.raises(TicketValidationError):
        await query_engine.agenda_calendar(TENANT, 2024, 13)


@pytest.mark.asyncio
async def test_agenda_calendar_counts_beyond_one_page(service, repository, query_engine):
    for index in range(150):
        ticket = await _create(service, sale_number=f"VD-{index}")
        await _set(repository, ticket.id, status=TicketStatus.COBRANCA_ACOMPANHAMENTO, next_action_at=TODAY)

    result = await query_engine.agenda_calendar(TENANT, 2024, 3)

    assert result.days[TODAY].total == 150
    assert result.days[TODAY].today == 150
    assert not result.truncated


@pytest.mark.asyncio
async def test_public_listing_limit_is_still_capped(query_engine):
    page = await query_engine.list_tickets(TicketFilter(tenant_id=TENANT), limit=1000)

    assert query_engine._page_size(1000) == 100
    assert page.tickets == []


@pytest.mark.asyncio
async def test_agenda_day_lists_single_date(service, repository, query_engine):
    ticket = await _create(service)
    await _set(repository, ticket.id, status=TicketStatus.RESOLUCAO, next_action_at="2024-03-18")

    page = await query_engine.agenda_day(TENANT, "2024-03-18")
    empty = await query_engine.agenda_day(TENANT, "amanhã")

    assert [item.id for item in page.tickets] == [ticket.id]
    assert empty.tickets == [] and empty.next_cursor is None


@pytest.mark.asyncio
async def test_dashboard_counts(service, repository, query_engine):
    action = await _create(service)
    late = await _create(service)
    recent = await _create(service)
    old = await _create(service)
    await _set(repository, action.id, status=TicketStatus.COBRANCA_ACOMPANHAMENTO, next_action_at=TODAY)
    await _set(repository, late.id, status=TicketStatus.ENTREGA_LOGISTICA, due_date="2024-03-01")
    await _set(
        repository,
        recent.id,
        status=TicketStatus.ENCERRADO,
        is_closed=True,
        due_date="2024-03-01",
        closed_at=START - timedelta(days=2),
    )
    await _set(
        repository, old.id, status=TicketStatus.ENCERRADO, is_closed=True, closed_at=START - timedelta(days=45)
    )

    counts = await query_engine.dashboard_counts(TENANT)

    assert counts.actions_today == 1
    assert counts.overdue == 1
    assert counts.resolved_30_days == 1
    assert counts.by_status[TicketStatus.ENCERRADO] == 2
    assert counts.by_status[TicketStatus.RECEBIMENTO] == 0
    assert sum(counts.by_status.values()) == 4


def test_strategy_is_chosen_by_name(repository):
    assert isinstance(build_query_strategy("indexed", repository), IndexedQueryStrategy)
    assert isinstance(build_query_strategy("SCAN", repository), ScanAndFilterStrategy)
    with pytest.raises(ValueError):
        build_query_strategy("fulltext", repository)


@pytest.mark.parametrize(
    ("value", "bucket"),
    [
        ("2024-03-13", ActionBucket.OVERDUE),
        (TODAY, ActionBucket.TODAY),
        ("2024-03-21", ActionBucket.NEXT_7_DAYS),
        ("2024-03-22", None),
        (None, None),
    ],
)
def test_bucket_next_action(value, bucket):
    assert bucket_next_action(value, TODAY) is bucket
