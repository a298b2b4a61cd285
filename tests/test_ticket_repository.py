from __future__ import annotations

from dataclasses import replace

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import select

from warranty_desk.db.models import TicketSearchTokenTable
from warranty_desk.tickets.models import AttachmentCategory
from warranty_desk.tickets.repository import TicketRepository
from warranty_desk.tickets.search import build_search_tokens
from warranty_desk.tickets.state import Role, TicketStatus

from factories import OTHER_TENANT, TENANT, actor, new_ticket


async def _token_rows(session_factory, ticket_id):
    async with session_factory() as session:
        result = await session.execute(
            select(TicketSearchTokenTable.token).where(TicketSearchTokenTable.ticket_id == ticket_id)
        )
        return set(result.scalars().all())


@pytest.mark.asyncio
async def test_ensure_schema_creates_tables():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    repository = TicketRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)
    try:
        await repository.ensure_schema()
        async with engine.connect() as connection:
            tables = await connection.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
    finally:
        await engine.dispose()

    assert {
        "tickets",
        "ticket_search_tokens",
        "ticket_stage_history",
        "ticket_timeline",
        "ticket_attachments",
        "ticket_audit_logs",
        "stores",
        "suppliers",
        "tenant_settings",
    } <= tables


@pytest.mark.asyncio
async def test_ensure_schema_requires_engine(session_factory):
    repository = TicketRepository(session_factory)

    with pytest.raises(RuntimeError):
        await repository.ensure_schema()


@pytest.mark.asyncio
async def test_created_ticket_round_trips_with_tokens(service, repository, session_factory):
    ticket = await service.create_ticket(TENANT, actor(Role.RECEBEDOR), new_ticket(part_ref="Ref 7"))

    stored = await repository.get_ticket(ticket.id)

    assert stored is not None
    assert stored.status is TicketStatus.RECEBIMENTO
    assert stored.created_at == ticket.created_at
    assert stored.part_ref == "Ref 7"
    assert tuple(stored.search_tokens) == tuple(ticket.search_tokens)
    assert await _token_rows(session_factory, ticket.id) == set(ticket.search_tokens)
    assert [item.id for item in await repository.list_tenant_tickets(TENANT)] == [ticket.id]
    assert await repository.list_tenant_tickets(OTHER_TENANT) == []
    assert await repository.get_ticket("missing") is None


@pytest.mark.asyncio
async def test_commit_replaces_token_rows_when_requested(service, repository, session_factory):
    ticket = await service.create_ticket(TENANT, actor(Role.RECEBEDOR), new_ticket())
    tokens = tuple(build_search_tokens(customer_name="Carla Dias", customer_document="98765432100"))

    updated = await repository.commit_ticket_change(
        replace(ticket, customer_name="Carla Dias", search_tokens=tokens),
        expected_version=ticket.version,
        tokens_changed=True,
    )

    assert updated.version == ticket.version + 1
    assert await _token_rows(session_factory, ticket.id) == set(tokens)


@pytest.mark.asyncio
async def test_stage_rows_are_loaded_in_order(service, repository):
    ticket = await service.create_ticket(TENANT, actor(Role.RECEBEDOR), new_ticket())
    await service.advance(ticket.id, TENANT, actor(Role.RECEBEDOR))

    stored = await repository.get_ticket(ticket.id)
    listed = await repository.list_tenant_tickets(TENANT)

    assert [record.status for record in stored.stage_history] == [TicketStatus.RECEBIMENTO, TicketStatus.INTERNO]
    assert listed[0].stage_history == stored.stage_history


@pytest.mark.asyncio
async def test_lookups_are_tenant_checked(repository):
    assert (await repository.get_supplier("S1", TENANT)).sla_days == 10
    assert await repository.get_supplier("S9", TENANT) is None
    assert (await repository.get_store("store-b", OTHER_TENANT)).name == "Outra Loja"
    assert await repository.get_store("store-b", TENANT) is None
    settings = await repository.get_tenant_settings(TENANT)
    assert settings.timezone == "America/Sao_Paulo"
    assert await repository.get_tenant_settings(OTHER_TENANT) is None


@pytest.mark.asyncio
async def test_attachment_existence_check(service, repository):
    ticket = await service.create_ticket(TENANT, actor(Role.RECEBEDOR), new_ticket())
    await service.register_attachment(
        ticket.id,
        TENANT,
        actor(Role.LOGISTICA),
        category=AttachmentCategory.CANHOTO,
        name="canhoto.png",
        mime_type="image/png",
        size=10,
        storage_file_id="f-1",
    )

    assert await repository.has_attachment(ticket.id, AttachmentCategory.CANHOTO)
    assert not await repository.has_attachment(ticket.id, AttachmentCategory.NOTA_GARANTIA)
