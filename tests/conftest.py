from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from warranty_desk.db.models import StoreTable, SupplierTable, TenantSettingsTable
from warranty_desk.tickets.models import Actor
from warranty_desk.tickets.query import TicketQueryEngine, build_query_strategy
from warranty_desk.tickets.repository import TicketRepository
from warranty_desk.tickets.service import TicketWorkflowService
from warranty_desk.tickets.state import Role

from factories import OTHER_TENANT, TENANT, SteppingClock, actor


@pytest_asyncio.fixture
async def engine() -> AsyncEngine:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        async with session.begin():
            session.add_all(
                [
                    StoreTable(id="store-a", tenant_id=TENANT, name="Loja Centro"),
                    StoreTable(id="store-a2", tenant_id=TENANT, name="Loja Norte"),
                    StoreTable(id="store-b", tenant_id=OTHER_TENANT, name="Outra Loja"),
                    SupplierTable(id="S1", tenant_id=TENANT, name="Auto Peças Sul", sla_days=10),
                    SupplierTable(id="S2", tenant_id=TENANT, name="Distribuidora Leste", sla_days=5),
                    SupplierTable(id="S9", tenant_id=OTHER_TENANT, name="Fornecedor B", sla_days=3),
                    TenantSettingsTable(
                        tenant_id=TENANT, timezone="America/Sao_Paulo", intake_only_own_store=False
                    ),
                ]
            )
    return factory


@pytest.fixture
def repository(session_factory: async_sessionmaker, engine: AsyncEngine) -> TicketRepository:
    return TicketRepository(session_factory, engine=engine)


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def service(repository: TicketRepository, clock: SteppingClock) -> TicketWorkflowService:
    return TicketWorkflowService(repository, clock=clock)


@pytest.fixture(params=["indexed", "scan"])
def query_engine(request, repository: TicketRepository, clock: SteppingClock) -> TicketQueryEngine:
    return TicketQueryEngine(repository, build_query_strategy(request.param, repository), clock=clock)


@pytest.fixture
def admin() -> Actor:
    return actor(Role.ADMIN)
