from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from warranty_desk.api.routes import agenda, metrics, ping, tickets
from warranty_desk.core.config import Settings, get_settings
from warranty_desk.core.logging import configure_logging, init_tracer, shutdown_tracer
from warranty_desk.tickets.query import TicketQueryEngine, build_query_strategy
from warranty_desk.tickets.repository import TicketRepository
from warranty_desk.tickets.service import TicketWorkflowService


def _to_async_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses an async driver."""

    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    if dsn.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + dsn[len("sqlite://") :]
    return dsn


def build_services(repository: TicketRepository, settings: Settings) -> tuple[TicketWorkflowService, TicketQueryEngine]:
    service = TicketWorkflowService(repository, default_timezone=settings.default_timezone)
    engine = TicketQueryEngine(
        repository,
        build_query_strategy(settings.query_strategy, repository),
        default_timezone=settings.default_timezone,
        default_limit=settings.default_page_size,
    )
    return service, engine


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.logger = logger
    app.state.tracer_provider = tracer_provider

    db_engine = create_async_engine(_to_async_dsn(settings.database_dsn), echo=settings.database_echo)
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
    repository = TicketRepository(session_factory, engine=db_engine)
    try:
        if settings.create_schema:
            await repository.ensure_schema()
        app.state.workflow_service, app.state.query_engine = build_services(repository, settings)
        app.state.db_engine = db_engine
        logger.info(
            "Warranty desk ready (environment=%s, query strategy=%s)",
            settings.environment,
            settings.query_strategy,
        )
        yield
    finally:
        app.state.workflow_service = None
        app.state.query_engine = None
        await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(metrics.router)
    app.include_router(tickets.router)
    app.include_router(agenda.router)
    return app


app = create_app()
