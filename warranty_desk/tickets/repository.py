from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence

from sqlalchemy import and_, delete, or_, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from warranty_desk.db.models import (
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

from .errors import ConcurrentTicketUpdateError
from .models import (
    Attachment,
    AttachmentCategory,
    AuditAction,
    AuditEntry,
    StageRecord,
    Store,
    Supplier,
    TenantSettings,
    Ticket,
    TicketFilter,
    TicketOrdering,
    TimelineEntry,
    TimelineType,
)
from .state import ResolutionResult, TicketStatus

logger = logging.getLogger(__name__)

# Columns written on every ticket update; identity and creation fields stay fixed.
_MUTABLE_TICKET_FIELDS: tuple[str, ...] = (
    "store_id",
    "status",
    "customer_name",
    "customer_nickname",
    "customer_document",
    "customer_phone",
    "is_whatsapp",
    "part_description",
    "quantity",
    "part_ref",
    "part_code",
    "defect_description",
    "sale_number",
    "supplier_sale_number",
    "sale_date",
    "received_date",
    "notes",
    "outbound_invoice_number",
    "return_invoice_number",
    "sent_to_supplier_date",
    "supplier_id",
    "supplier_name",
    "sla_days",
    "due_date",
    "delivered_to_supplier_at",
    "next_action_at",
    "next_action_note",
    "supplier_response",
    "resolution_result",
    "resolution_notes",
    "closed_at",
    "is_closed",
    "search_tokens",
    "updated_at",
)


class TicketStore(Protocol):
    """Persistence contract the workflow service and query engine depend on."""

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        ...

    async def create_ticket(self, ticket: Ticket, timeline: TimelineEntry, audit: AuditEntry) -> None:
        ...

    async def commit_ticket_change(
        self,
        ticket: Ticket,
        *,
        expected_version: int,
        new_stage: StageRecord | None = None,
        timeline: Sequence[TimelineEntry] = (),
        audit: Sequence[AuditEntry] = (),
        tokens_changed: bool = False,
    ) -> Ticket:
        ...

    async def append_timeline(self, entry: TimelineEntry) -> None:
        ...

    async def add_attachment(self, attachment: Attachment, audit: AuditEntry) -> None:
        ...

    async def has_attachment(self, ticket_id: str, category: AttachmentCategory) -> bool:
        ...

    async def list_timeline(self, ticket_id: str) -> list[TimelineEntry]:
        ...

    async def list_attachments(self, ticket_id: str) -> list[Attachment]:
        ...

    async def list_audit(self, ticket_id: str) -> list[AuditEntry]:
        ...

    async def get_supplier(self, supplier_id: str, tenant_id: str) -> Supplier | None:
        ...

    async def get_store(self, store_id: str, tenant_id: str) -> Store | None:
        ...

    async def get_tenant_settings(self, tenant_id: str) -> TenantSettings | None:
        ...

    async def fetch_tickets(self, filters: TicketFilter, *, limit: int, after: Ticket | None = None) -> list[Ticket]:
        ...

    async def list_tenant_tickets(self, tenant_id: str, *, store_id: str | None = None) -> list[Ticket]:
        ...


class TicketRepository:
    """SQLModel persistence for tickets and their child collections."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            history = await self._load_history(session, [ticket_id])
        return self._table_to_ticket(row, history.get(ticket_id, []))

    async def create_ticket(self, ticket: Ticket, timeline: TimelineEntry, audit: AuditEntry) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(TicketTable(id=ticket.id, tenant_id=ticket.tenant_id, created_by=ticket.created_by,
                                        created_at=_utc(ticket.created_at), version=ticket.version,
                                        **self._ticket_values(ticket)))
                # The ticket row must exist before child rows reference it.
                await session.flush()
                for position, record in enumerate(ticket.stage_history):
                    session.add(self._stage_to_table(ticket.id, position, record))
                self._add_tokens(session, ticket)
                session.add(self._timeline_to_table(timeline))
                session.add(self._audit_to_table(audit))
        logger.debug("Created ticket %s for tenant %s", ticket.id, ticket.tenant_id)

    async def commit_ticket_change(
        self,
        ticket: Ticket,
        *,
        expected_version: int,
        new_stage: StageRecord | None = None,
        timeline: Sequence[TimelineEntry] = (),
        audit: Sequence[AuditEntry] = (),
        tokens_changed: bool = False,
    ) -> Ticket:
        """Persist ``ticket`` and its appended records in one transaction.

        The row update only applies while the stored version still equals
        ``expected_version``; otherwise nothing is written and
        :class:`ConcurrentTicketUpdateError` is raised.
        """

        new_version = expected_version + 1
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(TicketTable)
                    .where(TicketTable.id == ticket.id, TicketTable.version == expected_version)
                    .values(version=new_version, **self._ticket_values(ticket))
                )
                if result.rowcount != 1:
                    logger.warning(
                        "Version check failed for ticket %s (expected %s)", ticket.id, expected_version
                    )
                    raise ConcurrentTicketUpdateError(
                        f"Ticket {ticket.id} was modified concurrently; reload and try again"
                    )
                if new_stage is not None:
                    session.add(self._stage_to_table(ticket.id, len(ticket.stage_history) - 1, new_stage))
                if tokens_changed:
                    await session.execute(
                        delete(TicketSearchTokenTable).where(TicketSearchTokenTable.ticket_id == ticket.id)
                    )
                    self._add_tokens(session, ticket)
                for entry in timeline:
                    session.add(self._timeline_to_table(entry))
                for item in audit:
                    session.add(self._audit_to_table(item))
        ticket.version = new_version
        return ticket

    async def append_timeline(self, entry: TimelineEntry) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(self._timeline_to_table(entry))

    async def add_attachment(self, attachment: Attachment, audit: AuditEntry) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    TicketAttachmentTable(
                        id=attachment.id,
                        ticket_id=attachment.ticket_id,
                        category=attachment.category.value,
                        name=attachment.name,
                        mime_type=attachment.mime_type,
                        size=attachment.size,
                        storage_file_id=attachment.storage_file_id,
                        uploaded_by=attachment.uploaded_by,
                        uploaded_at=_utc(attachment.uploaded_at),
                    )
                )
                session.add(self._audit_to_table(audit))

    async def has_attachment(self, ticket_id: str, category: AttachmentCategory) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketAttachmentTable.id)
                .where(
                    TicketAttachmentTable.ticket_id == ticket_id,
                    TicketAttachmentTable.category == category.value,
                )
                .limit(1)
            )
            return result.first() is not None

    async def list_timeline(self, ticket_id: str) -> list[TimelineEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketTimelineTable)
                .where(TicketTimelineTable.ticket_id == ticket_id)
                .order_by(TicketTimelineTable.created_at.desc())
            )
            return [self._table_to_timeline(row) for row in result.scalars().all()]

    async def list_attachments(self, ticket_id: str) -> list[Attachment]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketAttachmentTable)
                .where(TicketAttachmentTable.ticket_id == ticket_id)
                .order_by(TicketAttachmentTable.uploaded_at.desc())
            )
            return [self._table_to_attachment(row) for row in result.scalars().all()]

    async def list_audit(self, ticket_id: str) -> list[AuditEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketAuditLogTable)
                .where(TicketAuditLogTable.ticket_id == ticket_id)
                .order_by(TicketAuditLogTable.created_at.desc())
            )
            return [self._table_to_audit(row) for row in result.scalars().all()]

    async def get_supplier(self, supplier_id: str, tenant_id: str) -> Supplier | None:
        async with self._session_factory() as session:
            row = await session.get(SupplierTable, supplier_id)
        if row is None or row.tenant_id != tenant_id:
            return None
        return Supplier(id=row.id, tenant_id=row.tenant_id, name=row.name, sla_days=row.sla_days, active=row.active)

    async def get_store(self, store_id: str, tenant_id: str) -> Store | None:
        async with self._session_factory() as session:
            row = await session.get(StoreTable, store_id)
        if row is None or row.tenant_id != tenant_id:
            return None
        return Store(id=row.id, tenant_id=row.tenant_id, name=row.name, active=row.active)

    async def get_tenant_settings(self, tenant_id: str) -> TenantSettings | None:
        async with self._session_factory() as session:
            row = await session.get(TenantSettingsTable, tenant_id)
        if row is None:
            return None
        return TenantSettings(
            tenant_id=row.tenant_id,
            timezone=row.timezone,
            intake_only_own_store=row.intake_only_own_store,
        )

    async def fetch_tickets(self, filters: TicketFilter, *, limit: int, after: Ticket | None = None) -> list[Ticket]:
        """Filtered, ordered, keyset-paginated page computed by the database."""

        statement = select(TicketTable).where(*self._filter_clauses(filters))
        ordering = filters.ordering
        if ordering is TicketOrdering.DUE_DATE_ASC:
            sort_column = TicketTable.due_date
        elif ordering is TicketOrdering.NEXT_ACTION_ASC:
            sort_column = TicketTable.next_action_at
        else:
            sort_column = TicketTable.created_at

        if ordering is TicketOrdering.CREATED_DESC:
            if after is not None:
                cursor_value = _utc(after.created_at)
                statement = statement.where(
                    or_(sort_column < cursor_value, and_(sort_column == cursor_value, TicketTable.id < after.id))
                )
            statement = statement.order_by(sort_column.desc(), TicketTable.id.desc())
        else:
            if after is not None:
                cursor_value = after.due_date if ordering is TicketOrdering.DUE_DATE_ASC else after.next_action_at
                statement = statement.where(
                    or_(sort_column > cursor_value, and_(sort_column == cursor_value, TicketTable.id > after.id))
                )
            statement = statement.order_by(sort_column.asc(), TicketTable.id.asc())

        async with self._session_factory() as session:
            result = await session.execute(statement.limit(limit))
            rows = list(result.scalars().all())
            history = await self._load_history(session, [row.id for row in rows])
        return [self._table_to_ticket(row, history.get(row.id, [])) for row in rows]

    async def list_tenant_tickets(self, tenant_id: str, *, store_id: str | None = None) -> list[Ticket]:
        """Every ticket of a tenant, unordered; used by in-memory query paths."""

        statement = select(TicketTable).where(TicketTable.tenant_id == tenant_id)
        if store_id:
            statement = statement.where(TicketTable.store_id == store_id)
        async with self._session_factory() as session:
            result = await session.execute(statement)
            rows = list(result.scalars().all())
            history = await self._load_history(session, [row.id for row in rows])
        return [self._table_to_ticket(row, history.get(row.id, [])) for row in rows]

    @staticmethod
    def _filter_clauses(filters: TicketFilter) -> list[Any]:
        clauses: list[Any] = [TicketTable.tenant_id == filters.tenant_id]
        if filters.status is not None:
            clauses.append(TicketTable.status == filters.status.value)
        if filters.statuses:
            clauses.append(TicketTable.status.in_([status.value for status in filters.statuses]))
        if filters.store_id:
            clauses.append(TicketTable.store_id == filters.store_id)
        if filters.supplier_id:
            clauses.append(TicketTable.supplier_id == filters.supplier_id)
        if filters.search:
            clauses.append(
                TicketTable.id.in_(
                    select(TicketSearchTokenTable.ticket_id).where(
                        TicketSearchTokenTable.tenant_id == filters.tenant_id,
                        TicketSearchTokenTable.token == filters.search,
                    )
                )
            )
        if filters.only_overdue:
            clauses.extend(
                [
                    TicketTable.is_closed.is_(False),
                    TicketTable.due_date.is_not(None),
                    TicketTable.due_date < filters.today,
                ]
            )
        if filters.only_action_today:
            clauses.append(TicketTable.next_action_at == filters.today)
        if filters.next_action_from:
            clauses.append(TicketTable.next_action_at >= filters.next_action_from)
        if filters.next_action_to:
            clauses.append(TicketTable.next_action_at <= filters.next_action_to)
        return clauses

    @staticmethod
    async def _load_history(session: AsyncSession, ticket_ids: Sequence[str]) -> dict[str, list[StageRecord]]:
        if not ticket_ids:
            return {}
        result = await session.execute(
            select(TicketStageTable)
            .where(TicketStageTable.ticket_id.in_(list(ticket_ids)))
            .order_by(TicketStageTable.ticket_id, TicketStageTable.position.asc())
        )
        history: dict[str, list[StageRecord]] = {}
        for row in result.scalars().all():
            history.setdefault(row.ticket_id, []).append(
                StageRecord(
                    status=TicketStatus(row.status),
                    completed_at=_ensure_datetime(row.completed_at),
                    completed_by=row.completed_by,
                    completed_by_name=row.completed_by_name,
                )
            )
        return history

    @staticmethod
    def _add_tokens(session: AsyncSession, ticket: Ticket) -> None:
        for token in dict.fromkeys(ticket.search_tokens):
            session.add(TicketSearchTokenTable(ticket_id=ticket.id, token=token, tenant_id=ticket.tenant_id))

    @staticmethod
    def _ticket_values(ticket: Ticket) -> dict[str, Any]:
        values: dict[str, Any] = {name: getattr(ticket, name) for name in _MUTABLE_TICKET_FIELDS}
        values["status"] = ticket.status.value
        values["resolution_result"] = ticket.resolution_result.value if ticket.resolution_result else None
        values["search_tokens"] = list(ticket.search_tokens)
        for name in ("delivered_to_supplier_at", "closed_at", "updated_at"):
            if values[name] is not None:
                values[name] = _utc(values[name])
        return values

    @staticmethod
    def _stage_to_table(ticket_id: str, position: int, record: StageRecord) -> TicketStageTable:
        return TicketStageTable(
            ticket_id=ticket_id,
            position=position,
            status=record.status.value,
            completed_by=record.completed_by,
            completed_by_name=record.completed_by_name,
            completed_at=_utc(record.completed_at),
        )

    @staticmethod
    def _timeline_to_table(entry: TimelineEntry) -> TicketTimelineTable:
        return TicketTimelineTable(
            id=entry.id,
            ticket_id=entry.ticket_id,
            type=entry.type.value,
            text=entry.text,
            user_id=entry.user_id,
            user_name=entry.user_name,
            next_action_at=entry.next_action_at,
            next_action_note=entry.next_action_note,
            created_at=_utc(entry.created_at),
        )

    @staticmethod
    def _audit_to_table(entry: AuditEntry) -> TicketAuditLogTable:
        return TicketAuditLogTable(
            id=entry.id,
            ticket_id=entry.ticket_id,
            action=entry.action.value,
            user_id=entry.user_id,
            user_name=entry.user_name,
            from_status=entry.from_status.value if entry.from_status else None,
            to_status=entry.to_status.value if entry.to_status else None,
            reason=entry.reason,
            metadata_=dict(entry.metadata),
            created_at=_utc(entry.created_at),
        )

    @staticmethod
    def _table_to_ticket(row: TicketTable, history: Sequence[StageRecord]) -> Ticket:
        return Ticket(
            id=row.id,
            tenant_id=row.tenant_id,
            store_id=row.store_id,
            status=TicketStatus(row.status),
            version=row.version,
            customer_name=row.customer_name,
            customer_nickname=row.customer_nickname,
            customer_document=row.customer_document,
            customer_phone=row.customer_phone,
            is_whatsapp=bool(row.is_whatsapp),
            part_description=row.part_description,
            quantity=row.quantity,
            part_ref=row.part_ref,
            part_code=row.part_code,
            defect_description=row.defect_description,
            sale_number=row.sale_number,
            supplier_sale_number=row.supplier_sale_number,
            sale_date=row.sale_date,
            received_date=row.received_date,
            notes=row.notes,
            outbound_invoice_number=row.outbound_invoice_number,
            return_invoice_number=row.return_invoice_number,
            sent_to_supplier_date=row.sent_to_supplier_date,
            supplier_id=row.supplier_id,
            supplier_name=row.supplier_name,
            sla_days=row.sla_days,
            due_date=row.due_date,
            delivered_to_supplier_at=_optional_datetime(row.delivered_to_supplier_at),
            next_action_at=row.next_action_at,
            next_action_note=row.next_action_note,
            supplier_response=row.supplier_response,
            resolution_result=ResolutionResult(row.resolution_result) if row.resolution_result else None,
            resolution_notes=row.resolution_notes,
            closed_at=_optional_datetime(row.closed_at),
            is_closed=bool(row.is_closed),
            search_tokens=tuple(row.search_tokens or ()),
            stage_history=tuple(history),
            created_by=row.created_by,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
        )

    @staticmethod
    def _table_to_timeline(row: TicketTimelineTable) -> TimelineEntry:
        return TimelineEntry(
            id=row.id,
            ticket_id=row.ticket_id,
            type=TimelineType(row.type),
            text=row.text,
            user_id=row.user_id,
            user_name=row.user_name,
            next_action_at=row.next_action_at,
            next_action_note=row.next_action_note,
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_attachment(row: TicketAttachmentTable) -> Attachment:
        return Attachment(
            id=row.id,
            ticket_id=row.ticket_id,
            category=AttachmentCategory(row.category),
            name=row.name,
            mime_type=row.mime_type,
            size=row.size,
            storage_file_id=row.storage_file_id,
            uploaded_by=row.uploaded_by,
            uploaded_at=_ensure_datetime(row.uploaded_at),
        )

    @staticmethod
    def _table_to_audit(row: TicketAuditLogTable) -> AuditEntry:
        return AuditEntry(
            id=row.id,
            ticket_id=row.ticket_id,
            action=AuditAction(row.action),
            user_id=row.user_id,
            user_name=row.user_name,
            from_status=TicketStatus(row.from_status) if row.from_status else None,
            to_status=TicketStatus(row.to_status) if row.to_status else None,
            reason=row.reason,
            metadata=dict(row.metadata_ or {}),
            created_at=_ensure_datetime(row.created_at),
        )


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")


def _optional_datetime(value: datetime | None) -> datetime | None:
    return None if value is None else _ensure_datetime(value)
