"""Tenant-scoped ticket listing, agenda and dashboard reads.

Two strategies answer the same filtered, ordered, keyset-paginated question:
:class:`IndexedQueryStrategy` hands it to the database, while
:class:`ScanAndFilterStrategy` loads the tenant's tickets and evaluates the
identical predicate and ordering in memory. The strategy is picked once from
configuration.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Protocol, Sequence

from warranty_desk.metrics import metrics_registry
from warranty_desk.metrics.base import track_duration
from warranty_desk.metrics.definitions import QUERY_DURATION_SECONDS

from .dates import DEFAULT_TIMEZONE, add_days, is_date_only, to_date_only, today_date_only
from .errors import TicketValidationError
from .models import Ticket, TicketFilter, TicketOrdering, TicketPage
from .repository import TicketStore
from .search import normalize_search_token
from .sla import is_overdue
from .state import STATUS_ORDER, TicketStatus

logger = logging.getLogger(__name__)

AGENDA_STATUSES: tuple[TicketStatus, ...] = (
    TicketStatus.ENTREGA_LOGISTICA,
    TicketStatus.COBRANCA_ACOMPANHAMENTO,
    TicketStatus.RESOLUCAO,
)
MAX_PAGE_SIZE = 100
MAX_CALENDAR_TICKETS = 500
EARLIEST_DATE = "0000-01-01"
UPCOMING_WINDOW_DAYS = 7
RESOLVED_WINDOW_DAYS = 30


class AgendaTab(str, Enum):
    HOJE = "hoje"
    ATRASADAS = "atrasadas"
    PROXIMOS = "proximos"


class ActionBucket(str, Enum):
    TODAY = "TODAY"
    OVERDUE = "OVERDUE"
    NEXT_7_DAYS = "NEXT_7_DAYS"


def bucket_next_action(next_action_at: str | None, today: str) -> ActionBucket | None:
    """Classify a next-action date relative to ``today``; ``None`` past the week."""

    if not next_action_at:
        return None
    if next_action_at < today:
        return ActionBucket.OVERDUE
    if next_action_at == today:
        return ActionBucket.TODAY
    if next_action_at <= add_days(today, UPCOMING_WINDOW_DAYS):
        return ActionBucket.NEXT_7_DAYS
    return None


@dataclass(slots=True)
class CalendarDay:
    total: int = 0
    today: int = 0
    overdue: int = 0
    next_7_days: int = 0


@dataclass(slots=True)
class AgendaCalendar:
    start: str
    end: str
    days: dict[str, CalendarDay] = field(default_factory=dict)
    truncated: bool = False


@dataclass(slots=True, frozen=True)
class DashboardCounts:
    actions_today: int
    overdue: int
    by_status: dict[TicketStatus, int]
    resolved_30_days: int


def matches(ticket: Ticket, filters: TicketFilter) -> bool:
    """In-memory twin of the SQL predicate built by the repository."""

    if ticket.tenant_id != filters.tenant_id:
        return False
    if filters.status is not None and ticket.status != filters.status:
        return False
    if filters.statuses and ticket.status not in filters.statuses:
        return False
    if filters.store_id and ticket.store_id != filters.store_id:
        return False
    if filters.supplier_id and ticket.supplier_id != filters.supplier_id:
        return False
    if filters.search and filters.search not in ticket.search_tokens:
        return False
    if filters.only_overdue and (ticket.is_closed or not is_overdue(ticket.due_date, filters.today)):
        return False
    if filters.only_action_today and ticket.next_action_at != filters.today:
        return False
    if filters.next_action_from and (ticket.next_action_at is None or ticket.next_action_at < filters.next_action_from):
        return False
    if filters.next_action_to and (ticket.next_action_at is None or ticket.next_action_at > filters.next_action_to):
        return False
    return True


def sort_key(ticket: Ticket, ordering: TicketOrdering) -> tuple[Any, str]:
    if ordering is TicketOrdering.DUE_DATE_ASC:
        return (ticket.due_date, ticket.id)
    if ordering is TicketOrdering.NEXT_ACTION_ASC:
        return (ticket.next_action_at, ticket.id)
    return (ticket.created_at, ticket.id)


def comes_after(ticket: Ticket, cursor: Ticket, ordering: TicketOrdering) -> bool:
    """Whether ``ticket`` sorts strictly after ``cursor`` under ``ordering``."""

    key, cursor_key = sort_key(ticket, ordering), sort_key(cursor, ordering)
    # A cursor without a sort value matches nothing, as NULL comparisons do in SQL.
    if key[0] is None or cursor_key[0] is None:
        return False
    if ordering is TicketOrdering.CREATED_DESC:
        return key < cursor_key
    return key > cursor_key


class QueryStrategy(Protocol):
    name: str

    async def fetch(self, filters: TicketFilter, *, limit: int, after: Ticket | None = None) -> list[Ticket]:
        ...


class IndexedQueryStrategy:
    """Push filtering, ordering and keyset pagination to the database."""

    name = "indexed"

    def __init__(self, store: TicketStore) -> None:
        self._store = store

    async def fetch(self, filters: TicketFilter, *, limit: int, after: Ticket | None = None) -> list[Ticket]:
        return await self._store.fetch_tickets(filters, limit=limit, after=after)


class ScanAndFilterStrategy:
    """Load the tenant's tickets and filter, sort and paginate in memory."""

    name = "scan"

    def __init__(self, store: TicketStore) -> None:
        self._store = store

    async def fetch(self, filters: TicketFilter, *, limit: int, after: Ticket | None = None) -> list[Ticket]:
        candidates = await self._store.list_tenant_tickets(filters.tenant_id, store_id=filters.store_id)
        ordering = filters.ordering
        selected = [ticket for ticket in candidates if matches(ticket, filters)]
        selected.sort(key=lambda ticket: sort_key(ticket, ordering), reverse=ordering is TicketOrdering.CREATED_DESC)
        if after is not None:
            selected = [ticket for ticket in selected if comes_after(ticket, after, ordering)]
        return selected[:limit]


QUERY_STRATEGIES: dict[str, type[IndexedQueryStrategy] | type[ScanAndFilterStrategy]] = {
    IndexedQueryStrategy.name: IndexedQueryStrategy,
    ScanAndFilterStrategy.name: ScanAndFilterStrategy,
}


def build_query_strategy(name: str, store: TicketStore) -> QueryStrategy:
    try:
        factory = QUERY_STRATEGIES[name.lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown query strategy '{name}'; expected one of {sorted(QUERY_STRATEGIES)}") from exc
    return factory(store)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketQueryEngine:
    """Read side of the workflow: lists, agenda views and dashboard counters."""

    def __init__(
        self,
        store: TicketStore,
        strategy: QueryStrategy,
        *,
        default_timezone: str = DEFAULT_TIMEZONE,
        default_limit: int = 20,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._strategy = strategy
        self._default_timezone = default_timezone
        self._default_limit = default_limit
        self._clock = clock or _utcnow

    @property
    def strategy_name(self) -> str:
        return self._strategy.name

    async def tenant_timezone(self, tenant_id: str) -> str:
        settings = await self._store.get_tenant_settings(tenant_id)
        if settings is not None and settings.timezone:
            return settings.timezone
        return self._default_timezone

    async def today(self, tenant_id: str) -> str:
        return today_date_only(await self.tenant_timezone(tenant_id), now=self._clock())

    async def list_tickets(
        self,
        filters: TicketFilter,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        max_limit: int = MAX_PAGE_SIZE,
    ) -> TicketPage:
        """Return one page of tickets matching ``filters``.

        ``limit + 1`` rows are fetched; when the extra row exists the id of the
        last returned ticket becomes ``next_cursor``. ``max_limit`` caps
        ``limit``; only internal callers raise it above ``MAX_PAGE_SIZE``.
        """

        page_size = self._page_size(limit, max_limit)
        search = normalize_search_token(filters.search) if filters.search else None
        prepared = replace(filters, search=search or None, today=filters.today or await self.today(filters.tenant_id))
        after = await self._resolve_cursor(filters.tenant_id, cursor)

        metric = metrics_registry.distribution(QUERY_DURATION_SECONDS, label_names=("strategy",))
        with track_duration(metric, labels={"strategy": self._strategy.name}):
            rows = await self._strategy.fetch(prepared, limit=page_size + 1, after=after)

        tickets = rows[:page_size]
        next_cursor = tickets[-1].id if len(rows) > page_size else None
        logger.debug(
            "Listed %d tickets for tenant %s via %s strategy", len(tickets), filters.tenant_id, self._strategy.name
        )
        return TicketPage(tickets=tickets, next_cursor=next_cursor)

    async def list_by_next_action_range(
        self,
        tenant_id: str,
        *,
        start: str,
        end: str,
        statuses: Sequence[TicketStatus] = AGENDA_STATUSES,
        store_id: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
        max_limit: int = MAX_PAGE_SIZE,
    ) -> TicketPage:
        for value in (start, end):
            if not is_date_only(value) and value != EARLIEST_DATE:
                raise TicketValidationError(f"Data inválida: {value!r}")
        filters = TicketFilter(
            tenant_id=tenant_id,
            statuses=tuple(statuses),
            store_id=store_id,
            next_action_from=start,
            next_action_to=end,
        )
        return await self.list_tickets(filters, limit=limit, cursor=cursor, max_limit=max_limit)

    async def agenda(
        self,
        tenant_id: str,
        tab: AgendaTab | str,
        *,
        store_id: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> TicketPage:
        try:
            tab = AgendaTab(tab)
        except ValueError as exc:
            raise TicketValidationError(f"Aba de agenda desconhecida: {tab!r}") from exc
        today = await self.today(tenant_id)
        if tab is AgendaTab.HOJE:
            start, end = today, today
        elif tab is AgendaTab.PROXIMOS:
            start, end = add_days(today, 1), add_days(today, UPCOMING_WINDOW_DAYS)
        else:
            start, end = EARLIEST_DATE, add_days(today, -1)
        return await self.list_by_next_action_range(
            tenant_id, start=start, end=end, store_id=store_id, limit=limit, cursor=cursor
        )

    async def agenda_calendar(
        self, tenant_id: str, year: int, month: int, *, store_id: str | None = None
    ) -> AgendaCalendar:
        """Per-day action counts for a month padded to whole Sunday-Saturday weeks."""

        if not 1 <= month <= 12 or year < 1:
            raise TicketValidationError("Parâmetros inválidos")
        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])
        # date.weekday() is Monday=0; shift so weeks start on Sunday.
        start = first - timedelta(days=(first.weekday() + 1) % 7)
        end = last + timedelta(days=6 - (last.weekday() + 1) % 7)

        page = await self.list_by_next_action_range(
            tenant_id,
            start=start.isoformat(),
            end=end.isoformat(),
            store_id=store_id,
            limit=MAX_CALENDAR_TICKETS,
            max_limit=MAX_CALENDAR_TICKETS,
        )
        today = await self.today(tenant_id)
        result = AgendaCalendar(start=start.isoformat(), end=end.isoformat(), truncated=page.next_cursor is not None)
        for ticket in page.tickets:
            if not ticket.next_action_at:
                continue
            day = result.days.setdefault(ticket.next_action_at, CalendarDay())
            day.total += 1
            bucket = bucket_next_action(ticket.next_action_at, today)
            if bucket is ActionBucket.OVERDUE:
                day.overdue += 1
            elif bucket is ActionBucket.TODAY:
                day.today += 1
            elif bucket is ActionBucket.NEXT_7_DAYS:
                day.next_7_days += 1
        return result

    async def agenda_day(
        self,
        tenant_id: str,
        day: str,
        *,
        store_id: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> TicketPage:
        day_only = to_date_only(day)
        if not day_only:
            return TicketPage(tickets=[], next_cursor=None)
        return await self.list_by_next_action_range(
            tenant_id, start=day_only, end=day_only, store_id=store_id, limit=limit, cursor=cursor
        )

    async def dashboard_counts(self, tenant_id: str, *, store_id: str | None = None) -> DashboardCounts:
        tickets = await self._store.list_tenant_tickets(tenant_id, store_id=store_id)
        today = await self.today(tenant_id)
        resolved_since = self._clock() - timedelta(days=RESOLVED_WINDOW_DAYS)
        by_status = {status: 0 for status in STATUS_ORDER}
        actions_today = overdue = resolved = 0
        for ticket in _tenant_only(tickets, tenant_id):
            by_status[ticket.status] += 1
            if ticket.next_action_at == today:
                actions_today += 1
            if not ticket.is_closed and is_overdue(ticket.due_date, today):
                overdue += 1
            if ticket.is_closed and ticket.closed_at is not None and ticket.closed_at >= resolved_since:
                resolved += 1
        return DashboardCounts(
            actions_today=actions_today,
            overdue=overdue,
            by_status=by_status,
            resolved_30_days=resolved,
        )

    def _page_size(self, limit: int | None, max_limit: int = MAX_PAGE_SIZE) -> int:
        if limit is None:
            return self._default_limit
        if limit < 1:
            raise TicketValidationError("limit deve ser maior que zero")
        return min(limit, max_limit)

    async def _resolve_cursor(self, tenant_id: str, cursor: str | None) -> Ticket | None:
        if not cursor:
            return None
        ticket = await self._store.get_ticket(cursor)
        if ticket is None or ticket.tenant_id != tenant_id:
            raise TicketValidationError("Cursor inválido")
        return ticket


def _tenant_only(tickets: Iterable[Ticket], tenant_id: str) -> Iterable[Ticket]:
    return (ticket for ticket in tickets if ticket.tenant_id == tenant_id)
