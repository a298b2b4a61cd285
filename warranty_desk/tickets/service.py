from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping
from uuid import uuid4

from opentelemetry import trace

from warranty_desk.metrics import metrics_registry
from warranty_desk.metrics.definitions import (
    REVERTS_TOTAL,
    TICKETS_CREATED_TOTAL,
    TRANSITION_REJECTIONS_TOTAL,
    TRANSITIONS_TOTAL,
    VERSION_CONFLICTS_TOTAL,
)

from .checklist import build_transition_checklist
from .dates import DEFAULT_TIMEZONE, is_date_only, to_date_only
from .errors import (
    ConcurrentTicketUpdateError,
    ForbiddenActionError,
    InvalidTicketTransitionError,
    TicketNotFoundError,
    TicketValidationError,
)
from .models import (
    Actor,
    AdvanceRequest,
    Attachment,
    AttachmentCategory,
    AuditAction,
    AuditEntry,
    NewTicket,
    NextTransitionChecklist,
    StageRecord,
    StageSummary,
    TenantSettings,
    Ticket,
    TicketDetail,
    TimelineEntry,
    TimelineType,
)
from .repository import TicketStore
from .search import TOKEN_SOURCE_FIELDS, build_search_tokens, only_digits
from .sla import compute_due_date
from .state import (
    Role,
    TicketStateMachine,
    TicketStatus,
    TransitionChecks,
    TransitionInput,
    parse_resolution,
    status_index,
)
from .summary import build_stage_summaries

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

CUSTOMER_FIELDS: frozenset[str] = frozenset(
    {"customer_name", "customer_nickname", "customer_document", "customer_phone", "is_whatsapp"}
)
PART_FIELDS: frozenset[str] = frozenset(
    {
        "part_description",
        "quantity",
        "part_ref",
        "part_code",
        "defect_description",
        "sale_number",
        "supplier_sale_number",
        "notes",
    }
)
INTERNAL_FIELDS: frozenset[str] = frozenset(
    {"outbound_invoice_number", "return_invoice_number", "sent_to_supplier_date"}
)
STORE_FIELDS: frozenset[str] = frozenset({"store_id"})
SUPPLIER_FIELDS: frozenset[str] = frozenset({"supplier_id"})
EDITABLE_FIELDS = CUSTOMER_FIELDS | PART_FIELDS | INTERNAL_FIELDS | STORE_FIELDS | SUPPLIER_FIELDS

# Matches the width of tickets.customer_phone.
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 20

EDIT_FIELD_LABELS: Mapping[str, str] = {
    "customer_name": "Nome/Razão Social",
    "customer_nickname": "Nome Fantasia/Apelido",
    "customer_document": "CPF/CNPJ",
    "customer_phone": "Celular",
    "is_whatsapp": "WhatsApp",
    "part_description": "Descrição da peça",
    "quantity": "Quantidade",
    "part_ref": "Referência",
    "part_code": "Código",
    "defect_description": "Defeito",
    "sale_number": "Número da venda/CFe",
    "supplier_sale_number": "Número fornecedor",
    "notes": "Observações",
    "outbound_invoice_number": "NF de ida",
    "return_invoice_number": "NF de retorno",
    "sent_to_supplier_date": "Data de ida ao fornecedor",
    "store_id": "Loja",
    "supplier_id": "Fornecedor",
}

INTAKE_ROLES: frozenset[Role] = frozenset({Role.RECEBEDOR, Role.ADMIN})
NEXT_ACTION_ROLES: frozenset[Role] = frozenset({Role.COBRANCA, Role.ADMIN})
CANHOTO_ROLES: frozenset[Role] = frozenset({Role.LOGISTICA, Role.ADMIN})
REQUIRED_TEXT_FIELDS: frozenset[str] = frozenset(
    {"customer_name", "part_description", "defect_description", "sale_number"}
)
DATE_FIELDS: frozenset[str] = frozenset({"sale_date", "received_date", "sent_to_supplier_date"})


def allowed_edit_fields(role: Role, *, allow_store_change: bool) -> frozenset[str]:
    """Ticket fields ``role`` may change through :meth:`TicketWorkflowService.update_details`."""

    if role is Role.ADMIN:
        return EDITABLE_FIELDS
    if role is Role.INTERNO:
        allowed = PART_FIELDS | INTERNAL_FIELDS | SUPPLIER_FIELDS
        return allowed | STORE_FIELDS if allow_store_change else allowed
    if role is Role.RECEBEDOR:
        return CUSTOMER_FIELDS | PART_FIELDS
    return frozenset()


def normalize_field(name: str, value: Any) -> Any:
    """Validate and canonicalise one ticket field value."""

    if name == "customer_document":
        digits = only_digits(str(value or ""))
        if len(digits) not in (11, 14):
            raise TicketValidationError("CPF/CNPJ deve ter 11 ou 14 dígitos")
        return digits
    if name == "customer_phone":
        digits = only_digits(str(value or ""))
        if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
            raise TicketValidationError("Celular deve ter entre 10 e 20 dígitos")
        return digits
    if name == "quantity":
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise TicketValidationError("Quantidade deve ser um inteiro maior que zero")
        return value
    if name == "is_whatsapp":
        if not isinstance(value, bool):
            raise TicketValidationError("isWhatsapp deve ser booleano")
        return value
    if name in DATE_FIELDS:
        if value in (None, ""):
            return None
        day = to_date_only(value)
        if not day:
            raise TicketValidationError(f"Data inválida em {name}")
        return day
    text = value.strip() if isinstance(value, str) else value
    if name in REQUIRED_TEXT_FIELDS:
        if not text:
            raise TicketValidationError(f"{EDIT_FIELD_LABELS.get(name, name)} é obrigatório")
        return text
    return text or None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


@dataclass(slots=True)
class TicketWorkflowService:
    """Orchestrates every ticket mutation and the tenant-checked reads."""

    store: TicketStore
    state_machine: TicketStateMachine = field(default_factory=TicketStateMachine)
    default_timezone: str = DEFAULT_TIMEZONE
    clock: Callable[[], datetime] = _utcnow

    async def create_ticket(self, tenant_id: str, actor: Actor, draft: NewTicket) -> Ticket:
        if actor.role not in INTAKE_ROLES:
            raise ForbiddenActionError("Permissão insuficiente para abrir tickets")

        with tracer.start_as_current_span("tickets.create") as span:
            span.set_attribute("tenant.id", tenant_id)
            values = {item.name: normalize_field(item.name, getattr(draft, item.name)) for item in fields(draft)}
            if not values["store_id"] or await self.store.get_store(values["store_id"], tenant_id) is None:
                raise TicketValidationError("Loja inválida")
            settings = await self.store.get_tenant_settings(tenant_id) or TenantSettings(tenant_id)
            own_store_only = settings.intake_only_own_store
            if (
                own_store_only
                and actor.role is Role.RECEBEDOR
                and actor.store_id
                and values["store_id"] != actor.store_id
            ):
                raise ForbiddenActionError("Recebedor só pode abrir tickets da própria loja")

            now = self.clock()
            status = self.state_machine.initial_state()
            ticket = Ticket(
                id=_new_id(),
                tenant_id=tenant_id,
                status=status,
                created_by=actor.id,
                created_at=now,
                updated_at=now,
                search_tokens=tuple(build_search_tokens(**{name: values[name] for name in TOKEN_SOURCE_FIELDS})),
                stage_history=(StageRecord(status, now, actor.id, actor.name),),
                **values,
            )
            timeline = self._timeline(ticket, actor, TimelineType.STATUS_CHANGE, "Ticket criado", now)
            audit = self._audit(ticket, actor, AuditAction.TICKET_CREATED, now, to_status=status)
            await self.store.create_ticket(ticket, timeline, audit)
            span.set_attribute("ticket.id", ticket.id)

        metrics_registry.counter(TICKETS_CREATED_TOTAL).inc()
        logger.info("Ticket %s created by %s in tenant %s", ticket.id, actor.id, tenant_id)
        return ticket

    async def get_ticket(self, ticket_id: str, tenant_id: str) -> Ticket:
        ticket = await self.store.get_ticket(ticket_id)
        # Another tenant's ticket is reported exactly like a missing one.
        if ticket is None or ticket.tenant_id != tenant_id:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def get_checklist(self, ticket_id: str, tenant_id: str, actor: Actor) -> NextTransitionChecklist:
        ticket = await self.get_ticket(ticket_id, tenant_id)
        has_canhoto = await self.store.has_attachment(ticket.id, AttachmentCategory.CANHOTO)
        return build_transition_checklist(
            ticket, actor.role, has_canhoto=has_canhoto, state_machine=self.state_machine
        )

    async def get_stage_summaries(self, ticket_id: str, tenant_id: str) -> dict[TicketStatus, StageSummary]:
        ticket = await self.get_ticket(ticket_id, tenant_id)
        timeline = await self.store.list_timeline(ticket.id)
        attachments = await self.store.list_attachments(ticket.id)
        return build_stage_summaries(ticket, timeline, attachments)

    async def get_detail(self, ticket_id: str, tenant_id: str, actor: Actor) -> TicketDetail:
        ticket = await self.get_ticket(ticket_id, tenant_id)
        timeline = await self.store.list_timeline(ticket.id)
        attachments = await self.store.list_attachments(ticket.id)
        audit = await self.store.list_audit(ticket.id) if actor.role is Role.ADMIN else []
        has_canhoto = any(item.category is AttachmentCategory.CANHOTO for item in attachments)
        return TicketDetail(
            ticket=ticket,
            timeline=timeline,
            attachments=attachments,
            audit=audit,
            checklist=build_transition_checklist(
                ticket, actor.role, has_canhoto=has_canhoto, state_machine=self.state_machine
            ),
            stage_summaries=build_stage_summaries(ticket, timeline, attachments),
        )

    async def list_timeline(self, ticket_id: str, tenant_id: str) -> list[TimelineEntry]:
        ticket = await self.get_ticket(ticket_id, tenant_id)
        return await self.store.list_timeline(ticket.id)

    async def list_attachments(self, ticket_id: str, tenant_id: str) -> list[Attachment]:
        ticket = await self.get_ticket(ticket_id, tenant_id)
        return await self.store.list_attachments(ticket.id)

    async def list_audit(self, ticket_id: str, tenant_id: str, actor: Actor) -> list[AuditEntry]:
        if actor.role is not Role.ADMIN:
            raise ForbiddenActionError("Apenas administradores veem a auditoria")
        ticket = await self.get_ticket(ticket_id, tenant_id)
        return await self.store.list_audit(ticket.id)

    async def advance(
        self,
        ticket_id: str,
        tenant_id: str,
        actor: Actor,
        request: AdvanceRequest | None = None,
    ) -> Ticket:
        """Move the ticket one step forward along the chain.

        The ticket, its new stage record and the timeline/audit entries are
        committed together; a concurrent writer makes the whole call fail with
        :class:`ConcurrentTicketUpdateError` and nothing is stored.
        """

        request = request or AdvanceRequest()
        ticket = await self.get_ticket(ticket_id, tenant_id)
        with tracer.start_as_current_span("tickets.advance") as span:
            span.set_attribute("ticket.id", ticket.id)
            span.set_attribute("ticket.status", ticket.status.value)

            has_canhoto = False
            if ticket.status is TicketStatus.ENTREGA_LOGISTICA:
                has_canhoto = await self.store.has_attachment(ticket.id, AttachmentCategory.CANHOTO)
            data = TransitionInput(
                supplier_id=request.supplier_id,
                supplier_response=request.supplier_response,
                resolution_result=request.resolution_result,
            )
            error = self.state_machine.validate(ticket, actor.role, data, TransitionChecks(has_canhoto=has_canhoto))
            if error is not None:
                self._record_rejection(ticket.status, error.kind.value)
                raise error.to_exception()

            next_status = self.state_machine.next_status(ticket.status)
            assert next_status is not None
            if request.next_status is not None and request.next_status != next_status:
                self._record_rejection(ticket.status, "INVALID_TRANSITION")
                raise InvalidTicketTransitionError("Status alvo inválido")

            now = self.clock()
            changes: dict[str, Any] = {}
            if ticket.status is TicketStatus.INTERNO:
                changes.update(await self._freeze_supplier(ticket, request.supplier_id, now))
            elif ticket.status is TicketStatus.COBRANCA_ACOMPANHAMENTO:
                changes["supplier_response"] = (request.supplier_response or "").strip()
            elif ticket.status is TicketStatus.RESOLUCAO:
                changes["resolution_result"] = parse_resolution(request.resolution_result)
                changes["resolution_notes"] = (request.resolution_notes or "").strip() or None
                changes["closed_at"] = now

            stage = StageRecord(next_status, now, actor.id, actor.name)
            updated = replace(
                ticket,
                status=next_status,
                is_closed=next_status is TicketStatus.ENCERRADO,
                stage_history=(*ticket.stage_history, stage),
                updated_at=now,
                **changes,
            )
            timeline = [
                self._timeline(
                    updated,
                    actor,
                    TimelineType.STATUS_CHANGE,
                    f"Status alterado de {ticket.status.value} para {next_status.value}",
                    now,
                )
            ]
            note = (request.note or "").strip()
            if note:
                timeline.append(self._timeline(updated, actor, TimelineType.OBS, note, now))
            audit = self._audit(
                updated,
                actor,
                AuditAction.STATUS_CHANGE,
                now,
                from_status=ticket.status,
                to_status=next_status,
                metadata={"role": actor.role.value},
            )
            updated = await self._commit(
                updated, expected_version=ticket.version, new_stage=stage, timeline=timeline, audit=[audit]
            )

        metrics_registry.counter(TRANSITIONS_TOTAL).inc(
            labels={"from_status": ticket.status.value, "to_status": next_status.value}
        )
        logger.info("Ticket %s advanced %s -> %s by %s", ticket.id, ticket.status.value, next_status.value, actor.id)
        return updated

    async def revert(
        self,
        ticket_id: str,
        tenant_id: str,
        actor: Actor,
        target_status: TicketStatus | str,
        reason: str,
    ) -> Ticket:
        ticket = await self.get_ticket(ticket_id, tenant_id)
        if actor.role is not Role.ADMIN:
            raise ForbiddenActionError("Apenas administradores podem reverter status")
        if not reason or not reason.strip():
            raise TicketValidationError("Motivo da reversão é obrigatório")
        try:
            target = TicketStatus(target_status)
        except ValueError as exc:
            raise TicketValidationError(f"Status desconhecido: {target_status!r}") from exc
        if not self.state_machine.can_revert(ticket.status, target):
            raise InvalidTicketTransitionError(
                f"Não é possível reverter de {ticket.status.value} para {target.value}"
            )

        with tracer.start_as_current_span("tickets.revert") as span:
            span.set_attribute("ticket.id", ticket.id)
            now = self.clock()
            changes: dict[str, Any] = {
                "resolution_result": None,
                "resolution_notes": None,
                "closed_at": None,
            }
            if status_index(target) <= status_index(TicketStatus.COBRANCA_ACOMPANHAMENTO):
                changes["supplier_response"] = None
            if status_index(target) <= status_index(TicketStatus.INTERNO):
                changes.update(sla_days=None, due_date=None, delivered_to_supplier_at=None)

            updated = replace(ticket, status=target, is_closed=False, updated_at=now, **changes)
            timeline = self._timeline(
                updated,
                actor,
                TimelineType.STATUS_CHANGE,
                f"Status revertido de {ticket.status.value} para {target.value}. Motivo: {reason}",
                now,
            )
            audit = self._audit(
                updated,
                actor,
                AuditAction.ADMIN_REVERT,
                now,
                from_status=ticket.status,
                to_status=target,
                reason=reason,
            )
            updated = await self._commit(updated, expected_version=ticket.version, timeline=[timeline], audit=[audit])

        metrics_registry.counter(REVERTS_TOTAL).inc(labels={"to_status": target.value})
        logger.warning("Ticket %s reverted %s -> %s by %s", ticket.id, ticket.status.value, target.value, actor.id)
        return updated

    async def update_details(
        self,
        ticket_id: str,
        tenant_id: str,
        actor: Actor,
        patch: Mapping[str, Any],
    ) -> Ticket:
        """Apply the subset of ``patch`` the actor's role may edit.

        Fields outside the role's set are ignored; unknown field names are
        rejected. A call that changes nothing writes nothing.
        """

        ticket = await self.get_ticket(ticket_id, tenant_id)
        unknown = sorted(set(patch) - EDITABLE_FIELDS)
        if unknown:
            raise TicketValidationError(f"Campos não editáveis: {', '.join(unknown)}")

        settings = await self.store.get_tenant_settings(tenant_id) or TenantSettings(tenant_id)
        own_store_only = settings.intake_only_own_store
        if own_store_only and actor.role is Role.RECEBEDOR and actor.store_id and ticket.store_id != actor.store_id:
            raise ForbiddenActionError("Permissão insuficiente para editar tickets de outra loja")
        allowed = allowed_edit_fields(actor.role, allow_store_change=not own_store_only)
        if not allowed:
            raise ForbiddenActionError("Permissão insuficiente para editar o ticket")

        changed: dict[str, dict[str, Any]] = {}
        for name, value in patch.items():
            if name not in allowed:
                continue
            normalized = normalize_field(name, value)
            current = getattr(ticket, name)
            if normalized != current:
                changed[name] = {"from": current, "to": normalized}
        if not changed:
            return ticket

        updates: dict[str, Any] = {name: change["to"] for name, change in changed.items()}
        if "store_id" in updates and (
            not updates["store_id"] or await self.store.get_store(updates["store_id"], tenant_id) is None
        ):
            raise TicketValidationError("Loja inválida")
        if "supplier_id" in updates:
            supplier = None
            if updates["supplier_id"]:
                supplier = await self.store.get_supplier(updates["supplier_id"], tenant_id)
            if supplier is None:
                raise TicketValidationError("Fornecedor inválido")
            # SLA days and due date stay frozen from the INTERNO handoff.
            updates["supplier_name"] = supplier.name

        now = self.clock()
        tokens_changed = any(name in updates for name in TOKEN_SOURCE_FIELDS)
        updated = replace(ticket, updated_at=now, **updates)
        if tokens_changed:
            updated.search_tokens = tuple(
                build_search_tokens(**{name: getattr(updated, name) for name in TOKEN_SOURCE_FIELDS})
            )

        labels = ", ".join(EDIT_FIELD_LABELS.get(name, name) for name in changed)
        timeline = self._timeline(updated, actor, TimelineType.DOCUMENTO, f"Dados do ticket atualizados: {labels}", now)
        audit = self._audit(
            updated,
            actor,
            AuditAction.TICKET_EDIT,
            now,
            metadata={"changedFields": changed, "role": actor.role.value},
        )
        updated = await self._commit(
            updated,
            expected_version=ticket.version,
            timeline=[timeline],
            audit=[audit],
            tokens_changed=tokens_changed,
        )
        logger.info("Ticket %s edited by %s: %s", ticket.id, actor.id, sorted(changed))
        return updated

    async def add_timeline_entry(
        self,
        ticket_id: str,
        tenant_id: str,
        actor: Actor,
        *,
        entry_type: TimelineType | str,
        text: str,
        next_action_at: str | None = None,
        next_action_note: str | None = None,
    ) -> TimelineEntry:
        ticket = await self.get_ticket(ticket_id, tenant_id)
        try:
            kind = TimelineType(entry_type)
        except ValueError as exc:
            raise TicketValidationError(f"Tipo de registro desconhecido: {entry_type!r}") from exc
        if kind is TimelineType.STATUS_CHANGE:
            raise TicketValidationError("Registros de mudança de status são gerados automaticamente")
        if not text or not text.strip():
            raise TicketValidationError("Texto é obrigatório")
        if kind is TimelineType.PRAZO and not next_action_at:
            raise TicketValidationError("Data da próxima ação é obrigatória")
        if next_action_at:
            if actor.role not in NEXT_ACTION_ROLES:
                raise ForbiddenActionError("Permissão insuficiente para definir a próxima ação")
            if not is_date_only(next_action_at):
                raise TicketValidationError("Data da próxima ação inválida")

        now = self.clock()
        note = (next_action_note or "").strip() or None
        entry = TimelineEntry(
            id=_new_id(),
            ticket_id=ticket.id,
            type=kind,
            text=text.strip(),
            user_id=actor.id,
            user_name=actor.name,
            created_at=now,
            next_action_at=next_action_at or None,
            next_action_note=note if next_action_at else None,
        )
        if next_action_at:
            updated = replace(ticket, next_action_at=next_action_at, next_action_note=note, updated_at=now)
            await self._commit(updated, expected_version=ticket.version, timeline=[entry])
        else:
            await self.store.append_timeline(entry)
        return entry

    async def register_attachment(
        self,
        ticket_id: str,
        tenant_id: str,
        actor: Actor,
        *,
        category: AttachmentCategory | str,
        name: str,
        mime_type: str,
        size: int,
        storage_file_id: str,
    ) -> Attachment:
        """Record metadata for a file the storage service already holds."""

        ticket = await self.get_ticket(ticket_id, tenant_id)
        try:
            kind = AttachmentCategory(category)
        except ValueError as exc:
            raise TicketValidationError(f"Categoria do anexo inválida: {category!r}") from exc
        if kind is AttachmentCategory.CANHOTO and actor.role not in CANHOTO_ROLES:
            raise ForbiddenActionError("Permissão insuficiente para anexar canhoto")
        if not name or not name.strip() or not storage_file_id:
            raise TicketValidationError("Nome e identificador do arquivo são obrigatórios")
        if size < 0:
            raise TicketValidationError("Tamanho do arquivo inválido")

        now = self.clock()
        attachment = Attachment(
            id=_new_id(),
            ticket_id=ticket.id,
            category=kind,
            name=name.strip(),
            mime_type=mime_type,
            size=size,
            storage_file_id=storage_file_id,
            uploaded_by=actor.id,
            uploaded_at=now,
        )
        audit = self._audit(
            ticket,
            actor,
            AuditAction.UPLOAD,
            now,
            metadata={"attachmentId": attachment.id, "category": kind.value, "name": attachment.name},
        )
        await self.store.add_attachment(attachment, audit)
        return attachment

    async def _freeze_supplier(self, ticket: Ticket, supplier_id: str | None, now: datetime) -> dict[str, Any]:
        resolved_id = supplier_id or ticket.supplier_id
        supplier = await self.store.get_supplier(resolved_id, ticket.tenant_id) if resolved_id else None
        if supplier is None:
            raise TicketValidationError("Fornecedor inválido")
        timezone_name = await self._tenant_timezone(ticket.tenant_id)
        return {
            "supplier_id": supplier.id,
            "supplier_name": supplier.name,
            "sla_days": supplier.sla_days,
            "delivered_to_supplier_at": now,
            "due_date": compute_due_date(now, supplier.sla_days, timezone_name),
        }

    async def _tenant_timezone(self, tenant_id: str) -> str:
        settings = await self.store.get_tenant_settings(tenant_id)
        if settings is not None and settings.timezone:
            return settings.timezone
        return self.default_timezone

    async def _commit(self, ticket: Ticket, *, expected_version: int, **kwargs: Any) -> Ticket:
        try:
            return await self.store.commit_ticket_change(ticket, expected_version=expected_version, **kwargs)
        except ConcurrentTicketUpdateError:
            metrics_registry.counter(VERSION_CONFLICTS_TOTAL).inc()
            raise

    @staticmethod
    def _record_rejection(status: TicketStatus, kind: str) -> None:
        metrics_registry.counter(TRANSITION_REJECTIONS_TOTAL).inc(labels={"status": status.value, "kind": kind})

    @staticmethod
    def _timeline(ticket: Ticket, actor: Actor, kind: TimelineType, text: str, now: datetime) -> TimelineEntry:
        return TimelineEntry(
            id=_new_id(),
            ticket_id=ticket.id,
            type=kind,
            text=text,
            user_id=actor.id,
            user_name=actor.name,
            created_at=now,
        )

    @staticmethod
    def _audit(
        ticket: Ticket,
        actor: Actor,
        action: AuditAction,
        now: datetime,
        *,
        from_status: TicketStatus | None = None,
        to_status: TicketStatus | None = None,
        reason: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> AuditEntry:
        return AuditEntry(
            id=_new_id(),
            ticket_id=ticket.id,
            action=action,
            user_id=actor.id,
            user_name=actor.name,
            created_at=now,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            metadata=dict(metadata or {}),
        )


__all__ = [
    "EDITABLE_FIELDS",
    "TicketWorkflowService",
    "allowed_edit_fields",
    "normalize_field",
]
