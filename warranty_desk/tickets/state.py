from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Mapping, Sequence

from .errors import ErrorKind, WorkflowError, error_for

if TYPE_CHECKING:
    from .models import Ticket


class TicketStatus(str, Enum):
    """Workflow stages of a warranty ticket, in chain order."""

    RECEBIMENTO = "RECEBIMENTO"
    INTERNO = "INTERNO"
    ENTREGA_LOGISTICA = "ENTREGA_LOGISTICA"
    COBRANCA_ACOMPANHAMENTO = "COBRANCA_ACOMPANHAMENTO"
    RESOLUCAO = "RESOLUCAO"
    ENCERRADO = "ENCERRADO"


STATUS_ORDER: tuple[TicketStatus, ...] = tuple(TicketStatus)


def status_index(status: TicketStatus) -> int:
    return STATUS_ORDER.index(status)


class Role(str, Enum):
    """Operational roles inside a tenant."""

    RECEBEDOR = "RECEBEDOR"
    INTERNO = "INTERNO"
    LOGISTICA = "LOGISTICA"
    COBRANCA = "COBRANCA"
    ADMIN = "ADMIN"


class ResolutionResult(str, Enum):
    CREDITO = "CREDITO"
    TROCA = "TROCA"
    NEGOU = "NEGOU"


def parse_resolution(value: str | None) -> ResolutionResult | None:
    if not value:
        return None
    try:
        return ResolutionResult(value)
    except ValueError:
        return None


@dataclass(slots=True, frozen=True)
class TransitionInput:
    """Values supplied together with an advance request."""

    supplier_id: str | None = None
    supplier_response: str | None = None
    resolution_result: str | None = None


@dataclass(slots=True, frozen=True)
class TransitionChecks:
    """Facts verified against collaborators before validation runs."""

    has_canhoto: bool = False


@dataclass(slots=True, frozen=True)
class TransitionError:
    kind: ErrorKind
    message: str
    missing: str | None = None

    def to_exception(self) -> WorkflowError:
        return error_for(self.kind, self.message, missing=self.missing)


GateCheck = Callable[["Ticket", TransitionInput, TransitionChecks], bool]


@dataclass(slots=True, frozen=True)
class StageGate:
    """Requirement that must hold before a ticket may leave a stage."""

    key: str
    missing: str
    label: str
    message: str
    action: str
    action_label: str
    check: GateCheck


@dataclass(slots=True, frozen=True)
class TransitionRule:
    status: TicketStatus
    next_status: TicketStatus | None
    allowed_roles: frozenset[Role]
    gates: tuple[StageGate, ...] = ()


def _has_supplier(ticket: Ticket, data: TransitionInput, _: TransitionChecks) -> bool:
    return bool(ticket.supplier_id or data.supplier_id)


def _has_outbound_invoice(ticket: Ticket, _: TransitionInput, __: TransitionChecks) -> bool:
    return bool(ticket.outbound_invoice_number and ticket.sent_to_supplier_date)


def _has_canhoto(_: Ticket, __: TransitionInput, checks: TransitionChecks) -> bool:
    return checks.has_canhoto


def _has_supplier_response(_: Ticket, data: TransitionInput, __: TransitionChecks) -> bool:
    return bool(data.supplier_response and data.supplier_response.strip())


def _has_resolution(_: Ticket, data: TransitionInput, __: TransitionChecks) -> bool:
    return parse_resolution(data.resolution_result) is not None


SUPPLIER_GATE = StageGate(
    key="supplierId",
    missing="supplierId",
    label="Fornecedor definido",
    message="Fornecedor deve estar definido",
    action="supplier",
    action_label="Definir fornecedor",
    check=_has_supplier,
)
OUTBOUND_INVOICE_GATE = StageGate(
    key="nfFields",
    missing="nfFields",
    label="NF de ida e data de envio ao fornecedor",
    message="NF Ida e data de ida ao fornecedor são obrigatórias no Interno",
    action="editInternal",
    action_label="Preencher dados internos",
    check=_has_outbound_invoice,
)
CANHOTO_GATE = StageGate(
    key="canhoto",
    missing="canhoto",
    label="Anexo CANHOTO",
    message="Anexo CANHOTO é obrigatório",
    action="attachment",
    action_label="Anexar canhoto",
    check=_has_canhoto,
)
SUPPLIER_RESPONSE_GATE = StageGate(
    key="supplierResponse",
    missing="supplierResponse",
    label="Resposta do fornecedor",
    message="Resposta do fornecedor é obrigatória",
    action="supplierResponse",
    action_label="Registrar resposta",
    check=_has_supplier_response,
)
RESOLUTION_GATE = StageGate(
    key="resolutionResult",
    missing="resolution",
    label="Resultado final (Crédito/Troca/Negou)",
    message="Resultado final deve ser Crédito, Troca ou Negou",
    action="resolution",
    action_label="Registrar resultado final",
    check=_has_resolution,
)


TRANSITION_TABLE: tuple[TransitionRule, ...] = (
    TransitionRule(
        TicketStatus.RECEBIMENTO,
        TicketStatus.INTERNO,
        frozenset({Role.RECEBEDOR, Role.ADMIN}),
    ),
    TransitionRule(
        TicketStatus.INTERNO,
        TicketStatus.ENTREGA_LOGISTICA,
        frozenset({Role.INTERNO, Role.ADMIN}),
        (SUPPLIER_GATE, OUTBOUND_INVOICE_GATE),
    ),
    TransitionRule(
        TicketStatus.ENTREGA_LOGISTICA,
        TicketStatus.COBRANCA_ACOMPANHAMENTO,
        frozenset({Role.LOGISTICA, Role.ADMIN}),
        (CANHOTO_GATE,),
    ),
    TransitionRule(
        TicketStatus.COBRANCA_ACOMPANHAMENTO,
        TicketStatus.RESOLUCAO,
        frozenset({Role.COBRANCA, Role.ADMIN}),
        (SUPPLIER_RESPONSE_GATE,),
    ),
    TransitionRule(
        TicketStatus.RESOLUCAO,
        TicketStatus.ENCERRADO,
        frozenset({Role.COBRANCA, Role.ADMIN}),
        (RESOLUTION_GATE,),
    ),
    TransitionRule(TicketStatus.ENCERRADO, None, frozenset()),
)


class TicketStateMachine:
    """Validate ticket lifecycle transitions against the transition table."""

    def __init__(self, table: Sequence[TransitionRule] | None = None) -> None:
        rules = table or TRANSITION_TABLE
        self._rules: Mapping[TicketStatus, TransitionRule] = {rule.status: rule for rule in rules}

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.RECEBIMENTO

    def rule_for(self, status: TicketStatus) -> TransitionRule:
        return self._rules[status]

    def next_status(self, current: TicketStatus) -> TicketStatus | None:
        return self.rule_for(current).next_status

    def validate(
        self,
        ticket: Ticket,
        role: Role,
        data: TransitionInput | None = None,
        checks: TransitionChecks | None = None,
    ) -> TransitionError | None:
        """Return why ``ticket`` cannot advance, or ``None`` when it can."""

        data = data or TransitionInput()
        checks = checks or TransitionChecks()
        rule = self.rule_for(ticket.status)
        if rule.next_status is None:
            return TransitionError(
                ErrorKind.INVALID_TRANSITION, "Não é possível avançar a partir deste status"
            )
        if role not in rule.allowed_roles:
            return TransitionError(
                ErrorKind.FORBIDDEN, "Permissão insuficiente para avançar este status"
            )
        for gate in rule.gates:
            if not gate.check(ticket, data, checks):
                return TransitionError(ErrorKind.MISSING_REQUIREMENT, gate.message, gate.missing)
        return None

    def assert_transition(
        self,
        ticket: Ticket,
        role: Role,
        data: TransitionInput | None = None,
        checks: TransitionChecks | None = None,
    ) -> TicketStatus:
        error = self.validate(ticket, role, data, checks)
        if error is not None:
            raise error.to_exception()
        next_status = self.next_status(ticket.status)
        assert next_status is not None
        return next_status

    @staticmethod
    def can_revert(current: TicketStatus, target: TicketStatus) -> bool:
        return status_index(target) < status_index(current)
