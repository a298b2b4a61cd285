from __future__ import annotations

from .models import ChecklistItem, NextTransitionChecklist, Ticket
from .state import Role, TicketStateMachine, TransitionChecks, TransitionInput


def transition_input_from_ticket(ticket: Ticket) -> TransitionInput:
    """Transition input made only of values already stored on the ticket."""

    return TransitionInput(
        supplier_id=ticket.supplier_id,
        supplier_response=ticket.supplier_response,
        resolution_result=ticket.resolution_result.value if ticket.resolution_result else None,
    )


def build_transition_checklist(
    ticket: Ticket,
    role: Role,
    *,
    has_canhoto: bool,
    state_machine: TicketStateMachine | None = None,
) -> NextTransitionChecklist:
    """Describe what the ticket still needs before it can advance.

    Items come from the same gate rows the validator walks, and ``can_advance``
    is the validator's own verdict on the current snapshot, so the advisory
    view and the authoritative check cannot disagree.
    """

    machine = state_machine or TicketStateMachine()
    rule = machine.rule_for(ticket.status)
    data = transition_input_from_ticket(ticket)
    checks = TransitionChecks(has_canhoto=has_canhoto)

    items: list[ChecklistItem] = []
    for gate in rule.gates:
        satisfied = gate.check(ticket, data, checks)
        items.append(
            ChecklistItem(
                key=gate.key,
                label=gate.label,
                satisfied=satisfied,
                action=None if satisfied else gate.action,
                action_label=None if satisfied else gate.action_label,
            )
        )

    error = machine.validate(ticket, role, data, checks)
    return NextTransitionChecklist(next_status=rule.next_status, can_advance=error is None, items=items)
