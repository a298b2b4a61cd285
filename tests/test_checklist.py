from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from warranty_desk.tickets.checklist import build_transition_checklist, transition_input_from_ticket
from warranty_desk.tickets.models import Ticket
from warranty_desk.tickets.state import ResolutionResult, Role, TicketStateMachine, TicketStatus, TransitionChecks

NOW = datetime(2024, 3, 14, 15, 0, tzinfo=timezone.utc)


def _ticket(status: TicketStatus, **overrides) -> Ticket:
    ticket = Ticket(
        id="t-1",
        tenant_id="tenant-a",
        store_id="store-a",
        status=status,
        customer_name="Cliente",
        customer_document="12345678909",
        customer_phone="11987654321",
        part_description="Peça",
        defect_description="Defeito",
        sale_number="100",
        created_by="u",
        created_at=NOW,
        updated_at=NOW,
    )
    return replace(ticket, **overrides)


def test_interno_checklist_lists_missing_supplier_and_invoice():
    checklist = build_transition_checklist(_ticket(TicketStatus.INTERNO), Role.INTERNO, has_canhoto=False)

    assert checklist.next_status is TicketStatus.ENTREGA_LOGISTICA
    assert not checklist.can_advance
    assert [item.key for item in checklist.items] == ["supplierId", "nfFields"]
    assert all(not item.satisfied for item in checklist.items)
    assert checklist.items[0].action == "supplier"


def test_satisfied_items_carry_no_action():
    ticket = _ticket(
        TicketStatus.INTERNO, supplier_id="S1", outbound_invoice_number="NF-1", sent_to_supplier_date="2024-03-10"
    )

    checklist = build_transition_checklist(ticket, Role.INTERNO, has_canhoto=False)

    assert checklist.can_advance
    assert all(item.satisfied and item.action is None for item in checklist.items)


def test_wrong_role_cannot_advance_even_with_items_satisfied():
    checklist = build_transition_checklist(_ticket(TicketStatus.ENTREGA_LOGISTICA), Role.COBRANCA, has_canhoto=True)

    assert all(item.satisfied for item in checklist.items)
    assert not checklist.can_advance


def test_terminal_ticket_has_no_next_status():
    checklist = build_transition_checklist(_ticket(TicketStatus.ENCERRADO, is_closed=True), Role.ADMIN, has_canhoto=True)

    assert checklist.next_status is None
    assert not checklist.can_advance
    assert list(checklist.items) == []


@pytest.mark.parametrize("status", list(TicketStatus))
@pytest.mark.parametrize("role", list(Role))
@pytest.mark.parametrize("has_canhoto", [True, False])
@pytest.mark.parametrize("filled", [True, False])
def test_can_advance_agrees_with_validator(status, role, has_canhoto, filled):
    extra = {}
    if filled:
        extra = {
            "supplier_id": "S1",
            "outbound_invoice_number": "NF-1",
            "sent_to_supplier_date": "2024-03-10",
            "supplier_response": "Aceito",
            "resolution_result": ResolutionResult.TROCA,
        }
    ticket = _ticket(status, **extra)
    machine = TicketStateMachine()

    checklist = build_transition_checklist(ticket, role, has_canhoto=has_canhoto, state_machine=machine)
    error = machine.validate(
        ticket, role, transition_input_from_ticket(ticket), TransitionChecks(has_canhoto=has_canhoto)
    )

    assert checklist.can_advance is (error is None)
