"""Ticket workflow domain: state machine, service, queries and persistence."""

from .errors import (
    ConcurrentTicketUpdateError,
    ErrorKind,
    ForbiddenActionError,
    InvalidTicketTransitionError,
    MissingRequirementError,
    TicketNotFoundError,
    TicketValidationError,
    WorkflowError,
)
from .models import Actor, AdvanceRequest, NewTicket, Ticket, TicketFilter, TicketPage
from .query import TicketQueryEngine, build_query_strategy
from .repository import TicketRepository, TicketStore
from .service import TicketWorkflowService
from .state import ResolutionResult, Role, TicketStateMachine, TicketStatus

__all__ = [
    "Actor",
    "AdvanceRequest",
    "ConcurrentTicketUpdateError",
    "ErrorKind",
    "ForbiddenActionError",
    "InvalidTicketTransitionError",
    "MissingRequirementError",
    "NewTicket",
    "ResolutionResult",
    "Role",
    "Ticket",
    "TicketFilter",
    "TicketNotFoundError",
    "TicketPage",
    "TicketQueryEngine",
    "TicketRepository",
    "TicketStateMachine",
    "TicketStatus",
    "TicketStore",
    "TicketValidationError",
    "TicketWorkflowService",
    "WorkflowError",
    "build_query_strategy",
]
