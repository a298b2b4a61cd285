from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers of the workflow engine."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    MISSING_REQUIREMENT = "MISSING_REQUIREMENT"
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"


class WorkflowError(RuntimeError):
    """Base error for ticket workflow issues."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, missing: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.missing = missing


class TicketNotFoundError(WorkflowError):
    """Raised when a ticket is absent or belongs to another tenant."""

    kind = ErrorKind.NOT_FOUND


class ForbiddenActionError(WorkflowError):
    """Raised when the actor's role is not entitled to the operation."""

    kind = ErrorKind.FORBIDDEN


class InvalidTicketTransitionError(WorkflowError):
    """Raised when attempting to transition to an invalid state."""

    kind = ErrorKind.INVALID_TRANSITION


class MissingRequirementError(WorkflowError):
    """Raised when a stage gate is not satisfied."""

    kind = ErrorKind.MISSING_REQUIREMENT


class TicketValidationError(WorkflowError):
    """Raised for malformed input."""

    kind = ErrorKind.VALIDATION


class ConcurrentTicketUpdateError(WorkflowError):
    """Raised when another writer committed a change to the same ticket first."""

    kind = ErrorKind.CONFLICT


_ERRORS_BY_KIND: dict[ErrorKind, type[WorkflowError]] = {
    ErrorKind.NOT_FOUND: TicketNotFoundError,
    ErrorKind.FORBIDDEN: ForbiddenActionError,
    ErrorKind.INVALID_TRANSITION: InvalidTicketTransitionError,
    ErrorKind.MISSING_REQUIREMENT: MissingRequirementError,
    ErrorKind.VALIDATION: TicketValidationError,
    ErrorKind.CONFLICT: ConcurrentTicketUpdateError,
}


def error_for(kind: ErrorKind, message: str, *, missing: str | None = None) -> WorkflowError:
    return _ERRORS_BY_KIND[kind](message, missing=missing)
