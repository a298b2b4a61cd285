from fastapi import HTTPException

from warranty_desk.tickets.errors import ErrorKind, WorkflowError

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INVALID_TRANSITION: 400,
    ErrorKind.MISSING_REQUIREMENT: 400,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
}


def to_http_exception(exc: WorkflowError) -> HTTPException:
    detail: dict[str, str] = {"kind": exc.kind.value, "message": exc.message}
    if exc.missing:
        detail["missing"] = exc.missing
    return HTTPException(status_code=STATUS_BY_KIND[exc.kind], detail=detail)
