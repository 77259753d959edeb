"""
Map game exceptions to HTTP responses
"""
from fastapi import HTTPException

from core.exceptions import (
    CapacityError,
    ConflictError,
    ImpostorGameException,
    InvalidStateError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)

STATUS_CODES = (
    (NotFoundError, 404),
    (ValidationError, 400),
    (PreconditionError, 400),
    (InvalidStateError, 409),
    (CapacityError, 409),
    (ConflictError, 409),
)


def to_http_exception(exc: ImpostorGameException) -> HTTPException:
    for exc_type, status_code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
