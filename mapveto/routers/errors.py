"""Translation of engine exceptions into HTTP errors."""
import logging

from fastapi import HTTPException

from mapveto.utils.exceptions import (
    CapacityError,
    CollisionError,
    DuplicateError,
    InvalidStateError,
    MapVetoException,
    NotFoundError,
    NotYourTurnError,
    TokenError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    ValidationError: 422,
    NotFoundError: 404,
    InvalidStateError: 409,
    CapacityError: 409,
    DuplicateError: 409,
    CollisionError: 503,
    NotYourTurnError: 403,
    TokenError: 401,
}


def to_http_exception(exc: MapVetoException) -> HTTPException:
    """Build the HTTPException a router should raise for ``exc``."""
    status_code = STATUS_CODES.get(type(exc), 400)
    if isinstance(exc, TokenError):
        detail = exc.code
    elif isinstance(exc, ValidationError):
        detail = {"field": exc.field, "message": exc.reason}
    else:
        detail = str(exc)

    logger.info(f"{type(exc).__name__} -> {status_code}: {exc}")
    return HTTPException(status_code=status_code, detail=detail)
