"""
Translation of identity errors into HTTP responses.
"""

from fastapi import HTTPException, status

from brokerforce_core import get_logger
from brokerforce_core.exceptions import (
    EmailAlreadyRegisteredError,
    IdentityError,
    InvalidCredentialsError,
    LinkVerificationError,
    PersistenceError,
    UsernameTakenError,
    ValidationError,
)

from .config import settings

logger = get_logger(__name__)

_STATUS_CODES: tuple[tuple[type[IdentityError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UsernameTakenError, status.HTTP_400_BAD_REQUEST),
    (EmailAlreadyRegisteredError, status.HTTP_400_BAD_REQUEST),
    (InvalidCredentialsError, status.HTTP_401_UNAUTHORIZED),
    (LinkVerificationError, status.HTTP_401_UNAUTHORIZED),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http_exception(error: IdentityError) -> HTTPException:
    """
    Build the HTTP error for an identity failure.

    Validation errors name the offending field. Persistence errors stay
    opaque unless the app runs in debug mode.

    Args:
        error: Raised identity error.

    Returns:
        HTTPException to raise from the route.
    """
    status_code = next(
        (code for error_type, code in _STATUS_CODES if isinstance(error, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )

    if isinstance(error, ValidationError):
        return HTTPException(
            status_code=status_code, detail={"field": error.field, "message": error.message}
        )
    if isinstance(error, PersistenceError):
        detail = error.message
        if settings.debug and error.__cause__ is not None:
            detail = f"{detail}: {error.__cause__!r}"
        return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(status_code=status_code, detail=error.message)
