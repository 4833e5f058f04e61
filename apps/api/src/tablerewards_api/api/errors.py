"""Translate domain exceptions into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from tablerewards_api.services.errors import (
    AuthorizationError,
    LoyaltyConflictError,
    LoyaltyError,
    LoyaltyNotFoundError,
    LoyaltyValidationError,
)
from tablerewards_api.services.orders import InvalidOrderTransitionError, OrderNotFoundError


_STATUS_BY_ERROR: list[tuple[type[Exception], int]] = [
    (LoyaltyValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (LoyaltyNotFoundError, status.HTTP_404_NOT_FOUND),
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND),
    (LoyaltyConflictError, status.HTTP_409_CONFLICT),
    (InvalidOrderTransitionError, status.HTTP_409_CONFLICT),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
]

DOMAIN_ERRORS = (LoyaltyError, OrderNotFoundError, InvalidOrderTransitionError)


def to_http_exception(error: Exception) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


__all__ = ["DOMAIN_ERRORS", "to_http_exception"]
