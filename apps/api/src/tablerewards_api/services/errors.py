"""Domain exceptions shared by the loyalty, order and account services."""

from __future__ import annotations


class LoyaltyError(RuntimeError):
    """Base exception for loyalty engine failures."""


class LoyaltyValidationError(LoyaltyError, ValueError):
    """Raised when input is rejected before anything is written."""


class LoyaltyNotFoundError(LoyaltyError, LookupError):
    """Raised when a referenced customer, order, reward or setting does not exist."""


class LoyaltyConflictError(LoyaltyError):
    """Raised when a write collides with existing state (duplicate account, used invitation)."""


class AuthorizationError(LoyaltyError, PermissionError):
    """Raised when the caller lacks the capability required for an operation."""


__all__ = [
    "AuthorizationError",
    "LoyaltyConflictError",
    "LoyaltyError",
    "LoyaltyNotFoundError",
    "LoyaltyValidationError",
]
