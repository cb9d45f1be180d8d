"""
Domain exceptions raised by services.

Routes stay free of status-code decisions: the global handlers in src.api.main map
each error class to an HTTP status and the standard ErrorResponse envelope.
"""

from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base class for business errors surfaced to API clients."""

    status_code = 400
    error_type = "domain_error"

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(DomainError):
    """Requested entity does not exist."""

    status_code = 404
    error_type = "not_found"


class BusinessRuleError(DomainError):
    """Request is well-formed but violates a business rule (e.g. insufficient stock)."""

    status_code = 400
    error_type = "business_rule"


class AuthenticationError(DomainError):
    """Credentials or refresh token are invalid."""

    status_code = 401
    error_type = "unauthorized"
