"""
Domain exceptions raised by services.

Each exception carries the HTTP status and the machine-readable error type used
by the global exception handler to build the standard ErrorResponse envelope.
"""

from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base class for business rule failures surfaced to API clients."""

    status_code: int = 400
    error_type: str = "domain_error"

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(DomainError):
    status_code = 404
    error_type = "not_found"


class PermissionDeniedError(DomainError):
    status_code = 403
    error_type = "forbidden"


class ConflictError(DomainError):
    status_code = 409
    error_type = "conflict"


class InvalidStateError(DomainError):
    """A workflow transition was requested from a state that does not allow it."""

    status_code = 409
    error_type = "invalid_state"


class BusinessRuleError(DomainError):
    status_code = 400
    error_type = "business_rule"


class ConfigurationError(DomainError):
    """A required integration setting (API key, secret) is missing."""

    status_code = 503
    error_type = "not_configured"


class UpstreamServiceError(DomainError):
    """An external HTTP collaborator failed or returned an unusable payload."""

    status_code = 502
    error_type = "upstream_error"
