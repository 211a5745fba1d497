"""Typed failures raised by the content engine.

Every error carries an HTTP status code, a stable machine-readable code and a
``retryable`` flag so callers can tell transient ledger/network trouble apart
from validation or precondition problems.
"""

from __future__ import annotations

from typing import Any


class EdgateError(Exception):
    """Base class for all engine failures."""

    status_code: int = 500
    code: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str, **details: Any) -> None:  # noqa: ANN401
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON error responses."""
        return {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
            **self.details,
        }


class ValidationError(EdgateError):
    """Malformed input: missing fields, wrong types, empty cohort set."""

    status_code = 422
    code = "validation_error"


class NotFoundError(EdgateError):
    """Unknown content id or user-access key."""

    status_code = 404
    code = "not_found"


class InvalidTransitionError(EdgateError):
    """A lifecycle edge that is not in the transition table."""

    status_code = 409
    code = "invalid_transition"

    def __init__(self, current: str, target: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Invalid transition: {current} -> {target}",
            current=current,
            target=target,
        )
        self.current = current
        self.target = target


class PreconditionFailedError(EdgateError):
    """Operation requires a state the record is not in (e.g. publish on non-verified)."""

    status_code = 412
    code = "precondition_failed"


class ConflictError(EdgateError):
    """Concurrent mutation detected; the caller may re-read and retry."""

    status_code = 409
    code = "conflict"
    retryable = True


class ExternalServiceError(EdgateError):
    """A ledger, blob storage or profile collaborator call failed."""

    status_code = 502
    code = "external_service_error"

    def __init__(self, message: str, *, service: str, operation: str, **details: Any) -> None:  # noqa: ANN401
        super().__init__(message, service=service, operation=operation, **details)
        self.service = service
        self.operation = operation


class TransientServiceError(ExternalServiceError):
    """Collaborator unavailable or overloaded; safe to retry."""

    status_code = 503
    code = "external_service_unavailable"
    retryable = True


class PermanentServiceError(ExternalServiceError):
    """Collaborator refused the request; retrying will not help."""

    code = "external_service_rejected"


class OutcomeUnknownError(ExternalServiceError):
    """Collaborator call timed out after the request may have been applied.

    Not retryable as-is: the caller must check the ledger before retrying to
    avoid double grants.
    """

    status_code = 504
    code = "external_outcome_unknown"
