"""
Operation Errors
================

Failure taxonomy shared by the ownership, registration and roster services.

Services raise ``OperationError`` internally; the operation boundary
(``carnivals.services.common.run_operation``) converts it into a structured
result, so callers never receive a bare exception.
"""

import enum


class ErrorKind(str, enum.Enum):
    """Why an operation failed. Callers map these to HTTP status or CLI output."""
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    UNAUTHORIZED = "unauthorized"
    VALIDATION_FAILURE = "validation_failure"
    INTERNAL_ERROR = "internal_error"


class OperationError(Exception):
    """Base exception for an anticipated operation failure."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(OperationError):
    """Raised when a carnival, club, user or registration is missing."""
    kind = ErrorKind.NOT_FOUND


class InvalidStateError(OperationError):
    """Raised when the entity is not in a state that allows the transition."""
    kind = ErrorKind.INVALID_STATE


class UnauthorizedError(OperationError):
    """Raised when the acting user lacks the role or ownership required."""
    kind = ErrorKind.UNAUTHORIZED


class ValidationFailureError(OperationError):
    """Raised when caller-supplied details are malformed."""
    kind = ErrorKind.VALIDATION_FAILURE
