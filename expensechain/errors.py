"""Error taxonomy shared by the engine and the HTTP layer."""
from __future__ import annotations

from typing import Iterable, List, Optional


class ExpenseChainError(Exception):
    """Base exception class for recoverable engine errors."""

    status_code = 400
    default_code = "ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code or self.default_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.error_code}


class ValidationError(ExpenseChainError):
    """Raised when a candidate expense breaks one or more rules."""

    status_code = 422
    default_code = "VALIDATION_ERROR"

    def __init__(self, violations: Iterable, message: str = "Please fix validation errors."):
        self.violations: List = list(violations)
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["violations"] = [
            violation.to_dict() if hasattr(violation, "to_dict") else {"message": str(violation)}
            for violation in self.violations
        ]
        return payload


class AuthenticationError(ExpenseChainError):
    """Raised when a route needs a signed-in user and there is none."""

    status_code = 401
    default_code = "UNAUTHENTICATED"


class AuthorizationError(ExpenseChainError):
    """Raised when the acting user lacks role or ownership rights."""

    status_code = 403
    default_code = "FORBIDDEN"


class InvalidTransitionError(AuthorizationError):
    """Raised when an expense has already left the pending state."""

    status_code = 409
    default_code = "INVALID_TRANSITION"


class NotFoundError(ExpenseChainError):
    """Raised when a record does not exist in the caller's scope."""

    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(ExpenseChainError):
    """Raised when a unique name or email is already taken."""

    status_code = 409
    default_code = "CONFLICT"


class ExternalServiceError(ExpenseChainError):
    """Raised by providers when an upstream call fails; absorbed before the ledger."""

    status_code = 502
    default_code = "EXTERNAL_SERVICE_ERROR"
