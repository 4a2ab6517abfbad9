"""
Shared error types.

Every business-rule failure raised by the managers derives from `AppError`, so
the HTTP layer can map it to a stable machine-readable code with one handler.
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "internal_error"
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(AppError):
    """Bad input shape or range. Carries every violation, not just the first."""

    code = "validation_error"
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message, details={"errors": self.errors})

    @property
    def fields(self) -> List[str]:
        return [e["field"] for e in self.errors]

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])


class Unauthenticated(AppError):
    code = "unauthenticated"
    status_code = 401
    default_message = "Authentication required"


class Forbidden(AppError):
    code = "forbidden"
    status_code = 403
    default_message = "Not authorized"


class AccountDisabled(AppError):
    code = "account_disabled"
    status_code = 403
    default_message = "Account has been deactivated"


class NotFound(AppError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class InvalidTransition(AppError):
    """A state precondition failed (e.g. claiming an item that is not active)."""

    code = "invalid_transition"
    status_code = 400
    default_message = "Invalid state transition"


class SelfActionError(AppError):
    code = "self_action"
    status_code = 400
    default_message = "You cannot perform this action on your own record"


class StoreError(AppError):
    """Backing store failure. Opaque to callers; never retried by the managers."""

    code = "store_error"
    status_code = 500
    default_message = "Server error"
