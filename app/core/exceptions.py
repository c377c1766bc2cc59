# app/core/exceptions.py - Domain error taxonomy shared by services and routers
from typing import Optional


class PortalError(Exception):
    """Base class for business errors raised by the service layer"""

    error_code = "ERROR"
    status_code = 400

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code

    def __str__(self) -> str:
        return self.message


class ValidationError(PortalError):
    """Missing or invalid input"""
    error_code = "VALIDATION_ERROR"
    status_code = 400


class BalanceExceededError(ValidationError):
    error_code = "BALANCE_EXCEEDED"


class AuthorizationError(PortalError):
    """The acting principal lacks the capability for the operation"""
    error_code = "UNAUTHORIZED"
    status_code = 403


class NotFoundError(PortalError):
    error_code = "NOT_FOUND"
    status_code = 404


class ConflictError(PortalError):
    """Uniqueness or concurrent-update conflict that could not be resolved"""
    error_code = "CONFLICT"
    status_code = 409


# Codes that are not tied to an exception class
INTERNAL_ERROR = "INTERNAL_ERROR"
PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"

# HTTP status for result objects carrying an error code
ERROR_CODE_STATUS = {
    ValidationError.error_code: 400,
    BalanceExceededError.error_code: 400,
    AuthorizationError.error_code: 403,
    NotFoundError.error_code: 404,
    ConflictError.error_code: 409,
    INVALID_CREDENTIALS: 401,
    PROFILE_NOT_FOUND: 404,
    INTERNAL_ERROR: 500,
}


__all__ = [
    "PortalError",
    "ValidationError",
    "BalanceExceededError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "INTERNAL_ERROR",
    "PROFILE_NOT_FOUND",
    "INVALID_CREDENTIALS",
    "ERROR_CODE_STATUS",
]
