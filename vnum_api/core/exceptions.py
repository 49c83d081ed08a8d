"""Application errors carrying an explicit kind.

The HTTP layer picks the status code from ``AppError.kind``; the message is
only ever shown to the caller, never inspected.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status


class ErrorKind(str, Enum):
    VALIDATION = 'validation'
    AUTHENTICATION = 'authentication'
    FORBIDDEN = 'forbidden'
    ACCOUNT_RESTRICTED = 'account_restricted'
    NOT_FOUND = 'not_found'
    CONFLICT = 'conflict'
    INSUFFICIENT_BALANCE = 'insufficient_balance'
    UPSTREAM = 'upstream'
    INTERNAL = 'internal'


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.AUTHENTICATION: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.ACCOUNT_RESTRICTED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INSUFFICIENT_BALANCE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UPSTREAM: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AppError(Exception):
    """Base exception for all application errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        if kind is not None:
            self.kind = kind
        self.details = details or {}
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION


class AuthenticationError(AppError):
    kind = ErrorKind.AUTHENTICATION


class AccountRestrictedError(AppError):
    """Account exists and the password matched, but login is not allowed."""

    kind = ErrorKind.ACCOUNT_RESTRICTED


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(AppError):
    kind = ErrorKind.CONFLICT


class InsufficientBalanceError(AppError):
    kind = ErrorKind.INSUFFICIENT_BALANCE

    def __init__(self, required=None, available=None, message: str = "Insufficient wallet balance") -> None:
        details = {}
        if required is not None:
            details["required"] = str(required)
        if available is not None:
            details["available"] = str(available)
        super().__init__(message, details=details)


class UpstreamError(AppError):
    """The GraphQL data layer was unreachable or answered with errors.

    ``details["errors"]`` holds the raw upstream error list for logging only.
    """

    kind = ErrorKind.UPSTREAM

    @property
    def upstream_messages(self) -> list[str]:
        return [e.get("message", "") for e in self.details.get("errors", []) if isinstance(e, dict)]

    def is_constraint_violation(self) -> bool:
        for error in self.details.get("errors", []):
            if not isinstance(error, dict):
                continue
            code = (error.get("extensions") or {}).get("code")
            if code == "constraint-violation":
                return True
        return False
