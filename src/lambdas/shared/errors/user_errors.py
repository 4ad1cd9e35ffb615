"""User management result kinds.

Collaborators layered on the authorization engine (account creation,
role updates, profile lookup) reject operations with a UserManagementError
carrying one of a small closed set of kinds. Handlers map the kind to an
HTTP status via USER_ERROR_STATUS; the message is safe to return to the
caller and never includes internal details.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of rejection kinds for user management operations."""

    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INVALID_INPUT = "INVALID_INPUT"


USER_ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_INPUT: 400,
}


class UserManagementError(Exception):
    """A user management operation was rejected.

    Example:
        raise UserManagementError(ErrorKind.CONFLICT, "Super admin already exists")
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        self.status_code = USER_ERROR_STATUS[kind]
        super().__init__(message)

    def __repr__(self) -> str:
        return f"UserManagementError({self.kind.value}, {self.message!r})"
