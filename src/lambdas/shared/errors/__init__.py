"""Shared error types for Lambda handlers.

Response helpers live in src.lambdas.shared.errors_module.
"""

from src.lambdas.shared.errors.auth_errors import (
    InvalidRoleError,
    UnrecognizedActionError,
)
from src.lambdas.shared.errors.user_errors import (
    USER_ERROR_STATUS,
    ErrorKind,
    UserManagementError,
)

__all__ = [
    # RBAC errors
    "InvalidRoleError",
    "UnrecognizedActionError",
    # User management result kinds
    "USER_ERROR_STATUS",
    "ErrorKind",
    "UserManagementError",
]
