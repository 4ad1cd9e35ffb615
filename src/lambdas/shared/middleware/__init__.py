"""Shared middleware for Lambda handlers."""

from src.lambdas.shared.middleware.auth_middleware import (
    AuthContext,
    extract_auth_context,
    validate_jwt,
)
from src.lambdas.shared.middleware.require_role import require_action, require_role

__all__ = [
    "AuthContext",
    "extract_auth_context",
    "require_action",
    "require_role",
    "validate_jwt",
]
