"""Authentication and authorization utilities."""

from src.lambdas.shared.auth.authorization import (
    DEFAULT_POLICY,
    AuthorizationPolicy,
    can_perform_action,
    get_assignable_roles,
    has_role,
    parse_action,
    parse_role,
    rank_of,
)
from src.lambdas.shared.auth.enums import Action, Role

__all__ = [
    "DEFAULT_POLICY",
    "Action",
    "AuthorizationPolicy",
    "Role",
    "can_perform_action",
    "get_assignable_roles",
    "has_role",
    "parse_action",
    "parse_role",
    "rank_of",
]
