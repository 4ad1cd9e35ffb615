"""Role hierarchy and permission decisions.

Roles form a total order (client < engineer < founder < super_admin).
Three decisions are derived from that order:

- has_role(): does a role meet a minimum privilege level
- get_assignable_roles(): which roles may a role hand out
- can_perform_action(): may a role perform a named action

The hierarchy and action table live in an immutable AuthorizationPolicy
built once at import time (DEFAULT_POLICY). The module-level functions
delegate to it; callers needing a different table construct their own
policy and pass it around.

Unknown role values raise InvalidRoleError rather than ranking as lowest
privilege. Unknown action names are denied.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from src.lambdas.shared.auth.enums import VALID_ACTIONS, VALID_ROLES, Action, Role
from src.lambdas.shared.errors.auth_errors import (
    InvalidRoleError,
    UnrecognizedActionError,
)
from src.lambdas.shared.logging_utils import sanitize_for_log

logger = logging.getLogger(__name__)

# Lowest privilege first
ROLE_HIERARCHY: tuple[Role, ...] = (
    Role.CLIENT,
    Role.ENGINEER,
    Role.FOUNDER,
    Role.SUPER_ADMIN,
)

ACTION_PERMISSIONS: Mapping[Action, frozenset[Role]] = MappingProxyType(
    {
        Action.MANAGE_USERS: frozenset({Role.SUPER_ADMIN}),
        Action.VIEW_ANALYTICS: frozenset({Role.FOUNDER, Role.SUPER_ADMIN}),
        Action.MANAGE_TASKS: frozenset(
            {Role.ENGINEER, Role.FOUNDER, Role.SUPER_ADMIN}
        ),
        Action.VIEW_TASKS: frozenset(
            {Role.CLIENT, Role.ENGINEER, Role.FOUNDER, Role.SUPER_ADMIN}
        ),
    }
)


def parse_role(value: Role | str) -> Role:
    """Coerce a role value from a claim, item, or request body.

    Raises:
        InvalidRoleError: If the value is not a defined role.
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise InvalidRoleError(str(value), VALID_ROLES) from None


def parse_action(value: Action | str) -> Action:
    """Coerce an action name at the call boundary.

    Raises:
        UnrecognizedActionError: If the name is not a known action.
    """
    if isinstance(value, Action):
        return value
    try:
        return Action(value)
    except ValueError:
        raise UnrecognizedActionError(str(value), VALID_ACTIONS) from None


@dataclass(frozen=True)
class AuthorizationPolicy:
    """Immutable role ordering plus action table.

    Attributes:
        hierarchy: Every Role exactly once, lowest privilege first
        permissions: Action -> non-empty set of roles allowed to perform it
    """

    hierarchy: tuple[Role, ...] = field(default_factory=lambda: ROLE_HIERARCHY)
    permissions: Mapping[Action, frozenset[Role]] = field(
        default_factory=lambda: ACTION_PERMISSIONS
    )
    _ranks: Mapping[Role, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.hierarchy) != len(set(self.hierarchy)) or set(
            self.hierarchy
        ) != set(Role):
            raise ValueError("Role hierarchy must list every role exactly once")

        for action, roles in self.permissions.items():
            if not roles:
                raise ValueError(f"Action '{action}' has no allowed roles")
            if not set(roles) <= set(self.hierarchy):
                raise ValueError(f"Action '{action}' references unknown roles")

        # Frozen dataclass: bypass __setattr__ for derived fields
        object.__setattr__(
            self,
            "_ranks",
            MappingProxyType({role: i for i, role in enumerate(self.hierarchy)}),
        )
        object.__setattr__(self, "permissions", MappingProxyType(dict(self.permissions)))

    def rank_of(self, role: Role | str) -> int:
        """Zero-based position of role in the hierarchy."""
        return self._ranks[parse_role(role)]

    def has_role(self, required_role: Role | str, actual_role: Role | str) -> bool:
        """Check if actual_role is at least as privileged as required_role.

        Args:
            required_role: The minimum role required
            actual_role: The subject's current role

        Returns:
            True if the subject has sufficient privileges

        Raises:
            InvalidRoleError: If either role is not a defined role
        """
        return self.rank_of(actual_role) >= self.rank_of(required_role)

    def get_assignable_roles(self, actual_role: Role | str) -> tuple[Role, ...]:
        """Roles the subject may assign to other users, ascending.

        Only the top of the hierarchy may assign roles, and only roles
        ranked strictly below itself. Minting peers goes through the
        separate super admin bootstrap.
        """
        role = parse_role(actual_role)
        top = self.hierarchy[-1]
        if role != top:
            return ()
        top_rank = self.rank_of(top)
        return tuple(r for r in self.hierarchy if self.rank_of(r) < top_rank)

    def can_perform_action(self, actual_role: Role | str, action: Action | str) -> bool:
        """Check if the subject's role permits the named action.

        Unknown actions are denied. The allowed set is checked role by role
        so non-contiguous sets keep working.
        """
        role = parse_role(actual_role)
        try:
            known = parse_action(action)
        except UnrecognizedActionError:
            logger.debug(
                "Denied unrecognized action",
                extra={"action": sanitize_for_log(action, max_length=64)},
            )
            return False

        allowed = self.permissions.get(known)
        if not allowed:
            return False

        return any(self.has_role(r, role) for r in allowed)


DEFAULT_POLICY = AuthorizationPolicy()


def rank_of(role: Role | str, policy: AuthorizationPolicy = DEFAULT_POLICY) -> int:
    return policy.rank_of(role)


def has_role(
    required_role: Role | str,
    actual_role: Role | str,
    policy: AuthorizationPolicy = DEFAULT_POLICY,
) -> bool:
    """See AuthorizationPolicy.has_role."""
    return policy.has_role(required_role, actual_role)


def get_assignable_roles(
    actual_role: Role | str, policy: AuthorizationPolicy = DEFAULT_POLICY
) -> tuple[Role, ...]:
    """See AuthorizationPolicy.get_assignable_roles."""
    return policy.get_assignable_roles(actual_role)


def can_perform_action(
    actual_role: Role | str,
    action: Action | str,
    policy: AuthorizationPolicy = DEFAULT_POLICY,
) -> bool:
    """See AuthorizationPolicy.can_perform_action."""
    return policy.can_perform_action(actual_role, action)


def highest_role(roles: Iterable[Role | str]) -> Role | None:
    """Most privileged role among roles, or None when empty."""
    parsed = [parse_role(r) for r in roles]
    if not parsed:
        return None
    return max(parsed, key=DEFAULT_POLICY.rank_of)
