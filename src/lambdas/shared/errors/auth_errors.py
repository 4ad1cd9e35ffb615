"""Role-based access control error types.

InvalidRoleError and UnrecognizedActionError signal values outside the
closed Role/Action enumerations. At decoration time they indicate a
programming mistake (typo in a role or action name) and should cause the
application to fail to start. At request time the handlers convert them
to generic 400/403 responses to prevent role enumeration.
"""

from __future__ import annotations


class InvalidRoleError(ValueError):
    """Raised when a role value is not one of the defined roles."""

    def __init__(self, role: str, valid_roles: frozenset[str]) -> None:
        self.role = role
        self.valid_roles = valid_roles
        super().__init__(f"Invalid role '{role}'. Valid roles: {sorted(valid_roles)}")


class UnrecognizedActionError(ValueError):
    """Raised when an action name is not in the permission table."""

    def __init__(self, action: str, valid_actions: frozenset[str]) -> None:
        self.action = action
        self.valid_actions = valid_actions
        super().__init__(
            f"Unrecognized action '{action}'. Valid actions: {sorted(valid_actions)}"
        )
