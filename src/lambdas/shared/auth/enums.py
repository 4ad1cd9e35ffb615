"""Canonical enum definitions for auth RBAC.

This module defines the valid roles and actions used
throughout the application. Roles and actions are validated at decoration
time to catch typos early.

All auth-related enums should be defined here to ensure a single source of truth.
"""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Canonical user roles, declared lowest privilege first.

    Roles are totally ordered:
    - client: External stakeholders, read-only task visibility
    - engineer: Works on and manages tasks
    - founder: Engineer access plus analytics
    - super_admin: Everything, including user management
    """

    CLIENT = "client"
    ENGINEER = "engineer"
    FOUNDER = "founder"
    SUPER_ADMIN = "super_admin"


class Action(StrEnum):
    """Named capabilities gated by role."""

    MANAGE_USERS = "manage_users"
    VIEW_ANALYTICS = "view_analytics"
    MANAGE_TASKS = "manage_tasks"
    VIEW_TASKS = "view_tasks"


# Immutable sets for O(1) validation at decoration time
VALID_ROLES: frozenset[str] = frozenset(role.value for role in Role)
VALID_ACTIONS: frozenset[str] = frozenset(action.value for action in Action)
