"""Shared models for the Taskboard functions.

This module exports the entity models used across Lambda functions:
- User: Application user with its authoritative role
- UserSettings: Per-user preferences provisioned on user creation
- Task: Unit of work assigned to a user
- CompletionMetric: Daily/weekly on-time completion summary
"""

from src.lambdas.shared.models.metrics import CompletionMetric
from src.lambdas.shared.models.task import Task, TaskStatus, parse_task
from src.lambdas.shared.models.user import (
    CreateAccountRequest,
    UpdateRoleRequest,
    User,
    UserSettings,
)

__all__ = [
    "CompletionMetric",
    "CreateAccountRequest",
    "Task",
    "TaskStatus",
    "UpdateRoleRequest",
    "User",
    "UserSettings",
    "parse_task",
]
