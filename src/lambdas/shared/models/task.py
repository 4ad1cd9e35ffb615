"""Task model with DynamoDB conversion.

Task items are written by the task-management frontend; the scheduled jobs
only read them and transition status. Items that do not validate are
logged and skipped by parse_task().
"""

import logging
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, ValidationError

from src.lambdas.shared.models.timestamps import parse_iso, to_iso

logger = logging.getLogger(__name__)


class TaskStatus(StrEnum):
    """Lifecycle states of a task item."""

    PENDING = "pending"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class Task(BaseModel):
    """A unit of work assigned to a single user."""

    task_id: str
    title: str = Field(..., min_length=1)
    due_date: datetime
    status: TaskStatus
    assigned_to: str = Field(..., min_length=1)
    completed_at: datetime | None = None

    @property
    def completed_on_time(self) -> bool:
        """Completed, and no later than the due date."""
        return (
            self.status == TaskStatus.COMPLETED
            and self.completed_at is not None
            and self.completed_at <= self.due_date
        )

    def to_dynamodb_item(self) -> dict:
        """Convert to DynamoDB item format.

        Note: completed_at is omitted when None so the metrics filter
        (completed_at >= :since) skips unfinished tasks.
        """
        item = {
            "task_id": self.task_id,
            "title": self.title,
            "due_date": to_iso(self.due_date),
            "status": self.status.value,
            "assigned_to": self.assigned_to,
        }
        if self.completed_at is not None:
            item["completed_at"] = to_iso(self.completed_at)
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "Task":
        """Create Task from DynamoDB item."""
        completed_at = item.get("completed_at")
        return cls(
            task_id=item["task_id"],
            title=item["title"],
            due_date=parse_iso(item["due_date"]),
            status=item["status"],
            assigned_to=item["assigned_to"],
            completed_at=parse_iso(completed_at) if completed_at else None,
        )


def parse_task(item: dict) -> Task | None:
    """Parse a task item, returning None (and logging) if it is invalid."""
    try:
        return Task.from_dynamodb_item(item)
    except (KeyError, TypeError, ValueError, ValidationError):
        logger.error(
            "Invalid task data",
            extra={"task_id": str(item.get("task_id", "unknown"))[:64]},
        )
        return None
