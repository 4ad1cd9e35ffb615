"""Completion metric model for the scheduled metrics job."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from src.lambdas.shared.models.task import Task
from src.lambdas.shared.models.timestamps import to_iso


class CompletionMetric(BaseModel):
    """Per-user task completion summary for one daily or weekly window.

    Keyed by (user_id, period_start) so reruns of the same window overwrite.
    """

    user_id: str
    period: Literal["daily", "weekly"]
    period_start: datetime
    total_tasks: int = Field(..., ge=0)
    completed_on_time: int = Field(..., ge=0)
    timestamp: datetime

    @property
    def completion_rate(self) -> float:
        """Fraction of tasks completed on time; 0 when there are none."""
        if not self.total_tasks:
            return 0.0
        return self.completed_on_time / self.total_tasks

    @classmethod
    def from_tasks(
        cls,
        user_id: str,
        period: Literal["daily", "weekly"],
        period_start: datetime,
        tasks: list[Task],
        timestamp: datetime,
    ) -> "CompletionMetric":
        """Summarize validated tasks for one user."""
        return cls(
            user_id=user_id,
            period=period,
            period_start=period_start,
            total_tasks=len(tasks),
            completed_on_time=sum(1 for t in tasks if t.completed_on_time),
            timestamp=timestamp,
        )

    def to_dynamodb_item(self) -> dict:
        """Convert to DynamoDB item format.

        completion_rate is stored as Decimal; boto3 rejects float.
        """
        return {
            "user_id": self.user_id,
            "period_start": to_iso(self.period_start),
            "period": self.period,
            "total_tasks": self.total_tasks,
            "completed_on_time": self.completed_on_time,
            "completion_rate": Decimal(str(round(self.completion_rate, 4))),
            "timestamp": to_iso(self.timestamp),
        }
