"""
Tasks Lambda Handler
====================

EventBridge-triggered Lambda for scheduled task maintenance.

For On-Call Engineers:
    Two schedules invoke this Lambda (America/New_York):
    - {"job": "overdue"}   every day 00:00
    - {"job": "reminders"} every day 09:00

    Purpose:
    - overdue: pending tasks whose due date has passed become "overdue"
    - reminders: collect (task, user, email) for pending tasks due within
      a day. Delivery is handled downstream; this job only selects targets.

    Common issues:
    - OverdueTasksFailed > 0: check logs for "overdue: item failed"
    - RemindersSkipped > 0: assignee missing, invalid or without an email
    - ReminderLookupsFailed > 0: check logs for "reminders: item failed"

    Quick commands:
    # Check recent invocations
    aws logs tail /aws/lambda/${environment}-taskboard-tasks --since 1h

For Developers:
    Both jobs read pending tasks through the by_status GSI
    (hash: status, range: due_date). The overdue update is conditional on
    status still being "pending" so a task completed mid-sweep is not
    overwritten.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from boto3.dynamodb.conditions import Key
from pydantic import ValidationError

from src.lambdas.shared.config import AppConfig, ConfigurationError, get_config
from src.lambdas.shared.dynamodb import (
    get_table,
    query_all,
    thread_table,
    update_item_attributes,
)
from src.lambdas.shared.models.task import TaskStatus, parse_task
from src.lambdas.shared.models.timestamps import to_iso
from src.lambdas.shared.models.user import User
from src.lib.metrics import emit_metric, emit_metrics_batch, log_structured
from src.lib.threading_utils import run_isolated

logger = logging.getLogger(__name__)

REMINDER_HORIZON = timedelta(days=1)

# run_isolated outcomes for the overdue sweep
MARKED = "marked"
SKIPPED = "skipped"


@dataclass(frozen=True)
class ReminderTarget:
    """A pending task and the address its reminder goes to."""

    task_id: str
    user_id: str
    email: str


def _pending_tasks(tasks_table: Any, due_condition: Any) -> list[dict[str, Any]]:
    return query_all(
        tasks_table,
        IndexName="by_status",
        KeyConditionExpression=Key("status").eq(TaskStatus.PENDING.value) & due_condition,
    )


def check_overdue_tasks(
    config: AppConfig,
    now: datetime | None = None,
    tasks_table: Any = None,
) -> dict[str, Any]:
    """
    Mark pending tasks with a due date before now as overdue.

    Args:
        config: Application configuration
        now: Sweep timestamp (defaults to current UTC time)
        tasks_table: Optional tasks table (for testing)

    Returns:
        Summary with candidate, marked, skipped and failed counts
    """
    now = now or datetime.now(UTC)
    tasks_table = tasks_table or get_table(config.tasks_table, config.aws_region)

    items = _pending_tasks(tasks_table, Key("due_date").lt(to_iso(now)))

    def _mark(item: dict[str, Any]) -> str:
        task = parse_task(item)
        if task is None:
            return SKIPPED
        updated = update_item_attributes(
            thread_table(tasks_table),
            {"task_id": task.task_id},
            {"status": TaskStatus.OVERDUE.value},
            expected={"status": TaskStatus.PENDING.value},
        )
        return MARKED if updated else SKIPPED

    batch = run_isolated(
        items,
        _mark,
        key=lambda item: str(item.get("task_id")),
        label="overdue",
    )

    marked = sum(1 for outcome in batch.succeeded.values() if outcome == MARKED)
    summary = {
        "candidates": len(items),
        "marked": marked,
        "skipped": len(batch.succeeded) - marked,
        "failed": len(batch.failed),
    }

    emit_metrics_batch(
        [
            {"name": "OverdueTasksMarked", "value": summary["marked"]},
            {"name": "OverdueTasksFailed", "value": summary["failed"]},
        ]
    )

    log_structured(
        "warning" if batch.failed else "info",
        "Overdue sweep completed",
        as_of=to_iso(now),
        **summary,
    )

    return summary


def scan_task_reminders(
    config: AppConfig,
    now: datetime | None = None,
    tasks_table: Any = None,
    users_table: Any = None,
) -> list[ReminderTarget]:
    """
    Collect reminder targets for pending tasks due within a day.

    Each distinct assignee is loaded once, through run_isolated(). Tasks
    whose assignee is missing, invalid, has no email or failed to load are
    skipped and counted, never raised.

    Returns:
        ReminderTarget per deliverable reminder, ordered by due date
    """
    now = now or datetime.now(UTC)
    tasks_table = tasks_table or get_table(config.tasks_table, config.aws_region)
    users_table = users_table or get_table(config.users_table, config.aws_region)

    items = _pending_tasks(tasks_table, Key("due_date").lte(to_iso(now + REMINDER_HORIZON)))
    tasks = [task for task in (parse_task(item) for item in items) if task]

    lookups = run_isolated(
        sorted({task.assigned_to for task in tasks}),
        lambda user_id: _load_user(thread_table(users_table), user_id),
        key=lambda user_id: user_id,
        label="reminders",
    )

    targets: list[ReminderTarget] = []
    for task in tasks:
        user = lookups.succeeded.get(task.assigned_to)
        if user is None or not user.email:
            logger.info(
                "Skipping reminder: assignee unavailable",
                extra={"task_id": task.task_id, "user_id": task.assigned_to},
            )
            continue
        targets.append(ReminderTarget(task_id=task.task_id, user_id=user.user_id, email=user.email))

    skipped = len(items) - len(targets)

    emit_metrics_batch(
        [
            {"name": "RemindersCollected", "value": len(targets)},
            {"name": "RemindersSkipped", "value": skipped},
            {"name": "ReminderLookupsFailed", "value": len(lookups.failed)},
        ]
    )

    log_structured(
        "warning" if lookups.failed else "info",
        "Reminder scan completed",
        candidates=len(items),
        collected=len(targets),
        skipped=skipped,
        failed_lookups=sorted(lookups.failed),
    )

    return targets


def _load_user(users_table: Any, user_id: str) -> User | None:
    item = users_table.get_item(Key={"user_id": user_id}).get("Item")
    if not item:
        return None
    try:
        return User.from_dynamodb_item(item)
    except (KeyError, ValueError, ValidationError):
        logger.warning("Invalid user data", extra={"user_id": user_id})
        return None


def _run_reminders(config: AppConfig, now: datetime) -> dict[str, Any]:
    targets = scan_task_reminders(config, now)
    return {
        "reminders": len(targets),
        "task_ids": [target.task_id for target in targets],
    }


JOBS = {
    "overdue": check_overdue_tasks,
    "reminders": _run_reminders,
}


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Lambda handler for scheduled task jobs.

    Args:
        event: EventBridge scheduled event with {"job": "overdue" | "reminders"}
        context: Lambda context

    Returns:
        Response with the job summary
    """
    start_time = datetime.now(UTC)
    request_id = getattr(context, "aws_request_id", "local")
    job = event.get("job")

    log_structured("info", "Tasks Lambda invoked", job=job, request_id=request_id)

    if job not in JOBS:
        log_structured("warning", "Unknown tasks job", job=job)
        return {
            "statusCode": 400,
            "body": f"Unknown tasks job: {job}",
        }

    try:
        config = get_config()
    except ConfigurationError as e:
        log_structured("error", "Configuration error", error=str(e))
        return {
            "statusCode": 500,
            "body": f"Configuration error: {e}",
        }

    try:
        summary = JOBS[job](config, start_time)

        duration_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        return {
            "statusCode": 200,
            "body": {**summary, "duration_ms": round(duration_ms, 2)},
        }

    except Exception as e:
        log_structured(
            "error",
            "Task job failed",
            job=job,
            error_type=type(e).__name__,
        )

        emit_metric("JobErrors", 1, dimensions={"Job": job})

        return {
            "statusCode": 500,
            "body": f"Error: {type(e).__name__}",
        }
