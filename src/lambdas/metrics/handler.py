"""
Metrics Lambda Handler
======================

EventBridge-triggered Lambda that computes per-user task completion
metrics.

For On-Call Engineers:
    Two schedules invoke this Lambda (America/New_York):
    - {"job": "daily"}  every day 23:59  -> DAILY_METRICS_TABLE
    - {"job": "weekly"} every Monday 00:00 -> PERFORMANCE_TABLE

    Purpose:
    - For each user, count tasks completed inside the window and how many
      of those were completed on or before their due date
    - Store one CompletionMetric per user per window (reruns overwrite)

    Common issues:
    - MetricsUsersFailed > 0: check logs for "metrics: item failed" with the user id
    - Invalid task data errors: a task item is missing fields; it is skipped

    Quick commands:
    # Check recent invocations
    aws logs tail /aws/lambda/${environment}-taskboard-metrics --since 1h

For Developers:
    Handler workflow:
    1. Scan users table for user ids
    2. Per user (in parallel, isolated): query by_assignee GSI filtered on
       completed_at >= window start, validate tasks, summarize, put item
    3. Emit processed/failed counts to CloudWatch

Security Notes:
    - Read-only on users and tasks tables
    - Writes only to the metrics tables
"""

from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from boto3.dynamodb.conditions import Attr, Key

from src.lambdas.shared.config import AppConfig, ConfigurationError, get_config
from src.lambdas.shared.dynamodb import get_table, query_all, scan_all, thread_table
from src.lambdas.shared.models.metrics import CompletionMetric
from src.lambdas.shared.models.task import parse_task
from src.lambdas.shared.models.timestamps import to_iso
from src.lib.metrics import emit_metric, emit_metrics_batch, log_structured
from src.lib.threading_utils import run_isolated

Period = Literal["daily", "weekly"]

WEEKLY_WINDOW_DAYS = 7


def _local_midnight(now: datetime, config: AppConfig, days_back: int = 0) -> datetime:
    local = now.astimezone(config.tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    # Wall-clock arithmetic in the local zone keeps midnight across DST changes
    return (midnight - timedelta(days=days_back)).astimezone(UTC)


def daily_window_start(now: datetime, config: AppConfig) -> datetime:
    """Midnight of the current day in the metrics timezone, as UTC."""
    return _local_midnight(now, config)


def weekly_window_start(now: datetime, config: AppConfig) -> datetime:
    """Local midnight seven days back, so every run in a day shares one key."""
    return _local_midnight(now, config, days_back=WEEKLY_WINDOW_DAYS)


def compute_user_metric(
    user_id: str,
    tasks_table: Any,
    period: Period,
    since: datetime,
    now: datetime,
) -> CompletionMetric:
    """
    Summarize one user's tasks completed since the window start.

    Args:
        user_id: Assignee to summarize
        tasks_table: Tasks table (by_assignee GSI)
        period: "daily" or "weekly"
        since: Window start (inclusive)
        now: Computation timestamp

    Returns:
        CompletionMetric for the user; invalid task items are skipped
    """
    items = query_all(
        tasks_table,
        IndexName="by_assignee",
        KeyConditionExpression=Key("assigned_to").eq(user_id),
        FilterExpression=Attr("completed_at").gte(to_iso(since)),
    )

    tasks = [task for task in (parse_task(item) for item in items) if task]

    return CompletionMetric.from_tasks(
        user_id=user_id,
        period=period,
        period_start=since,
        tasks=tasks,
        timestamp=now,
    )


def calculate_metrics(
    period: Period,
    config: AppConfig,
    now: datetime | None = None,
    users_table: Any = None,
    tasks_table: Any = None,
    metrics_table: Any = None,
) -> dict[str, Any]:
    """
    Compute and store the metric for every user.

    Per-user computations run independently; one failing user is logged
    and counted without stopping the others.

    Returns:
        Summary with window start and processed/failed counts
    """
    now = now or datetime.now(UTC)
    if period == "daily":
        since = daily_window_start(now, config)
        target = config.daily_metrics_table
    else:
        since = weekly_window_start(now, config)
        target = config.performance_table

    users_table = users_table or get_table(config.users_table, config.aws_region)
    tasks_table = tasks_table or get_table(config.tasks_table, config.aws_region)
    metrics_table = metrics_table or get_table(target, config.aws_region)

    users = scan_all(users_table, ProjectionExpression="user_id")

    log_structured(
        "info",
        "Calculating completion metrics",
        period=period,
        period_start=to_iso(since),
        users=len(users),
    )

    def _compute_and_store(user: dict[str, Any]) -> float:
        metric = compute_user_metric(
            user["user_id"], thread_table(tasks_table), period, since, now
        )
        thread_table(metrics_table).put_item(Item=metric.to_dynamodb_item())
        return metric.completion_rate

    batch = run_isolated(
        users,
        _compute_and_store,
        key=lambda user: user["user_id"],
        label="metrics",
    )

    emit_metrics_batch(
        [
            {
                "name": "MetricsUsersProcessed",
                "value": len(batch.succeeded),
                "dimensions": {"Job": period},
            },
            {
                "name": "MetricsUsersFailed",
                "value": len(batch.failed),
                "dimensions": {"Job": period},
            },
        ]
    )

    summary = {
        "period": period,
        "period_start": to_iso(since),
        "users": len(users),
        "processed": len(batch.succeeded),
        "failed": len(batch.failed),
    }

    log_structured(
        "warning" if batch.failed else "info",
        f"{period.capitalize()} metrics calculation completed",
        **summary,
        failed_users=sorted(batch.failed),
    )

    return summary


def calculate_daily_metrics(config: AppConfig, now: datetime | None = None, **tables: Any) -> dict[str, Any]:
    """Daily completion metrics (window: today's midnight in METRICS_TIMEZONE)."""
    return calculate_metrics("daily", config, now, **tables)


def calculate_weekly_metrics(config: AppConfig, now: datetime | None = None, **tables: Any) -> dict[str, Any]:
    """Weekly completion metrics (window: from local midnight seven days back)."""
    return calculate_metrics("weekly", config, now, **tables)


JOBS = {
    "daily": calculate_daily_metrics,
    "weekly": calculate_weekly_metrics,
}


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Lambda handler for metrics collection.

    Args:
        event: EventBridge scheduled event with {"job": "daily" | "weekly"}
        context: Lambda context

    Returns:
        Response with the job summary
    """
    start_time = datetime.now(UTC)
    request_id = getattr(context, "aws_request_id", "local")
    job = event.get("job")

    log_structured(
        "info",
        "Metrics Lambda invoked",
        job=job,
        event_source=event.get("source", "unknown"),
        request_id=request_id,
    )

    if job not in JOBS:
        log_structured("warning", "Unknown metrics job", job=job)
        return {
            "statusCode": 400,
            "body": f"Unknown metrics job: {job}",
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
            "Metrics calculation failed",
            job=job,
            error_type=type(e).__name__,
        )

        emit_metric("JobErrors", 1, dimensions={"Job": job})

        return {
            "statusCode": 500,
            "body": f"Error: {type(e).__name__}",
        }
