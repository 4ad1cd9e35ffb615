"""
CloudWatch Metrics and Logging Utilities
========================================

Provides structured logging and CloudWatch metrics emission for all Lambdas.

For On-Call Engineers:
    Metrics emitted under namespace "Taskboard":
    - MetricsUsersProcessed / MetricsUsersFailed: per-user metric computations
    - OverdueTasksMarked / OverdueTasksFailed: overdue sweep
    - RemindersCollected / RemindersSkipped: next-day reminder scan
    - JobErrors: a scheduled job failed as a whole

    CloudWatch Insights query for errors:
    ```
    fields @timestamp, @message
    | filter level = "ERROR"
    | sort @timestamp desc
    ```

For Developers:
    - Use log_structured() for logging in scheduled handlers (JSON for CloudWatch)
    - Use emit_metric() / emit_metrics_batch() for CloudWatch custom metrics
    - Metric emission never raises; a failed put is logged and dropped

Security Notes:
    - Never log passwords or full email addresses
"""

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

# CloudWatch client configuration
RETRY_CONFIG = Config(
    retries={
        "max_attempts": 3,
        "mode": "adaptive",
    },
    connect_timeout=5,
    read_timeout=10,
)

METRIC_NAMESPACE = "Taskboard"


def get_cloudwatch_client(region_name: str | None = None) -> Any:
    """
    Get a CloudWatch client with retry configuration.

    Args:
        region_name: AWS region (defaults to AWS_DEFAULT_REGION)

    Returns:
        boto3 CloudWatch client
    """
    region = (
        region_name
        or os.environ.get("AWS_DEFAULT_REGION")
        or os.environ.get("AWS_REGION", "us-east-1")
    )

    return boto3.client(
        "cloudwatch",
        region_name=region,
        config=RETRY_CONFIG,
    )


def _metric_datum(
    name: str,
    value: float,
    unit: str,
    dimensions: dict[str, str] | None,
) -> dict[str, Any]:
    environment = os.environ.get("ENVIRONMENT", "dev")
    datum: dict[str, Any] = {
        "MetricName": name,
        "Value": value,
        "Unit": unit,
        "Timestamp": datetime.now(UTC),
        "Dimensions": [{"Name": "Environment", "Value": environment}],
    }
    if dimensions:
        datum["Dimensions"].extend(
            {"Name": k, "Value": v} for k, v in dimensions.items()
        )
    return datum


def emit_metric(
    name: str,
    value: float,
    unit: str = "Count",
    dimensions: dict[str, str] | None = None,
    region_name: str | None = None,
) -> None:
    """
    Emit a custom metric to CloudWatch.

    Args:
        name: Metric name (e.g., "OverdueTasksMarked")
        value: Metric value
        unit: CloudWatch unit (Count, Milliseconds, etc.)
        dimensions: Optional dimensions (e.g., {"Job": "daily"})
        region_name: AWS region

    On-Call Note:
        View with:
        aws cloudwatch get-metric-statistics \
          --namespace Taskboard \
          --metric-name <name> \
          --start-time <time> --end-time <time> \
          --period 300 --statistics Sum
    """
    emit_metrics_batch(
        [{"name": name, "value": value, "unit": unit, "dimensions": dimensions}],
        region_name=region_name,
    )


def emit_metrics_batch(
    metrics: list[dict[str, Any]],
    region_name: str | None = None,
) -> None:
    """
    Emit multiple metrics in a single API call.

    Args:
        metrics: List of metric dicts with keys: name, value, unit, dimensions
        region_name: AWS region

    Example:
        >>> emit_metrics_batch([
        ...     {"name": "OverdueTasksMarked", "value": 12},
        ...     {"name": "OverdueTasksFailed", "value": 0},
        ... ])
    """
    if not metrics:
        return

    metric_data_list = [
        _metric_datum(
            metric["name"],
            metric["value"],
            metric.get("unit") or "Count",
            metric.get("dimensions"),
        )
        for metric in metrics
    ]

    try:
        client = get_cloudwatch_client(region_name)
        # CloudWatch allows up to 1000 metrics per call
        for i in range(0, len(metric_data_list), 1000):
            client.put_metric_data(
                Namespace=METRIC_NAMESPACE,
                MetricData=metric_data_list[i : i + 1000],
            )

        logger.debug(f"Emitted {len(metrics)} metrics")
    except Exception as e:
        # Log error but don't fail the Lambda
        logger.error(
            f"Failed to emit metrics: {type(e).__name__}",
            extra={"count": len(metrics), "error": str(e)},
        )


def log_structured(
    level: str,
    message: str,
    **kwargs,
) -> None:
    """
    Log a structured message in JSON format.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        message: Log message
        **kwargs: Additional fields to include in log

    Example:
        >>> log_structured(
        ...     "INFO",
        ...     "Overdue sweep complete",
        ...     marked=12,
        ...     failed=0,
        ... )
    """
    log_data = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": level.upper(),
        "message": message,
        **kwargs,
    }

    # Print as JSON (Lambda sends stdout to CloudWatch)
    print(json.dumps(log_data, default=str))
