"""
DynamoDB Helper Module
======================

Provides DynamoDB table operations with retry configuration for the
users, tasks, settings, and metrics tables.

For On-Call Engineers:
    - If you see `ProvisionedThroughputExceededException`, check CloudWatch alarm
      `${environment}-dynamodb-write-throttles`. Tables use on-demand billing.
    - Retry logic handles transient failures automatically (3 attempts with backoff).

For Developers:
    - All functions use parameterized expressions to prevent NoSQL injection.
    - Never construct Key expressions with string concatenation.
    - Use query_all() for GSI scans; a single query returns at most 1 MB.
"""

import logging
import os
import threading
from decimal import Decimal
from typing import Any

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

# Retry configuration for transient failures
# On-Call Note: Increase max_attempts if seeing intermittent throttling
RETRY_CONFIG = Config(
    retries={
        "max_attempts": 3,
        "mode": "adaptive",  # Automatically adjusts to throttling
    },
    connect_timeout=5,
    read_timeout=10,
)


def get_dynamodb_resource(region_name: str | None = None) -> Any:
    """
    Get a DynamoDB resource with retry configuration.

    Args:
        region_name: AWS region (defaults to AWS_DEFAULT_REGION env var)

    Returns:
        boto3 DynamoDB resource

    On-Call Note:
        If this fails with credential errors, check:
        1. Lambda execution role has dynamodb:* permissions
        2. Region matches table location
    """
    region = (
        region_name
        or os.environ.get("AWS_DEFAULT_REGION")
        or os.environ.get("AWS_REGION")
    )
    if not region:
        raise ValueError(
            "AWS_DEFAULT_REGION or AWS_REGION environment variable must be set"
        )

    return boto3.resource(
        "dynamodb",
        region_name=region,
        config=RETRY_CONFIG,
    )


def get_table(table_name: str, region_name: str | None = None) -> Any:
    """
    Get a DynamoDB table resource.

    Args:
        table_name: Table name (from AppConfig)
        region_name: AWS region

    Returns:
        boto3 DynamoDB Table resource
    """
    if not table_name:
        raise ValueError("Table name required")

    resource = get_dynamodb_resource(region_name)
    return resource.Table(table_name)


# Per-thread Table resources, keyed by table name
_thread_tables = threading.local()


def thread_table(table: Any) -> Any:
    """
    Get the calling thread's own resource for the same table.

    boto3 resources are not thread-safe, so run_isolated() workers must not
    share the Table built by the caller. Each worker thread builds one
    resource per table name from its own Session and reuses it.

    Args:
        table: Table resource built on the calling thread

    Returns:
        Table resource owned by the current thread
    """
    tables = getattr(_thread_tables, "by_name", None)
    if tables is None:
        tables = _thread_tables.by_name = {}

    if table.name not in tables:
        session = boto3.session.Session()
        resource = session.resource(
            "dynamodb",
            region_name=table.meta.client.meta.region_name,
            config=RETRY_CONFIG,
        )
        tables[table.name] = resource.Table(table.name)
    return tables[table.name]


def parse_dynamodb_item(item: dict[str, Any]) -> dict[str, Any]:
    """
    Convert DynamoDB item to standard Python dict.

    Handles:
    - Decimal → int/float conversion for JSON serialization
    - Set → list conversion
    - Nested structures

    Args:
        item: DynamoDB item (from Table.get_item, scan, query)

    Returns:
        Python dict with JSON-serializable types
    """
    if not item:
        return {}

    result = {}
    for key, value in item.items():
        result[key] = _convert_value(value)

    return result


def _convert_value(value: Any) -> Any:
    """Recursively convert DynamoDB types to Python types."""
    if isinstance(value, Decimal):
        # Convert Decimal to int if whole number, else float
        if value % 1 == 0:
            return int(value)
        return float(value)
    elif isinstance(value, set):
        return list(value)
    elif isinstance(value, dict):
        return {k: _convert_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_convert_value(v) for v in value]
    return value


def query_all(table: Any, **kwargs: Any) -> list[dict[str, Any]]:
    """
    Run a query and follow LastEvaluatedKey until exhausted.

    Args:
        table: DynamoDB Table resource
        **kwargs: Arguments passed to Table.query

    Returns:
        All matching items across pages
    """
    response = table.query(**kwargs)
    items = list(response.get("Items", []))

    while "LastEvaluatedKey" in response:
        response = table.query(
            **kwargs,
            ExclusiveStartKey=response["LastEvaluatedKey"],
        )
        items.extend(response.get("Items", []))

    return items


def scan_all(table: Any, **kwargs: Any) -> list[dict[str, Any]]:
    """
    Scan a table and follow LastEvaluatedKey until exhausted.

    On-Call Note:
        Only the scheduled metrics job scans (the users table). If it
        starts timing out, the users table has outgrown a full scan.
    """
    response = table.scan(**kwargs)
    items = list(response.get("Items", []))

    while "LastEvaluatedKey" in response:
        response = table.scan(
            **kwargs,
            ExclusiveStartKey=response["LastEvaluatedKey"],
        )
        items.extend(response.get("Items", []))

    return items


def put_item_if_not_exists(
    table: Any,
    item: dict[str, Any],
    key_attr: str,
) -> bool:
    """
    Put an item only if it doesn't already exist.

    Args:
        table: DynamoDB Table resource
        item: Item to put
        key_attr: Partition key attribute name

    Returns:
        True if item was created, False if it already existed
    """
    try:
        table.put_item(
            Item=item,
            ConditionExpression="attribute_not_exists(#pk)",
            ExpressionAttributeNames={"#pk": key_attr},
        )
        return True
    except table.meta.client.exceptions.ConditionalCheckFailedException:
        logger.debug(
            "Item already exists, skipping",
            extra={"key_attr": key_attr, "key": item.get(key_attr)},
        )
        return False
    except Exception as e:
        logger.error(
            "Failed to put item",
            extra={"key": item.get(key_attr), "error": str(e)},
        )
        raise


def update_item_attributes(
    table: Any,
    key: dict[str, Any],
    attributes: dict[str, Any],
    expected: dict[str, Any] | None = None,
) -> bool:
    """
    SET attributes on an existing item.

    The update is conditional on the item existing and, when expected is
    given, on each expected attribute currently holding that value.

    Args:
        table: DynamoDB Table resource
        key: Full primary key of the item
        attributes: Attribute name -> new value
        expected: Attribute name -> value required before the update

    Returns:
        True if the update was applied, False if the condition failed

    On-Call Note:
        A False return for the overdue sweep means the task changed status
        between the query and the update. This is normal.
    """
    expr_names: dict[str, str] = {}
    expr_values: dict[str, Any] = {}
    set_parts = []

    for i, (name, value) in enumerate(attributes.items()):
        expr_names[f"#a{i}"] = name
        expr_values[f":a{i}"] = value
        set_parts.append(f"#a{i} = :a{i}")

    key_attr = next(iter(key))
    expr_names["#pk"] = key_attr
    conditions = ["attribute_exists(#pk)"]

    for i, (name, value) in enumerate((expected or {}).items()):
        expr_names[f"#e{i}"] = name
        expr_values[f":e{i}"] = value
        conditions.append(f"#e{i} = :e{i}")

    try:
        table.update_item(
            Key=key,
            UpdateExpression="SET " + ", ".join(set_parts),
            ConditionExpression=" AND ".join(conditions),
            ExpressionAttributeNames=expr_names,
            ExpressionAttributeValues=expr_values,
        )
        return True
    except table.meta.client.exceptions.ConditionalCheckFailedException:
        logger.debug("Conditional update skipped", extra={"key": str(key)})
        return False
    except Exception as e:
        logger.error(
            "Failed to update item",
            extra={"key": str(key), "error": str(e)},
        )
        raise
