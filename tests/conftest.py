"""
Pytest Configuration and Shared Fixtures
=========================================

Common fixtures used across all test modules.

For On-Call Engineers:
    If tests fail with AWS credential errors:
    1. Ensure moto is properly mocking (check mock_aws usage)
    2. Verify AWS env vars are set in fixtures

    If tests fail with "Unexpected ERROR/WARNING logs":
    1. The test is catching a real issue - investigate the logs
    2. If the log is expected, assert it with assert_error_logged()

For Developers:
    - Import fixtures by name in test files (pytest auto-discovers conftest.py)
    - All fixtures use moto mocks (no real AWS calls)
    - aws_tables creates every table with its production GSIs
    - Add new shared fixtures here, test-specific fixtures in test files
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Any
from unittest.mock import MagicMock

import boto3
import jwt
import pytest
from moto import mock_aws

# =============================================================================
# Pytest Marker Registration
# =============================================================================


def pytest_configure(config):
    """Register custom markers to avoid warnings."""
    config.addinivalue_line(
        "markers",
        "preprod: marks tests that require real AWS resources (deselect with '-m \"not preprod\"')",
    )


# Set default test environment variables at module load time
# This allows test files to import modules that read env vars at import time
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

# Disable X-Ray SDK in tests to suppress "cannot find the current segment" errors.
# X-Ray requires a Lambda runtime context with an active segment.
os.environ.setdefault("AWS_XRAY_SDK_ENABLED", "false")

os.environ.setdefault("USERS_TABLE", "test-taskboard-users")
os.environ.setdefault("TASKS_TABLE", "test-taskboard-tasks")
os.environ.setdefault("USER_SETTINGS_TABLE", "test-taskboard-user-settings")
os.environ.setdefault("PERFORMANCE_TABLE", "test-taskboard-performance")
os.environ.setdefault("DAILY_METRICS_TABLE", "test-taskboard-daily-metrics")
os.environ.setdefault("COGNITO_USER_POOL_ID", "us-east-1_testpool")
os.environ.setdefault("SUPER_ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-do-not-use-in-production")  # pragma: allowlist secret

TEST_PASSWORD = "Str0ng!Passw0rd"  # pragma: allowlist secret


@pytest.fixture(autouse=True)
def reset_env_vars():
    """
    Reset environment variables before each test.

    Ensures tests don't pollute each other's environment.
    """
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def reset_event_loop():
    """
    Give each test a current event loop on the main thread.

    asyncio.run() clears the current loop when it returns, which would leave
    later callers of asyncio.get_event_loop() (e.g. Mangum) without one.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    yield

    asyncio.set_event_loop(None)
    loop.close()


@pytest.fixture
def aws_credentials():
    """
    Set up mock AWS credentials for moto.

    Use this fixture when testing AWS SDK calls.
    """
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_REGION"] = "us-east-1"

    yield


@pytest.fixture
def mock_lambda_context():
    """Minimal Lambda context object."""
    context = MagicMock()
    context.aws_request_id = "test-request-id"
    context.function_name = "test-function"
    context.get_remaining_time_in_millis.return_value = 30000
    return context


# =============================================================================
# Moto-backed AWS resources
# =============================================================================


@dataclass
class AwsTables:
    """Table resources and the Cognito pool created by aws_tables."""

    users: Any
    tasks: Any
    settings: Any
    performance: Any
    daily_metrics: Any
    user_pool_id: str
    cognito: Any


def _create_table(resource, name, key_schema, attributes, indexes=None):
    kwargs = {
        "TableName": name,
        "KeySchema": key_schema,
        "AttributeDefinitions": attributes,
        "BillingMode": "PAY_PER_REQUEST",
    }
    if indexes:
        kwargs["GlobalSecondaryIndexes"] = indexes
    return resource.create_table(**kwargs)


def _gsi(name, hash_key, range_key=None):
    schema = [{"AttributeName": hash_key, "KeyType": "HASH"}]
    if range_key:
        schema.append({"AttributeName": range_key, "KeyType": "RANGE"})
    return {
        "IndexName": name,
        "KeySchema": schema,
        "Projection": {"ProjectionType": "ALL"},
    }


def _string_attrs(*names):
    return [{"AttributeName": n, "AttributeType": "S"} for n in names]


@pytest.fixture
def aws_tables(aws_credentials):
    """
    Create all Taskboard tables and a Cognito user pool under moto.

    Schema:
    - users: PK user_id, GSI by_role (role)
    - tasks: PK task_id, GSIs by_assignee (assigned_to, due_date)
      and by_status (status, due_date)
    - user settings: PK user_id
    - performance / daily metrics: PK user_id, SK period_start
    """
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name="us-east-1")

        users = _create_table(
            resource,
            os.environ["USERS_TABLE"],
            [{"AttributeName": "user_id", "KeyType": "HASH"}],
            _string_attrs("user_id", "role"),
            [_gsi("by_role", "role")],
        )
        tasks = _create_table(
            resource,
            os.environ["TASKS_TABLE"],
            [{"AttributeName": "task_id", "KeyType": "HASH"}],
            _string_attrs("task_id", "assigned_to", "due_date", "status"),
            [
                _gsi("by_assignee", "assigned_to", "due_date"),
                _gsi("by_status", "status", "due_date"),
            ],
        )
        settings = _create_table(
            resource,
            os.environ["USER_SETTINGS_TABLE"],
            [{"AttributeName": "user_id", "KeyType": "HASH"}],
            _string_attrs("user_id"),
        )
        metric_key = [
            {"AttributeName": "user_id", "KeyType": "HASH"},
            {"AttributeName": "period_start", "KeyType": "RANGE"},
        ]
        performance = _create_table(
            resource,
            os.environ["PERFORMANCE_TABLE"],
            metric_key,
            _string_attrs("user_id", "period_start"),
        )
        daily_metrics = _create_table(
            resource,
            os.environ["DAILY_METRICS_TABLE"],
            metric_key,
            _string_attrs("user_id", "period_start"),
        )

        cognito = boto3.client("cognito-idp", region_name="us-east-1")
        pool = cognito.create_user_pool(
            PoolName="test-taskboard",
            Schema=[
                {
                    "Name": "role",
                    "AttributeDataType": "String",
                    "Mutable": True,
                }
            ],
        )
        user_pool_id = pool["UserPool"]["Id"]
        os.environ["COGNITO_USER_POOL_ID"] = user_pool_id

        yield AwsTables(
            users=users,
            tasks=tasks,
            settings=settings,
            performance=performance,
            daily_metrics=daily_metrics,
            user_pool_id=user_pool_id,
            cognito=cognito,
        )


# =============================================================================
# Session tokens
# =============================================================================


def make_token(
    user_id: str = "user-1234567890",
    role: str | None = "client",
    secret: str | None = None,
    expires_in: int = 3600,
    **claims: Any,
) -> str:
    """Issue an HS256 session token the auth middleware accepts."""
    now = int(time.time())
    payload: dict[str, Any] = {"sub": user_id, "iat": now, "exp": now + expires_in}
    if role is not None:
        payload["custom:role"] = role
    payload.update(claims)
    return jwt.encode(payload, secret or os.environ["JWT_SECRET"], algorithm="HS256")


def role_claim(tables: AwsTables, uid: str) -> str | None:
    """Read the custom:role attribute straight from the moto user pool."""
    user = tables.cognito.admin_get_user(UserPoolId=tables.user_pool_id, Username=uid)
    for attribute in user["UserAttributes"]:
        if attribute["Name"] == "custom:role":
            return attribute["Value"]
    return None


def auth_headers(user_id: str = "user-1234567890", role: str | None = "client") -> dict:
    """Authorization header for a bearer session token."""
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


# =============================================================================
# Log assertion helpers
# =============================================================================


def assert_error_logged(caplog, pattern: str):
    """
    Helper to assert an ERROR log was captured.

    Example:
        def test_cleanup_failure(caplog):
            service.cleanup_deleted_user("u1")
            assert_error_logged(caplog, "Failed to delete user settings")
    """
    assert any(
        pattern in record.message
        for record in caplog.records
        if record.levelno >= logging.ERROR
    ), f"Expected ERROR log matching '{pattern}' not found"


def assert_warning_logged(caplog, pattern: str):
    """Helper to assert a WARNING log was captured."""
    assert any(
        pattern in record.message
        for record in caplog.records
        if record.levelno == logging.WARNING
    ), f"Expected WARNING log matching '{pattern}' not found"
