"""
Application Configuration
=========================

Parses and validates configuration from environment variables.

For On-Call Engineers:
    Environment variables:
    - USERS_TABLE: Users table (stream enabled, by_role GSI)
    - TASKS_TABLE: Tasks table (by_assignee, by_status GSIs)
    - USER_SETTINGS_TABLE: Per-user settings
    - PERFORMANCE_TABLE: Weekly completion metrics
    - DAILY_METRICS_TABLE: Daily completion metrics
    - COGNITO_USER_POOL_ID: User pool holding accounts and role claims
    - SUPER_ADMIN_EMAIL: The only identity allowed to bootstrap a super admin
    - METRICS_TIMEZONE: Timezone for daily windows (default America/New_York)

    If a Lambda fails at cold start with ConfigurationError, check the
    Lambda environment variables in the AWS Console.

For Developers:
    - Use get_config() to load all configuration
    - Configuration is validated on load
    - AppConfig is immutable; pass it to services instead of reading os.environ
"""

import logging
import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_METRICS_TIMEZONE = "America/New_York"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@dataclass(frozen=True)
class AppConfig:
    """
    Configuration shared by the users, metrics, and tasks Lambdas.

    On-Call Note:
        If any required field is missing, Lambda will fail to start.
        Check CloudWatch logs for the specific missing variable.
    """

    users_table: str
    tasks_table: str
    user_settings_table: str
    performance_table: str
    daily_metrics_table: str
    user_pool_id: str
    super_admin_email: str
    metrics_timezone: str = DEFAULT_METRICS_TIMEZONE
    environment: str = "dev"
    aws_region: str = "us-east-1"

    def __post_init__(self):
        self._validate()

    def _validate(self):
        required = {
            "USERS_TABLE": self.users_table,
            "TASKS_TABLE": self.tasks_table,
            "USER_SETTINGS_TABLE": self.user_settings_table,
            "PERFORMANCE_TABLE": self.performance_table,
            "DAILY_METRICS_TABLE": self.daily_metrics_table,
            "COGNITO_USER_POOL_ID": self.user_pool_id,
            "SUPER_ADMIN_EMAIL": self.super_admin_email,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {missing}")

        if "@" not in self.super_admin_email:
            raise ConfigurationError("SUPER_ADMIN_EMAIL must be an email address")

        try:
            ZoneInfo(self.metrics_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(
                f"Unknown METRICS_TIMEZONE: {self.metrics_timezone}"
            ) from None

    @property
    def tz(self) -> ZoneInfo:
        """Timezone used for daily metric windows."""
        return ZoneInfo(self.metrics_timezone)


def get_config() -> AppConfig:
    """
    Load and validate configuration from environment variables.

    Raises:
        ConfigurationError: If required vars missing or invalid
    """
    config = AppConfig(
        users_table=os.environ.get("USERS_TABLE", ""),
        tasks_table=os.environ.get("TASKS_TABLE", ""),
        user_settings_table=os.environ.get("USER_SETTINGS_TABLE", ""),
        performance_table=os.environ.get("PERFORMANCE_TABLE", ""),
        daily_metrics_table=os.environ.get("DAILY_METRICS_TABLE", ""),
        user_pool_id=os.environ.get("COGNITO_USER_POOL_ID", ""),
        super_admin_email=os.environ.get("SUPER_ADMIN_EMAIL", ""),
        metrics_timezone=os.environ.get("METRICS_TIMEZONE", DEFAULT_METRICS_TIMEZONE),
        environment=os.environ.get("ENVIRONMENT", "dev"),
        aws_region=(
            os.environ.get("AWS_DEFAULT_REGION")
            or os.environ.get("AWS_REGION")
            or "us-east-1"
        ),
    )

    logger.debug(
        "Configuration loaded",
        extra={
            "environment": config.environment,
            "users_table": config.users_table,
            "tasks_table": config.tasks_table,
        },
    )

    return config
