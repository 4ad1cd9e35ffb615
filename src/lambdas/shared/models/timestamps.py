"""Timestamp helpers for DynamoDB items.

All timestamps are stored as ISO8601 strings normalized to UTC so range
conditions (completed_at >= :since, due_date < :now) compare correctly as
strings.
"""

from datetime import UTC, datetime


def to_iso(value: datetime) -> str:
    """Serialize to a UTC ISO8601 string. Naive datetimes are assumed UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def parse_iso(value: str | datetime) -> datetime:
    """Parse an ISO8601 string (trailing Z allowed) into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
