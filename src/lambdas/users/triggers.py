"""Users table stream handler.

Triggered by DynamoDB Streams on USERS_TABLE (NEW_IMAGE view):
- INSERT: provision default user settings seeded with the user's role
- REMOVE: cascade deletion to the Cognito identity, settings, and tasks

Records are processed independently. Failed records are reported back as
batchItemFailures so only they are retried (the event source mapping
must enable ReportBatchItemFailures).
"""

import logging
import os
from functools import lru_cache
from typing import Any

from aws_xray_sdk.core import patch_all
from boto3.dynamodb.types import TypeDeserializer

from src.lambdas.shared.config import get_config
from src.lambdas.shared.dynamodb import parse_dynamodb_item
from src.lambdas.shared.logging_utils import get_safe_error_info
from src.lambdas.users.service import UserService

# Patch boto3 for X-Ray tracing
patch_all()

logger = logging.getLogger(__name__)
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

_deserializer = TypeDeserializer()


@lru_cache(maxsize=1)
def get_user_service() -> UserService:
    return UserService(get_config())


def _deserialize(image: dict[str, Any]) -> dict[str, Any]:
    return parse_dynamodb_item({k: _deserializer.deserialize(v) for k, v in image.items()})


def process_record(record: dict[str, Any], service: UserService) -> bool:
    """Handle one stream record.

    Returns:
        True if handled (or ignored), False if it should be retried
    """
    event_name = record.get("eventName")
    stream = record.get("dynamodb", {})
    keys = _deserialize(stream.get("Keys", {}))
    user_id = keys.get("user_id")

    if not user_id:
        logger.warning("Stream record without user_id key", extra={"event": event_name})
        return True

    if event_name == "INSERT":
        service.provision_user_settings(user_id, _deserialize(stream.get("NewImage", {})))
        return True

    if event_name == "REMOVE":
        return service.cleanup_deleted_user(user_id).ok

    # MODIFY: role changes are mirrored by update_user_role itself
    return True


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Process a batch of users table stream records.

    Returns:
        {"batchItemFailures": [{"itemIdentifier": sequence_number}, ...]}
    """
    service = get_user_service()
    records = event.get("Records", [])
    failures = []

    for record in records:
        sequence_number = record.get("dynamodb", {}).get("SequenceNumber")
        try:
            handled = process_record(record, service)
        except Exception as e:
            logger.error(
                "Stream record failed",
                extra={"sequence_number": sequence_number, **get_safe_error_info(e)},
            )
            handled = False

        if not handled:
            failures.append({"itemIdentifier": sequence_number})

    logger.info(
        "Processed users stream batch",
        extra={"records": len(records), "failed": len(failures)},
    )
    return {"batchItemFailures": failures}
