"""
Standardized Error Response Helper
==================================

Provides consistent error response formatting across all Lambda functions.

For On-Call Engineers:
    Error codes and their meanings:
    - VALIDATION_ERROR: Input validation failure (bad body, bad role)
    - NOT_FOUND: User or profile not found
    - CONFLICT: Account or super admin already exists
    - UNAUTHORIZED: No session / invalid token
    - FORBIDDEN: Authenticated but role does not permit the operation
    - INTERNAL_ERROR: Unexpected server error

    Search logs by error code:
    aws logs filter-log-events \
      --log-group-name /aws/lambda/dev-taskboard-users \
      --filter-pattern "FORBIDDEN"

For Developers:
    - Use error_response() for all API error responses
    - Use user_error_response() to render a UserManagementError
    - Include request_id from Lambda context for correlation
    - Add details dict for debugging info (not exposed to users)

Security Notes:
    - Never expose internal error details to end users
    - Log full details server-side, return sanitized response
    - request_id enables correlation without exposing internals
"""

import json
import logging
from enum import Enum
from typing import Any

from src.lambdas.shared.errors.user_errors import ErrorKind, UserManagementError

# Structured logging
logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """
    Standardized error codes for machine-readable error handling.

    On-Call Note:
        These codes appear in logs and can be used for filtering:
        filter @message like /FORBIDDEN/
    """

    # Input/validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Authentication/authorization
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


_KIND_TO_CODE: dict[ErrorKind, ErrorCode] = {
    ErrorKind.UNAUTHORIZED: ErrorCode.FORBIDDEN,
    ErrorKind.NOT_FOUND: ErrorCode.NOT_FOUND,
    ErrorKind.CONFLICT: ErrorCode.CONFLICT,
    ErrorKind.INVALID_INPUT: ErrorCode.VALIDATION_ERROR,
}


def error_response(
    status_code: int,
    message: str,
    code: str | ErrorCode,
    request_id: str,
    details: dict[str, Any] | None = None,
    log_error: bool = True,
) -> dict[str, Any]:
    """
    Create a standardized error response for Lambda API responses.

    Response format:
    {
        "statusCode": 403,
        "body": {
            "error": "Human readable message",
            "code": "MACHINE_READABLE_CODE",
            "details": {},
            "request_id": "lambda-request-id-123"
        }
    }

    Args:
        status_code: HTTP status code (400, 401, 404, 500, etc.)
        message: Human-readable error message
        code: Machine-readable error code (from ErrorCode enum)
        request_id: Lambda request ID for correlation
        details: Additional details for debugging (returned, never logged)
        log_error: Whether to log the error (default True)

    Returns:
        Lambda-compatible response dict with statusCode and JSON body
    """
    error_code = code.value if isinstance(code, ErrorCode) else code

    body = {
        "error": message,
        "code": error_code,
        "request_id": request_id,
    }

    if details:
        body["details"] = details

    # Log error metadata only - no user-provided details
    if log_error:
        log_level = logging.ERROR if status_code >= 500 else logging.WARNING
        logger.log(
            log_level,
            message,
            extra={
                "status_code": status_code,
                "error_code": error_code,
                "request_id": request_id,
            },
        )

    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "X-Request-Id": request_id,
        },
        "body": json.dumps(body),
    }


def user_error_response(
    error: UserManagementError,
    request_id: str,
) -> dict[str, Any]:
    """
    Render a rejected user management operation.

    Example:
        >>> try:
        ...     service.update_user_role(caller_id, user_id, new_role)
        ... except UserManagementError as e:
        ...     return user_error_response(e, context.aws_request_id)
    """
    return error_response(
        error.status_code,
        error.message,
        _KIND_TO_CODE[error.kind],
        request_id,
    )


def unauthorized_error(
    request_id: str,
    message: str = "Authentication required",
) -> dict[str, Any]:
    """
    Create a 401 unauthorized error response.

    On-Call Note:
        This usually means a missing or expired session token.
        Check JWT_SECRET matches the token issuer's signing key.
    """
    return error_response(
        401,
        message,
        ErrorCode.UNAUTHORIZED,
        request_id,
    )


def internal_error(
    request_id: str,
    message: str = "Internal server error",
) -> dict[str, Any]:
    """
    Create a 500 internal server error response.

    Use for unexpected errors. Only request_id is logged for correlation.

    Security Note:
        Never expose internal error details to end users.
    """
    logger.error(
        f"Internal error: {message}",
        extra={"request_id": request_id},
    )

    return error_response(
        500,
        message,
        ErrorCode.INTERNAL_ERROR,
        request_id,
        details=None,
        log_error=False,  # Already logged above
    )
