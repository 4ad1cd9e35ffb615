"""
Secure logging utilities to prevent log injection and sensitive data exposure.

This module provides functions to sanitize data before logging, preventing:
- Log injection attacks (CWE-117, CWE-93)
- Sensitive data exposure in logs (full email addresses, exception messages)

Security References:
- OWASP Logging Cheat Sheet: https://cheatsheetseries.owasp.org/cheatsheets/Logging_Cheat_Sheet.html
"""

import re
from typing import Any

# Maximum length for logged user input to prevent log flooding
MAX_LOG_INPUT_LENGTH = 200


def sanitize_for_log(value: Any, max_length: int = MAX_LOG_INPUT_LENGTH) -> str:
    """
    Sanitize a value for safe logging by removing CRLF and limiting length.

    Args:
        value: Value to sanitize (will be converted to string)
        max_length: Maximum length of output (default: 200)

    Returns:
        Sanitized string safe for logging

    Example:
        >>> sanitize_for_log("error\\n[FAKE] Admin logged in")
        'error [FAKE] Admin logged in'
    """
    text = str(value)

    # Remove CRLF characters to prevent log injection
    text = text.replace("\r", " ").replace("\n", " ").replace("\t", " ")

    # Remove other control characters
    text = re.sub(r"[\x00-\x1f\x7f-\x9f]", " ", text)

    if len(text) > max_length:
        text = text[:max_length] + "..."

    return text


def mask_email(email: str | None) -> str:
    """
    Mask an email address for logging.

    Example:
        >>> mask_email("jane.doe@example.com")
        'j***@example.com'
    """
    if not email:
        return ""
    local, sep, domain = str(email).partition("@")
    if not sep:
        return "***"
    return sanitize_for_log(f"{local[:1]}***@{domain}")


def get_safe_error_info(exception: Exception) -> dict[str, str]:
    """
    Extract safe information from an exception for logging.

    Returns only the exception type, NOT the message, which may carry
    user-controlled data or internal details.

    Example:
        >>> get_safe_error_info(ValueError("user input here"))
        {'error_type': 'ValueError'}
    """
    return {"error_type": type(exception).__name__}
