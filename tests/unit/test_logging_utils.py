"""Unit tests for secure logging helpers."""

import pytest

from src.lambdas.shared.logging_utils import (
    MAX_LOG_INPUT_LENGTH,
    get_safe_error_info,
    mask_email,
    sanitize_for_log,
)


class TestSanitizeForLog:
    def test_strips_crlf(self):
        assert sanitize_for_log("error\n[FAKE] Admin logged in") == "error [FAKE] Admin logged in"

    def test_strips_control_characters(self):
        assert sanitize_for_log("a\x00b\x1bc") == "a b c"

    def test_truncates_long_values(self):
        result = sanitize_for_log("x" * (MAX_LOG_INPUT_LENGTH + 50))

        assert result == "x" * MAX_LOG_INPUT_LENGTH + "..."

    def test_non_string_values(self):
        assert sanitize_for_log(42) == "42"


class TestMaskEmail:
    @pytest.mark.parametrize(
        "email,expected",
        [
            ("jane.doe@example.com", "j***@example.com"),
            ("a@b.co", "a***@b.co"),
            ("no-at-sign", "***"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_masking(self, email, expected):
        assert mask_email(email) == expected


class TestGetSafeErrorInfo:
    def test_type_only(self):
        info = get_safe_error_info(ValueError("jane@example.com is invalid"))

        assert info == {"error_type": "ValueError"}
