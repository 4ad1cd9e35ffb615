"""Unit tests for user management result kinds and RBAC error types."""

import pytest

from src.lambdas.shared.auth.enums import VALID_ACTIONS, VALID_ROLES
from src.lambdas.shared.errors import (
    USER_ERROR_STATUS,
    ErrorKind,
    InvalidRoleError,
    UnrecognizedActionError,
    UserManagementError,
)


class TestUserErrorStatus:
    @pytest.mark.parametrize(
        "kind,status",
        [
            (ErrorKind.UNAUTHORIZED, 403),
            (ErrorKind.NOT_FOUND, 404),
            (ErrorKind.CONFLICT, 409),
            (ErrorKind.INVALID_INPUT, 400),
        ],
    )
    def test_status_mapping(self, kind, status):
        assert USER_ERROR_STATUS[kind] == status
        assert UserManagementError(kind, "msg").status_code == status

    def test_every_kind_has_a_status(self):
        assert set(USER_ERROR_STATUS) == set(ErrorKind)

    def test_message_and_repr(self):
        error = UserManagementError(ErrorKind.CONFLICT, "Super admin already exists")

        assert str(error) == "Super admin already exists"
        assert repr(error) == "UserManagementError(CONFLICT, 'Super admin already exists')"


class TestRbacErrors:
    def test_invalid_role_error(self):
        error = InvalidRoleError("owner", VALID_ROLES)

        assert isinstance(error, ValueError)
        assert error.role == "owner"
        assert "Valid roles" in str(error)

    def test_unrecognized_action_error(self):
        error = UnrecognizedActionError("fly", VALID_ACTIONS)

        assert isinstance(error, ValueError)
        assert error.action == "fly"
        assert "manage_users" in str(error)
