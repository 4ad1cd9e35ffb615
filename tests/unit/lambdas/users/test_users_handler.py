"""Unit tests for the users FastAPI application.

The UserService dependency is replaced with a MagicMock so these tests
cover routing, session extraction, and error rendering only.
"""

import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.lambdas.shared.errors.user_errors import ErrorKind, UserManagementError
from src.lambdas.users.handler import app, get_user_service, lambda_handler
from tests.conftest import auth_headers


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def client(service):
    app.dependency_overrides[get_user_service] = lambda: service
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestLambdaHandler:
    def test_function_url_event_is_routed(self, mock_lambda_context):
        event = {
            "version": "2.0",
            "routeKey": "$default",
            "rawPath": "/health",
            "rawQueryString": "",
            "headers": {"host": "users.lambda-url.us-east-1.on.aws"},
            "requestContext": {
                "http": {
                    "method": "GET",
                    "path": "/health",
                    "protocol": "HTTP/1.1",
                    "sourceIp": "127.0.0.1",
                    "userAgent": "pytest",
                },
                "requestId": "req-1",
                "stage": "$default",
            },
            "isBase64Encoded": False,
        }

        response = lambda_handler(event, mock_lambda_context)

        assert response["statusCode"] == 200
        assert json.loads(response["body"]) == {"status": "healthy"}


class TestCreateSuperAdmin:
    def test_returns_uid(self, client, service):
        service.create_super_admin.return_value = {"uid": "uid-admin"}

        response = client.post(
            "/api/users/super-admin",
            json={"email": "admin@example.com", "password": "pw"},  # pragma: allowlist secret
        )

        assert response.status_code == 200
        assert response.json() == {"uid": "uid-admin"}
        service.create_super_admin.assert_called_once_with("admin@example.com", "pw")

    def test_conflict_renders_409(self, client, service):
        service.create_super_admin.side_effect = UserManagementError(
            ErrorKind.CONFLICT, "Super admin already exists"
        )

        response = client.post(
            "/api/users/super-admin",
            json={"email": "admin@example.com", "password": "pw"},  # pragma: allowlist secret
            headers={"X-Request-Id": "req-123"},
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "Super admin already exists"
        assert body["code"] == "CONFLICT"
        assert body["request_id"] == "req-123"
        assert response.headers["X-Request-Id"] == "req-123"

    def test_empty_body_reaches_service(self, client, service):
        service.create_super_admin.side_effect = UserManagementError(
            ErrorKind.INVALID_INPUT, "Email and password are required"
        )

        response = client.post("/api/users/super-admin", json={})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        service.create_super_admin.assert_called_once_with(None, None)


class TestCreateUserAccount:
    def test_anonymous_creation(self, client, service):
        service.create_user_account.return_value = {"uid": "uid-new"}

        response = client.post(
            "/api/users",
            json={"email": "jane@example.com", "password": "pw"},  # pragma: allowlist secret
        )

        assert response.status_code == 200
        service.create_user_account.assert_called_once_with(
            "jane@example.com", "pw", created_by=None
        )

    def test_records_authenticated_creator(self, client, service):
        service.create_user_account.return_value = {"uid": "uid-new"}

        client.post(
            "/api/users",
            json={"email": "jane@example.com", "password": "pw"},  # pragma: allowlist secret
            headers=auth_headers("uid-admin", "super_admin"),
        )

        service.create_user_account.assert_called_once_with(
            "jane@example.com", "pw", created_by="uid-admin"
        )


class TestUpdateUserRole:
    def test_requires_session(self, client, service):
        response = client.post("/api/users/role", json={"userId": "u2", "newRole": "founder"})

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"
        service.update_user_role.assert_not_called()

    def test_passes_caller_from_session(self, client, service):
        service.update_user_role.return_value = {"success": True}

        response = client.post(
            "/api/users/role",
            json={"userId": "u2", "newRole": "founder"},
            headers=auth_headers("uid-admin", "super_admin"),
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        service.update_user_role.assert_called_once_with("uid-admin", "u2", "founder")

    def test_unauthorized_kind_renders_403(self, client, service):
        service.update_user_role.side_effect = UserManagementError(
            ErrorKind.UNAUTHORIZED, "Only super admin can update user roles"
        )

        response = client.post(
            "/api/users/role",
            json={"userId": "u2", "newRole": "founder"},
            headers=auth_headers("uid-1", "founder"),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_not_found_renders_404(self, client, service):
        service.update_user_role.side_effect = UserManagementError(
            ErrorKind.NOT_FOUND, "User not found"
        )

        response = client.post(
            "/api/users/role",
            json={"userId": "ghost", "newRole": "founder"},
            headers=auth_headers("uid-admin", "super_admin"),
        )

        assert response.status_code == 404


class TestGetUserProfile:
    def test_requires_session(self, client):
        response = client.get("/api/users/me")

        assert response.status_code == 401
        assert response.json()["error"] == "User must be authenticated"

    def test_returns_profile(self, client, service):
        service.get_user_profile.return_value = {"uid": "uid-1", "role": "client"}

        response = client.get("/api/users/me", headers=auth_headers("uid-1", "client"))

        assert response.status_code == 200
        assert response.json() == {"uid": "uid-1", "role": "client"}
        service.get_user_profile.assert_called_once_with("uid-1")

    def test_unexpected_error_is_generic_500(self, client, service):
        service.get_user_profile.side_effect = RuntimeError("secret internals")

        response = client.get("/api/users/me", headers=auth_headers("uid-1", "client"))

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"
        assert "secret internals" not in response.text


class TestAssignableRoles:
    def test_super_admin_sees_lower_roles(self, client):
        response = client.get(
            "/api/users/assignable-roles",
            headers=auth_headers("uid-admin", "super_admin"),
        )

        assert response.status_code == 200
        assert response.json() == {"roles": ["client", "engineer", "founder"]}

    @pytest.mark.parametrize("role", ["client", "engineer", "founder"])
    def test_other_roles_are_forbidden(self, client, role):
        response = client.get("/api/users/assignable-roles", headers=auth_headers("uid-1", role))

        assert response.status_code == 403

    def test_requires_session(self, client):
        assert client.get("/api/users/assignable-roles").status_code == 401
