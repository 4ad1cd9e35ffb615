"""
Users Lambda Handler
====================

FastAPI application serving the remote-callable user management operations.

Endpoints:
    POST /api/users/super-admin  {email, password} -> {uid}
    POST /api/users              {email, password} -> {uid}
    POST /api/users/role         {userId, newRole} -> {success}  (session required)
    GET  /api/users/me           {} -> {...profile, uid}          (session required)
    GET  /api/users/assignable-roles    -> {roles}                 (manage_users)
    GET  /health

For On-Call Engineers:
    If role updates return 403 for a super admin:
    1. Check the caller's item in USERS_TABLE has role=super_admin
    2. The target role must be below super_admin (super admins are bootstrap-only)

For Developers:
    - Uses Mangum adapter for Lambda Function URL compatibility
    - UserService is injected via Depends(get_user_service); override in tests
    - UserManagementError kinds map to 400/403/404/409 via user_error_response()

Security Notes:
    - The caller is identified from the Bearer session token only
    - Rejections return generic messages; internals are logged, not returned

X-Ray Tracing:
    X-Ray is enabled for distributed tracing across all Lambda invocations.
"""

# X-Ray must be imported and patched before other imports
from aws_xray_sdk.core import patch_all  # noqa: E402

patch_all()

import json
import logging
import uuid
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from mangum import Mangum

from src.lambdas.shared.auth.authorization import get_assignable_roles
from src.lambdas.shared.auth.enums import Action
from src.lambdas.shared.config import get_config
from src.lambdas.shared.errors.user_errors import UserManagementError
from src.lambdas.shared.errors_module import (
    internal_error,
    unauthorized_error,
    user_error_response,
)
from src.lambdas.shared.logging_utils import get_safe_error_info
from src.lambdas.shared.middleware.auth_middleware import extract_auth_context
from src.lambdas.shared.middleware.require_role import require_action
from src.lambdas.shared.models.user import CreateAccountRequest, UpdateRoleRequest
from src.lambdas.users.service import UserService

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


@lru_cache(maxsize=1)
def get_user_service() -> UserService:
    """UserService built once per container from environment config."""
    return UserService(get_config())


def _request_id(request: Request) -> str:
    context = request.scope.get("aws.context")
    return (
        getattr(context, "aws_request_id", None)
        or request.headers.get("x-request-id")
        or str(uuid.uuid4())
    )


def _to_json_response(response: dict[str, Any]) -> JSONResponse:
    return JSONResponse(
        status_code=response["statusCode"],
        content=json.loads(response["body"]),
        headers={"X-Request-Id": response["headers"]["X-Request-Id"]},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Logs startup and shutdown events for monitoring."""
    logger.info("Users Lambda starting")
    yield
    logger.info("Users Lambda shutting down")


app = FastAPI(
    title="Taskboard Users API",
    description="Role-based user management",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(UserManagementError)
async def handle_user_management_error(
    request: Request, exc: UserManagementError
) -> JSONResponse:
    return _to_json_response(user_error_response(exc, _request_id(request)))


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error in users API",
        extra={"path": request.url.path, **get_safe_error_info(exc)},
    )
    return _to_json_response(internal_error(_request_id(request)))


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.post("/api/users/super-admin")
def create_super_admin(
    body: CreateAccountRequest,
    service: UserService = Depends(get_user_service),
):
    return service.create_super_admin(body.email, body.password)


@app.post("/api/users")
def create_user_account(
    request: Request,
    body: CreateAccountRequest,
    service: UserService = Depends(get_user_service),
):
    auth = extract_auth_context(dict(request.headers))
    return service.create_user_account(body.email, body.password, created_by=auth.user_id)


@app.post("/api/users/role")
def update_user_role(
    request: Request,
    body: UpdateRoleRequest,
    service: UserService = Depends(get_user_service),
):
    auth = extract_auth_context(dict(request.headers))
    if not auth.is_authenticated:
        return _to_json_response(unauthorized_error(_request_id(request)))
    return service.update_user_role(auth.user_id, body.user_id, body.new_role)


@app.get("/api/users/me")
def get_user_profile(
    request: Request,
    service: UserService = Depends(get_user_service),
):
    auth = extract_auth_context(dict(request.headers))
    if not auth.is_authenticated:
        return _to_json_response(
            unauthorized_error(_request_id(request), "User must be authenticated")
        )
    return service.get_user_profile(auth.user_id)


@app.get("/api/users/assignable-roles")
@require_action(Action.MANAGE_USERS)
async def list_assignable_roles(request: Request):
    """Roles the caller may pass as newRole, lowest privilege first."""
    auth = request.state.auth
    return {"roles": [role.value for role in get_assignable_roles(auth.role)]}


handler = Mangum(app, lifespan="off")


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda entry point (Function URL / API Gateway proxy)."""
    return handler(event, context)
