"""Role-based access control decorators for FastAPI endpoints.

This module provides @require_role and @require_action for protecting
endpoints based on the caller's role claim, decided by the shared
authorization policy.

Usage:
    from src.lambdas.shared.middleware import require_action, require_role

    @app.get("/api/analytics")
    @require_action("view_analytics")
    async def analytics(request: Request):
        ...

    @app.post("/api/tasks")
    @require_role("engineer")
    async def create_task(request: Request):
        ...

Security:
    - Generic error messages prevent role enumeration attacks
    - Role and action names are validated at decoration time
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from fastapi import HTTPException, Request

from src.lambdas.shared.auth.authorization import (
    DEFAULT_POLICY,
    AuthorizationPolicy,
    parse_action,
    parse_role,
)
from src.lambdas.shared.auth.enums import Action, Role
from src.lambdas.shared.middleware.auth_middleware import (
    AuthContext,
    extract_auth_context,
)

logger = logging.getLogger(__name__)

# Type variable for preserving function signatures
F = TypeVar("F", bound=Callable[..., Any])


def _find_request(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Request | None:
    if isinstance(kwargs.get("request"), Request):
        return kwargs["request"]
    for arg in args:
        if isinstance(arg, Request):
            return arg
    return None


def _authorize(
    label: str,
    check: Callable[[Role], bool],
) -> Callable[[F], F]:
    """Build a decorator that runs check against the caller's role."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            request = _find_request(args, kwargs)
            if request is None:
                # This shouldn't happen in normal FastAPI usage
                logger.error(f"{label}: No Request object found in handler args")
                raise HTTPException(status_code=500, detail="Internal server error")

            auth_context: AuthContext = extract_auth_context(dict(request.headers))

            if not auth_context.is_authenticated:
                logger.debug(f"{label}: No user_id, returning 401")
                raise HTTPException(status_code=401, detail="Authentication required")

            if auth_context.role is None:
                logger.debug(f"{label}: No role claim, returning 401")
                raise HTTPException(status_code=401, detail="Invalid token structure")

            if not check(auth_context.role):
                # SECURITY: Generic message prevents role enumeration
                logger.debug(
                    f"{label}: User {auth_context.user_id[:8]}... "
                    f"with role {auth_context.role} denied, returning 403"
                )
                raise HTTPException(status_code=403, detail="Access denied")

            request.state.auth = auth_context
            return await func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def require_role(
    required_role: Role | str,
    policy: AuthorizationPolicy = DEFAULT_POLICY,
) -> Callable[[F], F]:
    """Decorator factory: caller's role must rank at or above required_role.

    Raises:
        InvalidRoleError: At decoration time if the role is not valid.
            This causes app startup to fail, catching typos early.
    """
    role = parse_role(required_role)
    return _authorize(
        f"require_role({role})",
        lambda actual: policy.has_role(role, actual),
    )


def require_action(
    action: Action | str,
    policy: AuthorizationPolicy = DEFAULT_POLICY,
) -> Callable[[F], F]:
    """Decorator factory: caller's role must permit action.

    Raises:
        UnrecognizedActionError: At decoration time if the action is unknown.
    """
    known = parse_action(action)
    return _authorize(
        f"require_action({known})",
        lambda actual: policy.can_perform_action(actual, known),
    )
