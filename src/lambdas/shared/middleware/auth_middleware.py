"""Session authentication middleware.

Extracts the caller's identity and role from an Authorization: Bearer
JWT. Tokens carry the user id in 'sub' and the role in 'custom:role'
(mirrored from the users table by the identity provider). Tokens that
only carry 'cognito:groups' resolve to the highest role listed.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import jwt
from aws_xray_sdk.core import xray_recorder

from src.lambdas.shared.auth.authorization import highest_role, parse_role
from src.lambdas.shared.auth.cognito import ROLE_CLAIM_ATTRIBUTE
from src.lambdas.shared.auth.enums import VALID_ROLES, Role
from src.lambdas.shared.errors.auth_errors import InvalidRoleError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JWTClaim:
    """Represents validated claims from a JWT token.

    Attributes:
        subject: User ID (from 'sub' claim)
        expiration: Token expiration timestamp
        issued_at: Token issued timestamp
        role: Role claim, if present
        issuer: Token issuer (optional)
    """

    subject: str
    expiration: datetime
    issued_at: datetime
    role: str | None = None
    issuer: str | None = None


@dataclass(frozen=True)
class JWTConfig:
    """Configuration for JWT validation.

    Attributes:
        secret: Secret key for HMAC validation
        algorithm: JWT algorithm (default: HS256)
        issuer: Expected issuer (optional, for validation)
        leeway_seconds: Clock skew tolerance (default: 60s)
    """

    secret: str
    algorithm: str = "HS256"
    issuer: str | None = None
    leeway_seconds: int = 60


@dataclass(frozen=True)
class AuthContext:
    """Authenticated subject for one request.

    Attributes:
        user_id: Caller's uid, None when unauthenticated
        role: Role presented by the session, None when absent or invalid
        auth_method: 'bearer' | None
    """

    user_id: str | None = None
    role: Role | None = None
    auth_method: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


def _get_jwt_config() -> JWTConfig | None:
    """Load JWT configuration from environment.

    Returns:
        JWTConfig if JWT_SECRET is set, None otherwise
    """
    secret = os.environ.get("JWT_SECRET")
    if not secret:
        return None

    return JWTConfig(
        secret=secret,
        algorithm=os.environ.get("JWT_ALGORITHM", "HS256"),
        issuer=os.environ.get("JWT_ISSUER") or None,
        leeway_seconds=int(os.environ.get("JWT_LEEWAY_SECONDS", "60")),
    )


def _role_from_payload(payload: dict[str, Any]) -> str | None:
    role = payload.get(ROLE_CLAIM_ATTRIBUTE) or payload.get("role")
    if role:
        return str(role)

    groups = payload.get("cognito:groups")
    if not isinstance(groups, list):
        return None
    known = [g for g in groups if isinstance(g, str) and g in VALID_ROLES]
    best = highest_role(known)
    return best.value if best else None


def validate_jwt(token: str, config: JWTConfig | None = None) -> JWTClaim | None:
    """Validate a JWT token and extract claims.

    Validates the token signature, expiration, and required claims.

    Args:
        token: JWT token string (without "Bearer " prefix)
        config: Optional JWTConfig, uses environment if not provided

    Returns:
        JWTClaim if valid, None if invalid
    """
    if config is None:
        config = _get_jwt_config()
        if config is None:
            logger.warning("JWT_SECRET not configured, cannot validate JWT")
            return None

    try:
        payload = jwt.decode(
            token,
            config.secret,
            algorithms=[config.algorithm],
            issuer=config.issuer,
            leeway=config.leeway_seconds,
            options={
                "require": ["sub", "exp", "iat"],
                "verify_aud": False,
            },
        )

        return JWTClaim(
            subject=payload["sub"],
            expiration=datetime.fromtimestamp(payload["exp"], tz=UTC),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
            role=_role_from_payload(payload),
            issuer=payload.get("iss"),
        )

    except jwt.ExpiredSignatureError:
        logger.debug("JWT token has expired")
        return None
    except jwt.InvalidIssuerError:
        logger.debug("JWT token has invalid issuer")
        return None
    except jwt.InvalidSignatureError:
        logger.warning("JWT token has invalid signature")
        return None
    except jwt.DecodeError:
        logger.debug("JWT token is malformed")
        return None
    except jwt.MissingRequiredClaimError as e:
        logger.debug(f"JWT token missing required claim: {e}")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"JWT token rejected: {type(e).__name__}")
        return None


@xray_recorder.capture("extract_auth_context")
def extract_auth_context(headers: dict[str, Any] | None) -> AuthContext:
    """Extract the authenticated subject from request headers.

    A valid token with an unknown role claim authenticates the user but
    presents no role; role-gated endpoints then deny.

    Args:
        headers: Request headers (any key case)

    Returns:
        AuthContext, unauthenticated if no valid Bearer token
    """
    normalized_headers = {k.lower(): v for k, v in (headers or {}).items()}

    auth_header = normalized_headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        logger.debug("No bearer token in request headers")
        return AuthContext()

    claim = validate_jwt(auth_header[7:])
    if claim is None:
        return AuthContext()

    role: Role | None = None
    if claim.role is not None:
        try:
            role = parse_role(claim.role)
        except InvalidRoleError:
            logger.warning(
                "Token carries unknown role claim",
                extra={"user_id": claim.subject[:8]},
            )

    return AuthContext(user_id=claim.subject, role=role, auth_method="bearer")
