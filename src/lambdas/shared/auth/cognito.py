"""Cognito identity provider collaborator.

Handles:
- Account creation (admin API, no invitation email)
- Role claim updates (custom:role attribute, carried in issued tokens)
- Account deletion

For On-Call Engineers:
    Common issues:
    1. "attribute does not exist in the schema": the pool is missing the
       custom:role attribute. It must be declared mutable at pool creation.
    2. Role changes not visible to a user: the claim is only re-read when
       the user's tokens are refreshed or they sign in again.

Security Notes:
    - Passwords are passed straight to Cognito and never logged
    - The role claim mirrors the users table; the table is the source of truth
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import ClientError

from src.lambdas.shared.auth.enums import Role
from src.lambdas.shared.dynamodb import RETRY_CONFIG
from src.lambdas.shared.logging_utils import get_safe_error_info, mask_email

logger = logging.getLogger(__name__)

ROLE_CLAIM_ATTRIBUTE = "custom:role"


@dataclass
class CognitoConfig:
    """Cognito user pool location (built from AppConfig)."""

    user_pool_id: str
    region: str


class IdentityError(Exception):
    """Identity provider operation failed.

    error is one of: "conflict", "invalid_input", "not_found", "provider".
    """

    def __init__(self, error: str, message: str):
        self.error = error
        self.message = message
        super().__init__(message)


_CLIENT_ERROR_MAP = {
    "UsernameExistsException": "conflict",
    "AliasExistsException": "conflict",
    "InvalidPasswordException": "invalid_input",
    "InvalidParameterException": "invalid_input",
    "UserNotFoundException": "not_found",
}


def _to_identity_error(e: ClientError, operation: str) -> IdentityError:
    code = e.response.get("Error", {}).get("Code", "")
    return IdentityError(_CLIENT_ERROR_MAP.get(code, "provider"), f"{operation} failed: {code}")


class CognitoIdentityProvider:
    """Thin wrapper over the cognito-idp admin API.

    Usernames are generated UUIDs and double as the application uid;
    the email is a plain attribute.
    """

    def __init__(self, config: CognitoConfig, client: Any = None):
        self.config = config
        self._client = client or boto3.client(
            "cognito-idp",
            region_name=config.region,
            config=RETRY_CONFIG,
        )

    def find_user_by_email(self, email: str) -> str | None:
        """Return the username registered with email, if any."""
        escaped = email.replace("\\", "\\\\").replace('"', '\\"')
        response = self._client.list_users(
            UserPoolId=self.config.user_pool_id,
            Filter=f'email = "{escaped}"',
            Limit=1,
        )
        users = response.get("Users", [])
        return users[0]["Username"] if users else None

    def create_user(
        self,
        email: str,
        password: str,
        role: Role,
        email_verified: bool = False,
    ) -> str:
        """Create an account with a permanent password and a role claim.

        Returns:
            The new user's uid (Cognito username)

        Raises:
            IdentityError: conflict if the email is registered,
                invalid_input if Cognito rejects the email or password
        """
        if self.find_user_by_email(email):
            raise IdentityError("conflict", "Email already registered")

        uid = str(uuid.uuid4())
        try:
            self._client.admin_create_user(
                UserPoolId=self.config.user_pool_id,
                Username=uid,
                UserAttributes=[
                    {"Name": "email", "Value": email},
                    {"Name": "email_verified", "Value": str(email_verified).lower()},
                    {"Name": ROLE_CLAIM_ATTRIBUTE, "Value": role.value},
                ],
                MessageAction="SUPPRESS",
            )
        except ClientError as e:
            raise _to_identity_error(e, "admin_create_user") from e

        try:
            self._client.admin_set_user_password(
                UserPoolId=self.config.user_pool_id,
                Username=uid,
                Password=password,
                Permanent=True,
            )
        except ClientError as e:
            # Don't leave a half-created account behind
            self.delete_user(uid)
            raise _to_identity_error(e, "admin_set_user_password") from e

        logger.info(
            "Created identity",
            extra={"uid": uid, "email": mask_email(email), "role": role.value},
        )
        return uid

    def set_role_claim(self, uid: str, role: Role) -> None:
        """Overwrite the user's custom:role attribute.

        Raises:
            IdentityError: not_found if the user does not exist
        """
        try:
            self._client.admin_update_user_attributes(
                UserPoolId=self.config.user_pool_id,
                Username=uid,
                UserAttributes=[{"Name": ROLE_CLAIM_ATTRIBUTE, "Value": role.value}],
            )
        except ClientError as e:
            raise _to_identity_error(e, "admin_update_user_attributes") from e

        logger.info("Updated role claim", extra={"uid": uid, "role": role.value})

    def delete_user(self, uid: str) -> bool:
        """Delete an account.

        Returns:
            True if deleted, False if it did not exist
        """
        try:
            self._client.admin_delete_user(
                UserPoolId=self.config.user_pool_id,
                Username=uid,
            )
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "UserNotFoundException":
                logger.debug("Identity already deleted", extra={"uid": uid})
                return False
            logger.error(
                "Failed to delete identity",
                extra={"uid": uid, **get_safe_error_info(e)},
            )
            raise _to_identity_error(e, "admin_delete_user") from e
