"""User management service.

Account and role operations layered on the authorization policy:
- create_super_admin: one-time bootstrap for the designated identity
- create_user_account: new accounts start as client
- update_user_role: gated by get_assignable_roles() of the caller's stored role
- get_user_profile: caller's own profile
- provision_user_settings / cleanup_deleted_user: users table stream triggers

For On-Call Engineers:
    Role changes write the users table first, then the Cognito role claim.
    If the claim update fails after the table write, the table is still
    authoritative; the user's role catches up on the next successful
    update or token refresh.

Security Notes:
    - The caller's role is always read from the users table, never trusted
      from the request
    - Passwords are never logged
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from boto3.dynamodb.conditions import Attr, Key

from src.lambdas.shared.auth.authorization import (
    DEFAULT_POLICY,
    AuthorizationPolicy,
    parse_role,
)
from src.lambdas.shared.auth.cognito import (
    CognitoConfig,
    CognitoIdentityProvider,
    IdentityError,
)
from src.lambdas.shared.auth.enums import Role
from src.lambdas.shared.config import AppConfig
from src.lambdas.shared.dynamodb import (
    get_table,
    put_item_if_not_exists,
    query_all,
    thread_table,
    update_item_attributes,
)
from src.lambdas.shared.errors.auth_errors import InvalidRoleError
from src.lambdas.shared.errors.user_errors import ErrorKind, UserManagementError
from src.lambdas.shared.logging_utils import get_safe_error_info, mask_email
from src.lambdas.shared.models.timestamps import to_iso
from src.lambdas.shared.models.user import User, UserSettings
from src.lib.threading_utils import run_isolated

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Outcome of cascading a user deletion."""

    user_id: str
    identity_deleted: bool = False
    settings_deleted: bool = False
    tasks_deleted: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class UserService:
    """User management operations over the users/settings/tasks tables."""

    def __init__(
        self,
        config: AppConfig,
        users_table: Any = None,
        settings_table: Any = None,
        tasks_table: Any = None,
        identity: CognitoIdentityProvider | None = None,
        policy: AuthorizationPolicy = DEFAULT_POLICY,
    ):
        self.config = config
        self.users_table = users_table or get_table(config.users_table, config.aws_region)
        self.settings_table = settings_table or get_table(
            config.user_settings_table, config.aws_region
        )
        self.tasks_table = tasks_table or get_table(config.tasks_table, config.aws_region)
        self.identity = identity or CognitoIdentityProvider(
            CognitoConfig(user_pool_id=config.user_pool_id, region=config.aws_region)
        )
        self.policy = policy

    # ------------------------------------------------------------------
    # Account creation
    # ------------------------------------------------------------------

    def create_super_admin(self, email: str | None, password: str | None) -> dict:
        """Bootstrap the first super admin for the designated email.

        Raises:
            UserManagementError: INVALID_INPUT, UNAUTHORIZED (not the
                designated email), or CONFLICT (a super admin exists)
        """
        email, password = self._require_credentials(email, password)

        if email.lower() != self.config.super_admin_email.lower():
            logger.warning(
                "Rejected super admin bootstrap",
                extra={"email": mask_email(email)},
            )
            raise UserManagementError(
                ErrorKind.UNAUTHORIZED,
                "Only the designated super admin email is allowed",
            )

        existing = self.users_table.query(
            IndexName="by_role",
            KeyConditionExpression=Key("role").eq(Role.SUPER_ADMIN.value),
            Limit=1,
        )
        if existing.get("Items"):
            raise UserManagementError(ErrorKind.CONFLICT, "Super admin already exists")

        uid = self._create_account(email, password, Role.SUPER_ADMIN, email_verified=True)
        logger.info("Created super admin", extra={"uid": uid})
        return {"uid": uid}

    def create_user_account(
        self,
        email: str | None,
        password: str | None,
        created_by: str | None = None,
    ) -> dict:
        """Create an account with the client role.

        Raises:
            UserManagementError: INVALID_INPUT or CONFLICT
        """
        email, password = self._require_credentials(email, password)
        uid = self._create_account(email, password, Role.CLIENT, created_by=created_by)
        return {"uid": uid}

    def _require_credentials(
        self, email: str | None, password: str | None
    ) -> tuple[str, str]:
        email = (email or "").strip()
        if not email or not password:
            raise UserManagementError(
                ErrorKind.INVALID_INPUT, "Email and password are required"
            )
        return email, password

    def _create_account(
        self,
        email: str,
        password: str,
        role: Role,
        email_verified: bool = False,
        created_by: str | None = None,
    ) -> str:
        try:
            uid = self.identity.create_user(
                email, password, role, email_verified=email_verified
            )
        except IdentityError as e:
            if e.error == "conflict":
                raise UserManagementError(
                    ErrorKind.CONFLICT, "Account already exists"
                ) from e
            if e.error == "invalid_input":
                raise UserManagementError(
                    ErrorKind.INVALID_INPUT, "Invalid email or password"
                ) from e
            raise

        now = datetime.now(UTC)
        user = User(
            user_id=uid,
            email=email,
            role=role,
            created_at=now,
            updated_at=now,
            created_by=created_by,
        )
        try:
            put_item_if_not_exists(self.users_table, user.to_dynamodb_item(), "user_id")
        except Exception:
            # Roll back the identity so the email can be reused
            self.identity.delete_user(uid)
            raise

        return uid

    # ------------------------------------------------------------------
    # Role assignment
    # ------------------------------------------------------------------

    def update_user_role(
        self,
        caller_id: str | None,
        user_id: str | None,
        new_role: str | None,
    ) -> dict:
        """Assign new_role to user_id on behalf of caller_id.

        The role must be one the caller's stored role may assign, so only
        a super admin can change roles and never to super_admin.

        Raises:
            UserManagementError: UNAUTHORIZED, INVALID_INPUT, or NOT_FOUND
        """
        if not caller_id:
            raise UserManagementError(ErrorKind.UNAUTHORIZED, "Authentication required")

        caller = self._load_user(caller_id)
        if caller is None:
            raise UserManagementError(
                ErrorKind.UNAUTHORIZED, "Only super admin can update user roles"
            )

        assignable = self.policy.get_assignable_roles(caller.role)
        if not assignable:
            raise UserManagementError(
                ErrorKind.UNAUTHORIZED, "Only super admin can update user roles"
            )

        if not user_id:
            raise UserManagementError(ErrorKind.INVALID_INPUT, "userId is required")

        try:
            role = parse_role(new_role or "")
        except InvalidRoleError:
            raise UserManagementError(
                ErrorKind.INVALID_INPUT, "Invalid role specified"
            ) from None

        if role not in assignable:
            raise UserManagementError(ErrorKind.UNAUTHORIZED, "Role cannot be assigned")

        if user_id == caller_id:
            raise UserManagementError(
                ErrorKind.INVALID_INPUT, "Cannot change your own role"
            )

        updated = update_item_attributes(
            self.users_table,
            {"user_id": user_id},
            {"role": role.value, "updated_at": to_iso(datetime.now(UTC))},
        )
        if not updated:
            raise UserManagementError(ErrorKind.NOT_FOUND, "User not found")

        try:
            self.identity.set_role_claim(user_id, role)
        except IdentityError as e:
            if e.error == "not_found":
                logger.error(
                    "User item has no identity",
                    extra={"user_id": user_id},
                )
                raise UserManagementError(
                    ErrorKind.NOT_FOUND, "User identity not found"
                ) from e
            raise

        logger.info(
            "Updated user role",
            extra={"user_id": user_id, "role": role.value, "updated_by": caller_id},
        )
        return {"success": True}

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_user_profile(self, caller_id: str | None) -> dict:
        """Caller's own profile plus uid.

        Raises:
            UserManagementError: UNAUTHORIZED or NOT_FOUND
        """
        if not caller_id:
            raise UserManagementError(
                ErrorKind.UNAUTHORIZED, "User must be authenticated"
            )

        user = self._load_user(caller_id)
        if user is None:
            raise UserManagementError(ErrorKind.NOT_FOUND, "User profile not found")

        return user.to_profile()

    def _load_user(self, user_id: str) -> User | None:
        response = self.users_table.get_item(Key={"user_id": user_id})
        item = response.get("Item")
        if not item:
            return None
        return User.from_dynamodb_item(item)

    # ------------------------------------------------------------------
    # Lifecycle triggers
    # ------------------------------------------------------------------

    def provision_user_settings(self, user_id: str, user_item: dict) -> UserSettings:
        """Create default settings seeded with the new user's role.

        Existing settings are left untouched so stream redelivery is safe.
        """
        settings = UserSettings(
            user_id=user_id,
            role=parse_role(user_item.get("role", Role.CLIENT.value)),
            created_at=datetime.now(UTC),
        )
        created = put_item_if_not_exists(
            self.settings_table, settings.to_dynamodb_item(), "user_id"
        )
        logger.info(
            "Provisioned user settings",
            extra={"user_id": user_id, "created": created},
        )
        return settings

    def cleanup_deleted_user(self, user_id: str) -> CleanupResult:
        """Cascade a user deletion to identity, settings, and assigned tasks.

        Each step and each task deletion is attempted independently;
        failures are recorded on the result rather than aborting the rest.
        """
        result = CleanupResult(user_id=user_id)

        try:
            result.identity_deleted = self.identity.delete_user(user_id)
        except IdentityError as e:
            result.failures.append("identity")
            logger.error(
                "Failed to delete identity for user",
                extra={"user_id": user_id, **get_safe_error_info(e)},
            )

        try:
            self.settings_table.delete_item(Key={"user_id": user_id})
            result.settings_deleted = True
        except Exception as e:
            result.failures.append("settings")
            logger.error(
                "Failed to delete user settings",
                extra={"user_id": user_id, **get_safe_error_info(e)},
            )

        try:
            tasks = query_all(
                self.tasks_table,
                IndexName="by_assignee",
                KeyConditionExpression=Key("assigned_to").eq(user_id),
                ProjectionExpression="task_id",
            )
        except Exception as e:
            result.failures.append("tasks_query")
            logger.error(
                "Failed to query tasks for deleted user",
                extra={"user_id": user_id, **get_safe_error_info(e)},
            )
            return result

        batch = run_isolated(
            tasks,
            lambda task: thread_table(self.tasks_table).delete_item(
                Key={"task_id": task["task_id"]},
                ConditionExpression=Attr("assigned_to").eq(user_id),
            ),
            key=lambda task: task["task_id"],
            label="delete_assigned_tasks",
        )
        result.tasks_deleted = len(batch.succeeded)
        result.failures.extend(f"task:{task_id}" for task_id in batch.failed)

        logger.info(
            "Cleaned up data for deleted user",
            extra={
                "user_id": user_id,
                "tasks_deleted": result.tasks_deleted,
                "failures": len(result.failures),
            },
        )
        return result
