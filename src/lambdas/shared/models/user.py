"""User and settings models with DynamoDB conversion."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.lambdas.shared.auth.enums import Role
from src.lambdas.shared.models.timestamps import parse_iso, to_iso


class User(BaseModel):
    """Application user. The users table is the source of truth for role."""

    user_id: str = Field(..., description="Cognito username")
    email: EmailStr
    role: Role = Role.CLIENT
    created_at: datetime
    updated_at: datetime
    created_by: str | None = None

    def to_dynamodb_item(self) -> dict:
        """Convert to DynamoDB item format.

        Note: created_by is excluded when None; the account was self-created
        or bootstrapped.
        """
        item = {
            "user_id": self.user_id,
            "email": self.email,
            "role": self.role.value,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }
        if self.created_by is not None:
            item["created_by"] = self.created_by
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "User":
        """Create User from DynamoDB item.

        Raises:
            pydantic.ValidationError: If the role or email is invalid
            KeyError: If a required attribute is missing
        """
        return cls(
            user_id=item["user_id"],
            email=item["email"],
            role=item["role"],
            created_at=parse_iso(item["created_at"]),
            updated_at=parse_iso(item["updated_at"]),
            created_by=item.get("created_by"),
        )

    def to_profile(self) -> dict:
        """Public profile payload returned by the get-profile endpoint."""
        profile = {
            "email": self.email,
            "role": self.role.value,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "uid": self.user_id,
        }
        if self.created_by is not None:
            profile["createdBy"] = self.created_by
        return profile


class UserSettings(BaseModel):
    """Per-user settings provisioned when a user item is created."""

    user_id: str
    email_notifications: bool = True
    theme: Literal["light", "dark"] = "light"
    role: Role
    created_at: datetime

    def to_dynamodb_item(self) -> dict:
        """Convert to DynamoDB item format."""
        return {
            "user_id": self.user_id,
            "email_notifications": self.email_notifications,
            "theme": self.theme,
            "role": self.role.value,
            "created_at": to_iso(self.created_at),
        }


class CreateAccountRequest(BaseModel):
    """Body of the create-account and create-super-admin calls.

    Fields are optional here so the service can reject missing values
    as INVALID_INPUT rather than a framework 422.
    """

    email: str | None = None
    password: str | None = None


class UpdateRoleRequest(BaseModel):
    """Body of the update-role call."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(None, alias="userId")
    new_role: str | None = Field(None, alias="newRole")
