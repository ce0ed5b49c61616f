"""Pydantic schemas for admin authentication and profile management."""

import re
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from app.models.user import UserRole
from app.schemas.common import BaseSchema

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")


def _check_password_strength(value: str) -> str:
    if not all(re.search(pattern, value) for pattern in (r"[a-z]", r"[A-Z]", r"\d")):
        raise ValueError(
            "Password must contain at least one uppercase letter, "
            "one lowercase letter, and one number"
        )
    return value


# === Requests ===


class RegisterAdminRequest(BaseSchema):
    """One-time admin registration."""

    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=50, alias="firstName")
    last_name: str = Field(..., min_length=1, max_length=50, alias="lastName")

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        value = value.strip()
        if not _USERNAME_RE.match(value):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return value

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _check_password_strength(value)


class LoginRequest(BaseSchema):
    """Username or email plus password."""

    username: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def strip_identifier(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username or email is required")
        return value


class RefreshRequest(BaseSchema):
    refresh_token: str = Field(..., alias="refreshToken")


class ChangePasswordRequest(BaseSchema):
    current_password: str = Field(..., min_length=1, alias="currentPassword")
    new_password: str = Field(..., min_length=8, max_length=128, alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return _check_password_strength(value)


class UserPreferencesUpdate(BaseSchema):
    theme: Literal["light", "dark"] | None = None
    notifications: bool | None = None
    language: str | None = Field(default=None, min_length=2, max_length=10)


class ProfileUpdate(BaseSchema):
    """Partial profile update; credentials and security fields are not editable here."""

    first_name: str | None = Field(default=None, min_length=1, max_length=50, alias="firstName")
    last_name: str | None = Field(default=None, min_length=1, max_length=50, alias="lastName")
    avatar: str | None = Field(default=None, max_length=500)
    bio: str | None = Field(default=None, max_length=500)
    preferences: UserPreferencesUpdate | None = None


# === Responses ===


class UserResponse(BaseSchema):
    """Public view of a user; never includes the password hash or lock internals."""

    id: UUID
    username: str
    email: str
    first_name: str
    last_name: str
    avatar: str | None
    bio: str | None
    role: UserRole
    preferences: dict[str, object]
    is_active: bool
    email_verified: bool
    last_login: datetime | None
    created_at: datetime


class TokenPair(BaseSchema):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class AuthResponse(BaseSchema):
    """Login / refresh result."""

    success: bool = True
    user: UserResponse
    tokens: TokenPair


class ProfileResponse(BaseSchema):
    success: bool = True
    user: UserResponse
