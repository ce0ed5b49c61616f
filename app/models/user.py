"""User model for site administrators."""

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType, UTCDateTime

DEFAULT_USER_PREFERENCES: dict[str, Any] = {
    "theme": "light",
    "notifications": True,
    "language": "en",
}


class UserRole(str, enum.Enum):
    """Dashboard roles."""

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class User(Base):
    """Dashboard account with login-attempt tracking."""

    __tablename__ = "users"

    # Authentication
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        default=UserRole.ADMIN,
        nullable=False,
    )

    # Security
    last_login: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    account_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    lock_until: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # UI settings
    preferences: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        default=lambda: dict(DEFAULT_USER_PREFERENCES),
        nullable=False,
    )

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def is_locked(self, now: datetime) -> bool:
        """Whether a lock is in force at ``now`` (expired locks don't count)."""
        return bool(self.account_locked and self.lock_until and self.lock_until > now)

    def lock_expired(self, now: datetime) -> bool:
        """Whether a previous lock window has elapsed but not been cleared yet."""
        return self.lock_until is not None and self.lock_until <= now

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role.value})>"


def new_user(
    *,
    username: str,
    email: str,
    password_hash: str,
    first_name: str,
    last_name: str,
    role: UserRole = UserRole.ADMIN,
    email_verified: bool = False,
) -> User:
    """Build a fully-initialized, not yet persisted user."""
    return User(
        username=username.strip(),
        email=email.strip().lower(),
        password_hash=password_hash,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=role,
        login_attempts=0,
        account_locked=False,
        lock_until=None,
        preferences=dict(DEFAULT_USER_PREFERENCES),
        is_active=True,
        email_verified=email_verified,
    )
