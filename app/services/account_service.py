"""Account security: login attempts, lockout, passwords and admin setup."""

import logging
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import tokens
from app.core.config import settings
from app.core.exceptions import (
    AccountLockedError,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    UnauthorizedError,
)
from app.core.security import hash_password, verify_password
from app.core.tokens import TokenKind
from app.models.base import utcnow
from app.models.user import User, UserRole, new_user
from app.schemas.auth import ProfileUpdate, RegisterAdminRequest
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)


class AccountService:
    """Authenticates dashboard users and manages their credentials.

    Lockout rules:
    - each wrong password increments ``login_attempts`` with a single
      ``SET login_attempts = login_attempts + 1`` statement
    - reaching ``max_login_attempts`` locks the account for
      ``lock_duration_hours``; while locked every attempt is refused (and
      still counted), even with the right password
    - an elapsed lock is cleared on the next attempt, which restarts the
      count at 1 before the password is checked
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.users = RecordStore(db, User)

    async def authenticate(self, identifier: str, password: str) -> User:
        """Verify credentials for a username or email.

        Attempt counters and lock state are committed before this returns or
        raises, so a failed login is never rolled back.

        Raises:
            InvalidCredentialsError: unknown account or wrong password
            AccountLockedError: lock window still in force
        """
        identifier = identifier.strip()
        user = await self.users.find_one(
            or_(User.username == identifier, User.email == identifier.lower())
        )
        if user is None:
            logger.warning("Login failed: unknown account")
            raise InvalidCredentialsError()

        now = utcnow()
        restarted = False

        if user.lock_expired(now):
            # Lazy unlock; the guard keeps a concurrent attempt from resetting twice
            cleared = await self.users.update_one(
                [User.id == user.id, User.lock_until.is_not(None), User.lock_until <= now],
                {"login_attempts": 1, "account_locked": False, "lock_until": None},
            )
            if cleared is not None:
                user = cleared
                restarted = True
                logger.info("Lock expired for user %s, attempt counter restarted", user.id)

        if user.is_locked(now) and user.lock_until is not None:
            lock_until = user.lock_until
            await self._record_failed_attempt(user, now, may_lock=False)
            logger.warning("Login refused: account %s is locked", user.id)
            raise AccountLockedError(details={"lock_until": lock_until.isoformat()})

        if verify_password(password, user.password_hash):
            values: dict[str, Any] = {"last_login": now}
            if user.login_attempts and not user.account_locked:
                values["login_attempts"] = 0
            user = await self.users.update_one([User.id == user.id], values) or user
            logger.info("Login succeeded for user %s", user.id)
            return user

        if not restarted:
            await self._record_failed_attempt(user, now, may_lock=True)
        logger.warning("Login failed: wrong password for user %s", user.id)
        raise InvalidCredentialsError()

    async def _record_failed_attempt(
        self, user: User, now: datetime, *, may_lock: bool
    ) -> User:
        """Atomically count a failed attempt and lock at the threshold."""
        updated = await self.users.update_one(
            [User.id == user.id],
            {"login_attempts": User.login_attempts + 1},
        )
        if updated is None:
            return user

        if may_lock and updated.login_attempts >= settings.max_login_attempts:
            lock_until = now + timedelta(hours=settings.lock_duration_hours)
            # Only the attempt that crosses the threshold sets the window
            locked = await self.users.update_one(
                [User.id == user.id, User.account_locked.is_(False)],
                {"account_locked": True, "lock_until": lock_until},
            )
            if locked is not None:
                logger.warning(
                    "User %s locked until %s after %d failed attempts",
                    user.id,
                    lock_until.isoformat(),
                    locked.login_attempts,
                )
                return locked
        return updated

    # --- tokens ---

    def issue_tokens(self, user: User) -> dict[str, Any]:
        """Issue an access/refresh pair for an authenticated user."""
        return tokens.issue_pair(str(user.id))

    async def refresh(self, refresh_token: str) -> tuple[User, dict[str, Any]]:
        """Exchange a refresh token for a fresh token pair."""
        claims = tokens.verify(refresh_token, TokenKind.REFRESH)
        user = await self.get_active_user(claims["sub"])
        return user, self.issue_tokens(user)

    async def get_active_user(self, user_id: str | UUID) -> User:
        """Load the active user a token refers to."""
        try:
            uid = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
        except ValueError:
            raise UnauthorizedError("Invalid token subject") from None
        user = await self.users.find_one(User.id == uid)
        if user is None or not user.is_active:
            raise UnauthorizedError("User not found or inactive")
        return user

    # --- setup & profile ---

    async def register_admin(self, data: RegisterAdminRequest) -> User:
        """One-time admin registration; refused once any admin exists."""
        if await self.admin_exists():
            raise ConflictError("Admin user already exists")

        taken = await self.users.find_one(
            or_(User.username == data.username, User.email == data.email.lower())
        )
        if taken is not None:
            raise ConflictError("Username or email already registered")

        user = new_user(
            username=data.username,
            email=data.email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=UserRole.ADMIN,
            email_verified=True,
        )
        user = await self.users.create(user)
        logger.info("Admin user %s registered", user.username)
        return user

    async def admin_exists(self) -> bool:
        return await self.users.count([User.role == UserRole.ADMIN]) > 0

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        """Replace the password after re-checking the current one."""
        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")

        updated = await self.users.update_one(
            [User.id == user.id],
            {"password_hash": hash_password(new_password)},
        )
        if updated is None:
            raise NotFoundError("User")
        logger.info("Password changed for user %s", user.id)

    async def update_profile(self, user: User, data: ProfileUpdate) -> User:
        """Update profile fields; UI preferences are shallow-merged."""
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "preferences" in changes:
            changes["preferences"] = {**(user.preferences or {}), **changes["preferences"]}
        if not changes:
            return user

        updated = await self.users.update_one([User.id == user.id], changes)
        if updated is None:
            raise NotFoundError("User")
        return updated
