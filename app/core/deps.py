"""Dependency injection for FastAPI routes."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

# Re-export auth dependencies for convenience
from app.core.auth import (
    AdminUser,
    CurrentUser,
    OptionalUser,
    get_current_user,
    get_optional_user,
    require_admin,
)
from app.core.database import get_async_session
from app.services.account_service import AccountService
from app.services.subscriber_service import SubscriberService

# One session per request, shared with the auth dependencies
DBSession = Annotated[AsyncSession, Depends(get_async_session)]


def get_account_service(db: DBSession) -> AccountService:
    return AccountService(db)


def get_subscriber_service(db: DBSession) -> SubscriberService:
    return SubscriberService(db)


Accounts = Annotated[AccountService, Depends(get_account_service)]
Subscribers = Annotated[SubscriberService, Depends(get_subscriber_service)]


__all__ = [
    "Accounts",
    "AdminUser",
    "CurrentUser",
    "DBSession",
    "OptionalUser",
    "Subscribers",
    "get_current_user",
    "get_optional_user",
    "require_admin",
]
