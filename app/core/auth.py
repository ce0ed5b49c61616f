"""Bearer-token authentication dependencies for FastAPI."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_async_session
from app.core.exceptions import ForbiddenError, TokenError, UnauthorizedError
from app.core.tokens import TokenKind, verify
from app.models.user import User, UserRole
from app.services.account_service import AccountService

# HTTP Bearer token security scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_async_session),
) -> User:
    """Resolve the account behind an access token.

    Raises:
        UnauthorizedError: no token was sent
        TokenError: the token is invalid, expired or not an access token
    """
    if credentials is None:
        raise UnauthorizedError("Access token required")

    claims = verify(credentials.credentials, TokenKind.ACCESS)
    return await AccountService(db).get_active_user(claims["sub"])


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_async_session),
) -> User | None:
    """Get current user if authenticated, otherwise return None.

    Useful for endpoints that serve both admins and anonymous visitors.
    """
    if credentials is None:
        return None

    try:
        return await get_current_user(credentials, db)
    except (TokenError, UnauthorizedError):
        return None


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Allow only accounts with the admin role."""
    if user.role != UserRole.ADMIN:
        raise ForbiddenError("Admin access required")
    return user


# Type aliases for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
AdminUser = Annotated[User, Depends(require_admin)]
