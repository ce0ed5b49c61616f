"""Admin authentication API endpoints."""

from fastapi import APIRouter, Request, status

from app.core.config import settings
from app.core.deps import Accounts, CurrentUser
from app.core.rate_limit import limiter
from app.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    ProfileResponse,
    ProfileUpdate,
    RefreshRequest,
    RegisterAdminRequest,
    TokenPair,
    UserResponse,
)
from app.schemas.common import MessageResponse

router = APIRouter()


@router.post(
    "/register-admin",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register the admin",
    description="One-time setup. Refused once an admin account exists.",
)
@limiter.limit(settings.rate_limit_login)
async def register_admin(
    request: Request,  # noqa: ARG001 - required by slowapi
    data: RegisterAdminRequest,
    accounts: Accounts,
) -> AuthResponse:
    user = await accounts.register_admin(data)
    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenPair(**accounts.issue_tokens(user)),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in",
    description="""
    Authenticate with username or email and password.

    Five consecutive failures lock the account for two hours. While locked,
    every attempt is refused with 423, even with the right password.
    """,
)
@limiter.limit(settings.rate_limit_login)
async def login(
    request: Request,  # noqa: ARG001 - required by slowapi
    data: LoginRequest,
    accounts: Accounts,
) -> AuthResponse:
    user = await accounts.authenticate(data.username, data.password)
    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenPair(**accounts.issue_tokens(user)),
    )


@router.post(
    "/refresh",
    response_model=AuthResponse,
    summary="Refresh tokens",
    description="Exchange a refresh token for a new access/refresh pair.",
)
async def refresh(data: RefreshRequest, accounts: Accounts) -> AuthResponse:
    user, pair = await accounts.refresh(data.refresh_token)
    return AuthResponse(user=UserResponse.model_validate(user), tokens=TokenPair(**pair))


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Log out",
    description="Tokens are stateless; the client discards them.",
)
async def logout(_user: CurrentUser) -> MessageResponse:
    return MessageResponse(message="Logged out successfully")


@router.get("/profile", response_model=ProfileResponse, summary="Get own profile")
async def get_profile(user: CurrentUser) -> ProfileResponse:
    return ProfileResponse(user=UserResponse.model_validate(user))


@router.put("/profile", response_model=ProfileResponse, summary="Update own profile")
async def update_profile(
    data: ProfileUpdate,
    user: CurrentUser,
    accounts: Accounts,
) -> ProfileResponse:
    updated = await accounts.update_profile(user, data)
    return ProfileResponse(user=UserResponse.model_validate(updated))


@router.put(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password",
)
async def change_password(
    data: ChangePasswordRequest,
    user: CurrentUser,
    accounts: Accounts,
) -> MessageResponse:
    await accounts.change_password(user, data.current_password, data.new_password)
    return MessageResponse(message="Password changed successfully")
