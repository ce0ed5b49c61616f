"""Create the initial admin account from settings.

Does nothing when an admin already exists, so it is safe to run on every
deploy.

Usage:
    python -m scripts.seed_admin
"""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import async_session_maker
from app.models.user import User
from app.schemas.auth import RegisterAdminRequest
from app.services.account_service import AccountService


async def seed(session: AsyncSession) -> User | None:
    """Register the configured admin; returns None if one already exists."""
    accounts = AccountService(session)
    if await accounts.admin_exists():
        return None

    data = RegisterAdminRequest(
        username=settings.admin_username,
        email=settings.admin_email,
        password=settings.admin_password,
        first_name=settings.admin_first_name,
        last_name=settings.admin_last_name,
    )
    return await accounts.register_admin(data)


async def main() -> None:
    async with async_session_maker() as session:
        user = await seed(session)

    print("=" * 60)
    if user is None:
        print("  Admin user already exists, nothing to do.")
    else:
        print("  Admin user created successfully!")
        print()
        print(f"  Username:  {user.username}")
        print(f"  Email:     {user.email}")
        print("  Change the password after the first login.")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
