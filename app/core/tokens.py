"""Access / refresh token issuance and verification (HS256 JWTs)."""

import enum
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from app.core.config import settings
from app.core.exceptions import (
    TokenExpiredError,
    TokenInvalidError,
    TokenTypeMismatchError,
)


class TokenKind(str, enum.Enum):
    """Discriminator carried in the ``type`` claim."""

    ACCESS = "access"
    REFRESH = "refresh"


def _secret_for(kind: TokenKind) -> str:
    if kind is TokenKind.ACCESS:
        return settings.jwt_access_secret
    return settings.jwt_refresh_secret


def _lifetime_for(kind: TokenKind) -> timedelta:
    if kind is TokenKind.ACCESS:
        return timedelta(minutes=settings.access_token_expire_minutes)
    return timedelta(days=settings.refresh_token_expire_days)


def issue(kind: TokenKind | str, account_id: str) -> str:
    """Issue a signed token of the given kind for an account.

    Claims are fixed by (kind, account, issue time); the random ``jti``
    makes every token distinct even when issued within the same second.
    """
    kind = TokenKind(kind)
    now = datetime.now(UTC)
    claims: dict[str, Any] = {
        "sub": str(account_id),
        "type": kind.value,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + _lifetime_for(kind),
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(claims, _secret_for(kind), algorithm=settings.jwt_algorithm)


def verify(token: str, expected_kind: TokenKind | str) -> dict[str, Any]:
    """Verify a token and return its claims.

    The declared ``type`` claim selects the signing key, so a well-formed
    token of the other kind is reported as a type mismatch rather than a
    bad signature.

    Raises:
        TokenInvalidError: malformed token, bad signature, issuer or audience
        TokenExpiredError: token is past its expiry
        TokenTypeMismatchError: valid token of a different kind
    """
    expected_kind = TokenKind(expected_kind)

    try:
        unverified = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        raise TokenInvalidError(token_type=expected_kind.value) from None

    try:
        declared_kind = TokenKind(unverified.get("type"))
    except ValueError:
        raise TokenInvalidError(token_type=expected_kind.value) from None

    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            _secret_for(declared_kind),
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "type", "exp", "iss", "aud"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError(token_type=declared_kind.value) from None
    except jwt.InvalidTokenError:
        raise TokenInvalidError(token_type=expected_kind.value) from None

    if declared_kind is not expected_kind:
        raise TokenTypeMismatchError(
            f"Expected {expected_kind.value} token, got {declared_kind.value}",
            token_type=declared_kind.value,
        )

    return payload


def issue_pair(account_id: str) -> dict[str, Any]:
    """Issue an access + refresh token pair."""
    return {
        "access_token": issue(TokenKind.ACCESS, account_id),
        "refresh_token": issue(TokenKind.REFRESH, account_id),
        "token_type": "bearer",
        "expires_in": settings.access_token_expire_minutes * 60,
    }
