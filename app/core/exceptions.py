"""Application error taxonomy.

Every error raised by the services carries a stable machine-readable ``code``
and a human ``message``. The API layer renders them through a single
exception handler (see ``app.main``), so routes never build error responses
by hand.
"""

from typing import Any


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    code: str = "APP_ERROR"
    status_code: int = 400
    message: str = "Request failed"
    retryable: bool = False

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON error body."""
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            error["details"] = self.details
        return {"success": False, "error": error}


# === Request / resource errors ===


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 422
    message = "Validation failed"


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404
    message = "Resource not found"

    def __init__(self, resource: str = "Resource", **kwargs: Any) -> None:
        super().__init__(f"{resource} not found", **kwargs)


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = 409
    message = "Resource already exists"


class DuplicateEmailError(ConflictError):
    code = "DUPLICATE_EMAIL"
    message = "Email is already subscribed"


class UnauthorizedError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401
    message = "Authentication required"


class ForbiddenError(AppError):
    code = "FORBIDDEN"
    status_code = 403
    message = "You don't have permission to perform this action"


# === Account security ===


class InvalidCredentialsError(AppError):
    code = "INVALID_CREDENTIALS"
    status_code = 401
    message = "Invalid credentials"


class AccountLockedError(AppError):
    code = "ACCOUNT_LOCKED"
    status_code = 423
    message = "Account temporarily locked due to too many failed login attempts"


# === Tokens ===


class TokenError(AppError):
    """Base for access/refresh token failures."""

    status_code = 401

    def __init__(self, message: str | None = None, *, token_type: str | None = None) -> None:
        super().__init__(message, details={"token_type": token_type} if token_type else None)


class TokenInvalidError(TokenError):
    code = "TOKEN_INVALID"
    message = "Invalid token"


class TokenExpiredError(TokenError):
    code = "TOKEN_EXPIRED"
    message = "Token has expired"


class TokenTypeMismatchError(TokenError):
    code = "TOKEN_TYPE_MISMATCH"
    message = "Invalid token type"


class InvalidOrExpiredTokenError(AppError):
    """Subscriber email-verification token is unknown, consumed or stale."""

    code = "INVALID_OR_EXPIRED_TOKEN"
    status_code = 400
    message = "Invalid or expired verification token"


# === Infrastructure ===


class StoreUnavailableError(AppError):
    """Transient persistence failure. The only retryable error."""

    code = "STORE_UNAVAILABLE"
    status_code = 503
    message = "Storage temporarily unavailable, please retry"
    retryable = True
