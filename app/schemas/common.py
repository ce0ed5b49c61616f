"""Common Pydantic schemas used across the API."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class HealthResponse(BaseSchema):
    """Health check response schema."""

    status: str
    version: str
    environment: str
    checks: dict[str, str]


class ErrorDetail(BaseSchema):
    """Machine-readable error body."""

    code: str
    message: str
    retryable: bool = False
    details: dict[str, Any] | None = None


class ErrorResponse(BaseSchema):
    """Error response schema."""

    success: bool = False
    error: ErrorDetail


class MessageResponse(BaseSchema):
    """Plain acknowledgement."""

    success: bool = True
    message: str


class Pagination(BaseSchema):
    """Page metadata for list endpoints."""

    current: int
    pages: int
    total: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        pages = (total + limit - 1) // limit if total > 0 else 0
        return cls(
            current=page,
            pages=pages,
            total=total,
            has_next=page < pages,
            has_prev=page > 1,
        )
