"""API v1 router combining all route modules."""

from typing import Any

from fastapi import APIRouter

from app.api.v1 import auth, health, subscribers
from app.schemas.common import ErrorResponse

api_router = APIRouter()

# Error envelope shared by every failing route, for the OpenAPI docs
_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid or expired token"},
    401: {"model": ErrorResponse, "description": "Missing or invalid credentials"},
    404: {"model": ErrorResponse, "description": "Record not found"},
    409: {"model": ErrorResponse, "description": "Duplicate record"},
    422: {"model": ErrorResponse, "description": "Validation error"},
    503: {"model": ErrorResponse, "description": "Store unavailable, safe to retry"},
}

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Admin authentication and profile
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["auth"],
    responses={**_ERROR_RESPONSES, 423: {"model": ErrorResponse, "description": "Locked"}},
)

# Newsletter subscribers (mixed auth: public lifecycle, admin listing/stats)
api_router.include_router(
    subscribers.router,
    prefix="/subscribers",
    tags=["subscribers"],
    responses={**_ERROR_RESPONSES, 403: {"model": ErrorResponse, "description": "Forbidden"}},
)
