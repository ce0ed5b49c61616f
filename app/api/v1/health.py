"""Health check endpoints."""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.deps import DBSession
from app.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_status(db: DBSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database health check failed: %s", e)
        return "unhealthy"
    return "healthy"


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DBSession) -> HealthResponse:
    """
    Health check endpoint.

    Checks database connectivity and returns service status.
    """
    database = await _database_status(db)
    return HealthResponse(
        status="healthy" if database == "healthy" else "unhealthy",
        version=settings.version,
        environment=settings.environment,
        checks={"database": database},
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness probe for container orchestration.

    Simple check that the service is running.
    """
    return {"status": "alive"}


@router.get("/health/ready", response_model=None)
async def readiness_check(db: DBSession) -> dict[str, str] | JSONResponse:
    """
    Readiness probe for container orchestration.

    Returns 503 until the database answers.
    """
    if await _database_status(db) != "healthy":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not ready"},
        )
    return {"status": "ready"}
