"""Health check endpoints."""

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.config import get_settings
from boardhub.db.session import get_db_session

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy", "version": settings.app_version}


@router.get("/health/ready")
async def readiness(db: AsyncSession = Depends(get_db_session)):
    """Readiness probe: checks the database connection."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Readiness check failed", error=str(exc))
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "database": "error"},
        )
    return {"status": "ready", "database": "ok"}
