"""
Health check endpoint handler.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.database import ping_database

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring.
    Checks database connectivity.
    """
    health_status = {
        "status": "healthy",
        "version": settings.api.app_version,
        "services": {}
    }

    try:
        await ping_database()
        health_status["services"]["database"] = {"status": "healthy"}
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database health check failed: {e}")
        health_status["services"]["database"] = {
            "status": "unhealthy",
            "error": str(e),
        }
        health_status["status"] = "degraded"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
