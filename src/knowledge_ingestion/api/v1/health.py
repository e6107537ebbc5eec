"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from knowledge_ingestion.config import get_settings
from knowledge_ingestion.database.session import get_session
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("health")

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """
    Health check endpoint.

    Returns basic service health status. This endpoint does not check
    external dependencies and will always return healthy if the service is running.
    """
    settings = get_settings()
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
    }


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Checks:
    - Database (document records), critical
    - RabbitMQ connection, critical when the consumer is enabled
    - Blob storage configuration

    Returns 503 if any critical dependency is unavailable.
    """
    settings = get_settings()
    logger.debug("Readiness check requested")

    checks = {"database": False, "rabbitmq": False, "storage": settings.storage.is_configured}

    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = True
    except SQLAlchemyError as e:
        logger.warning(f"Database check failed: {e}")

    connection = getattr(request.app.state, "rabbitmq_connection", None)
    checks["rabbitmq"] = connection is not None and not connection.is_closed

    critical_ready = checks["database"] and (checks["rabbitmq"] or not settings.rabbitmq.enabled)
    body = {
        "status": "ready" if critical_ready else "not_ready",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
        "checks": checks,
    }

    if not critical_ready:
        logger.warning(f"Readiness check failed (critical): {checks}")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
