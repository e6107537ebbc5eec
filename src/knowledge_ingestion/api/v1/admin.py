"""Admin endpoints for queue monitoring."""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from knowledge_ingestion.services.queue_setup import verify_queues
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("admin")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/queues", status_code=status.HTTP_200_OK)
async def get_queue_status(request: Request):
    """
    Get status of RabbitMQ queues and exchanges.

    Returns existence and message counts for the ingestion queue, the
    dead-letter queue and their exchanges.
    """
    connection = getattr(request.app.state, "rabbitmq_connection", None)
    if connection is None or connection.is_closed:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": {
                    "message": "RabbitMQ connection not available",
                    "code": "RABBITMQ_NOT_CONNECTED",
                    "status_code": 503,
                }
            },
        )

    queue_status = await verify_queues(connection)
    return {"status": "success", "queues": queue_status}
