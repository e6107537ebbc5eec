"""API v1 router aggregation."""

from fastapi import APIRouter

from knowledge_ingestion.api.v1 import admin, documents, health, retrieval

# Create v1 API router with version prefix
router = APIRouter(
    prefix="/api/v1",
    tags=["v1"],
    responses={
        404: {"description": "Not found"},
        422: {"description": "Validation error"},
        500: {"description": "Internal server error"},
    },
)

router.include_router(health.router)
router.include_router(documents.router)
router.include_router(retrieval.router)
router.include_router(admin.router)


@router.get(
    "/",
    summary="API Information",
    description="Get API version and status information",
    tags=["v1"],
)
async def api_info():
    """Get API v1 information."""
    return {
        "version": "v1",
        "status": "active",
        "service": "knowledge-ingestion",
        "endpoints": {
            "health": "/api/v1/health",
            "ready": "/api/v1/ready",
            "documents": {
                "process": "/api/v1/documents/{document_id}/process",
                "processing_log": "/api/v1/documents/{document_id}/processing-log",
            },
            "retrieval": {"search": "/api/v1/retrieval/search"},
            "admin": {"queues": "/api/v1/admin/queues"},
        },
    }
