"""Document ingestion endpoints."""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.responses import PlainTextResponse

from knowledge_ingestion.dependencies import (
    get_document_repository,
    get_ingestion_service,
    get_processing_log,
)
from knowledge_ingestion.models.message import ProcessDocumentResponse
from knowledge_ingestion.repositories.document_repository import DocumentRepository
from knowledge_ingestion.services.ingestion_service import IngestionService
from knowledge_ingestion.services.processing_log_service import ProcessingLogService
from knowledge_ingestion.utils.errors import NotFoundError
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("documents_api")

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post(
    "/{document_id}/process",
    response_model=ProcessDocumentResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def process_document(
    document_id: str,
    background_tasks: BackgroundTasks,
    documents: DocumentRepository = Depends(get_document_repository),
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    """
    Start ingestion of a document.

    Returns immediately; progress is reported through the document's status
    and its processing log.
    """
    document = await documents.get_by_id(document_id)
    if document is None:
        raise NotFoundError("Document", document_id)

    background_tasks.add_task(ingestion.process_document, document_id)
    logger.info(f"Queued ingestion for document {document_id}")
    return ProcessDocumentResponse(document_id=document_id)


@router.get("/{document_id}/processing-log", response_class=PlainTextResponse)
async def get_processing_log(
    document_id: str,
    documents: DocumentRepository = Depends(get_document_repository),
    processing_log: ProcessingLogService = Depends(get_processing_log),
):
    """Return the document's processing log as plain text."""
    document = await documents.get_by_id(document_id)
    if document is None:
        raise NotFoundError("Document", document_id)

    content = await processing_log.get_log(document_id, document.tenant_id)
    if content is None:
        raise NotFoundError("Processing log", document_id)
    return PlainTextResponse(content)
