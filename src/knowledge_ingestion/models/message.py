"""Message models for queue communication."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class IngestionMessage(BaseModel):
    """
    Message model for document ingestion jobs.

    The document record itself carries everything the pipeline needs
    (blob location, rule, collection), so the message only names it.
    """

    document_id: str = Field(..., min_length=1, description="Document to ingest")
    tenant_id: Optional[str] = Field(None, description="Owning tenant (informational)")
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Message creation timestamp",
    )


class ProcessDocumentResponse(BaseModel):
    """Response for an accepted processing request."""

    document_id: str
    status: str = "accepted"
