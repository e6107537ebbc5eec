"""Chunk models for document ingestion."""

from typing import List, Optional

from pydantic import BaseModel, Field


class Chunk(BaseModel):
    """A chunk of text produced by the chunking service, with its embedding."""

    index: int = Field(..., ge=0, description="0-based index of this chunk within the document")
    content: str = Field(..., description="Chunk text content")
    embeddings: List[float] = Field(default_factory=list, description="Embedding vector")


class FanOutResult(BaseModel):
    """Outcome of writing a document's chunks to the vector store."""

    stored_count: int = Field(0, ge=0, description="Chunks written successfully")
    total_count: int = Field(0, ge=0, description="Chunks attempted")
    record_ids: List[str] = Field(
        default_factory=list, description="Vector store record ids in chunk-index order"
    )

    @property
    def failed_count(self) -> int:
        return self.total_count - self.stored_count


class StoredChunk(BaseModel):
    """Result of a single vector store write."""

    index: int
    success: bool
    record_id: Optional[str] = None
