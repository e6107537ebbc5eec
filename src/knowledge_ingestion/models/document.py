"""Document and ingestion rule domain models."""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DocumentStatus(str, Enum):
    """Lifecycle states of an ingested document."""

    PENDING = "Pending"
    UPLOADING = "Uploading"
    UPLOADED = "Uploaded"
    TYPE_DETECTING = "TypeDetecting"
    TYPE_DETECTION_SUCCESS = "TypeDetectionSuccess"
    TYPE_DETECTION_FAILED = "TypeDetectionFailed"
    PROCESSING = "Processing"
    PROCESSING_CHUNKS = "ProcessingChunks"
    SUMMARIZING = "Summarizing"
    STORING_EMBEDDINGS = "StoringEmbeddings"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    [
        DocumentStatus.COMPLETED,
        DocumentStatus.FAILED,
        DocumentStatus.TYPE_DETECTION_FAILED,
    ]
)


def parse_chunk_record_ids(value: Any) -> Optional[List[str]]:
    """
    Parse a stored chunk record id value into a list of strings.

    Accepts None, a list of strings, or a JSON array string. Anything else
    (malformed JSON, a JSON object, non-string elements) raises ValueError.
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"chunk_record_ids is not valid JSON: {e.msg}") from e
    if not isinstance(value, list):
        raise ValueError("chunk_record_ids must be a JSON array")
    if not all(isinstance(item, str) for item in value):
        raise ValueError("chunk_record_ids must contain only strings")
    return list(value)


class Document(BaseModel):
    """
    A document registered for ingestion.

    Created externally in the Pending state. The ingestion pipeline only
    changes its status fields and, once per successful run, its chunk
    record ids.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Document identifier")
    tenant_id: str = Field(..., description="Owning tenant")
    name: Optional[str] = Field(None, description="Display name")
    original_filename: Optional[str] = Field(None, description="Filename as uploaded")
    bucket_name: Optional[str] = Field(None, description="Blob store container")
    blob_key: Optional[str] = Field(None, description="Blob location key within the bucket")
    size_bytes: int = Field(0, ge=0, description="Size of the stored blob in bytes")
    content_type: Optional[str] = Field(None, description="Detected content type")
    status: DocumentStatus = Field(DocumentStatus.PENDING, description="Current lifecycle status")
    status_message: Optional[str] = Field(None, description="Human-readable status detail")
    ingestion_rule_id: Optional[str] = Field(None, description="Rule supplying pipeline configuration")
    collection_id: Optional[str] = Field(None, description="Target vector collection")
    labels: Optional[Any] = Field(None, description="Opaque labels")
    tags: Optional[Any] = Field(None, description="Opaque tags")
    chunk_record_ids: Optional[List[str]] = Field(
        None, description="Vector store record ids written for this document"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("chunk_record_ids", mode="before")
    @classmethod
    def validate_chunk_record_ids(cls, v: Any) -> Optional[List[str]]:
        return parse_chunk_record_ids(v)

    @field_validator("labels", "tags", mode="before")
    @classmethod
    def decode_json_blob(cls, v: Any) -> Any:
        """Stored labels/tags are JSON text; decode when possible, otherwise keep as-is."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return v
        return v

    @property
    def display_name(self) -> str:
        return self.name or self.original_filename or self.id


class IngestionRule(BaseModel):
    """
    Pipeline configuration attached to documents.

    The chunking, embedding and summarization blocks are forwarded verbatim
    to the chunking service.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: Optional[str] = None
    name: Optional[str] = None
    bucket: Optional[str] = None
    collection_name: Optional[str] = None
    collection_id: Optional[str] = None
    chunking: Optional[Dict[str, Any]] = None
    embedding: Optional[Dict[str, Any]] = None
    summarization: Optional[Dict[str, Any]] = None

    @field_validator("chunking", "embedding", "summarization", mode="before")
    @classmethod
    def decode_config_block(cls, v: Any) -> Any:
        if isinstance(v, str):
            return json.loads(v) if v.strip() else None
        return v

    @property
    def summarization_enabled(self) -> bool:
        """Summarization runs only when a completion endpoint is configured."""
        return bool(self.summarization and self.summarization.get("completion_endpoint_id"))

    @property
    def max_parallel_tasks(self) -> Optional[int]:
        if not self.summarization:
            return None
        value = self.summarization.get("max_parallel_tasks")
        return int(value) if value else None
