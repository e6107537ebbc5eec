"""Custom exception classes for the Knowledge Ingestion service."""

from typing import Any, Dict, Optional


class IngestionException(Exception):
    """Base exception for all Knowledge Ingestion errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "status_code": self.status_code,
                "details": self.details,
            }
        }


class EmptyDownloadError(IngestionException):
    """Raised when a document's blob resolves to no bytes."""

    def __init__(
        self,
        message: str = "File data is empty or could not be downloaded.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=422,
            code="EMPTY_DOWNLOAD",
            details=details,
        )


class TypeDetectionFailedError(IngestionException):
    """Raised when the type detector cannot identify a document."""

    def __init__(
        self,
        message: str = "Document type could not be detected.",
        detected_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if detected_type is not None:
            error_details["detected_type"] = detected_type
        super().__init__(
            message=message,
            status_code=422,
            code="TYPE_DETECTION_FAILED",
            details=error_details,
        )


class ContentExtractionError(IngestionException):
    """Raised when no text could be extracted from a document."""

    def __init__(
        self,
        message: str = "Failed to extract content from document.",
        file_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if file_type:
            error_details["file_type"] = file_type
        super().__init__(
            message=message,
            status_code=422,
            code="CONTENT_EXTRACTION_ERROR",
            details=error_details,
        )


class ChunkingError(IngestionException):
    """Exception raised for text chunking errors."""

    def __init__(
        self,
        message: str = "Failed to chunk document content.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=500,
            code="CHUNKING_ERROR",
            details=details,
        )


class NoCollectionConfiguredError(IngestionException):
    """Raised when neither the document nor its rule names a target collection."""

    def __init__(
        self,
        message: str = "No collection identifier configured.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=422,
            code="NO_COLLECTION_CONFIGURED",
            details=details,
        )


class CollectionUnavailableError(IngestionException):
    """The target collection could not be found or created in the vector store."""

    def __init__(
        self,
        message: str = "Vector store collection not available.",
        collection_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if collection_id is not None:
            error_details["collection_id"] = collection_id
        super().__init__(
            message=message,
            status_code=502,
            code="COLLECTION_UNAVAILABLE",
            details=error_details,
        )


class ChunkStoreError(IngestionException):
    """A single chunk could not be written to the vector store.

    Recovered by the fan-out writer; never surfaces to callers.
    """

    def __init__(
        self,
        message: str = "Chunk store failed",
        chunk_index: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if chunk_index is not None:
            error_details["chunk_index"] = chunk_index
        super().__init__(
            message=message,
            status_code=502,
            code="CHUNK_STORE_ERROR",
            details=error_details,
        )


class IllegalTransitionError(IngestionException):
    """Raised when a status change is not allowed by the transition table."""

    def __init__(
        self,
        current: str,
        requested: str,
        document_id: Optional[str] = None,
    ):
        error_details: Dict[str, Any] = {"current": current, "requested": requested}
        if document_id:
            error_details["document_id"] = document_id
        super().__init__(
            message=f"Illegal status transition: {current} -> {requested}",
            status_code=409,
            code="ILLEGAL_TRANSITION",
            details=error_details,
        )


class StorageError(IngestionException):
    """Exception raised for storage operation errors."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=502,
            code="STORAGE_ERROR",
            details=details,
        )


class DatabaseError(IngestionException):
    """Exception raised for document record persistence errors."""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=500,
            code="DATABASE_ERROR",
            details=details,
        )


class QueueError(IngestionException):
    """Exception raised for message queue errors."""

    def __init__(
        self,
        message: str = "Message queue operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=502,
            code="QUEUE_ERROR",
            details=details,
        )


class RetrievalValidationError(IngestionException):
    """Raised for caller errors in a retrieval request (rejected before querying)."""

    def __init__(
        self,
        message: str = "Invalid retrieval request",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            status_code=422,
            code="VALIDATION_ERROR",
            details=error_details,
        )


class NotFoundError(IngestionException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} not found"
        if resource_id:
            message += f" with id: {resource_id}"
        error_details = details or {}
        error_details["resource"] = resource
        if resource_id:
            error_details["resource_id"] = resource_id
        super().__init__(
            message=message,
            status_code=404,
            code="NOT_FOUND",
            details=error_details,
        )


class ExternalServiceError(IngestionException):
    """Exception raised when external service calls fail."""

    def __init__(
        self,
        service: str,
        message: Optional[str] = None,
        status_code: int = 502,
        upstream_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_message = message or f"External service '{service}' unavailable"
        error_details = details or {}
        error_details["service"] = service
        if upstream_status is not None:
            error_details["upstream_status"] = upstream_status
        self.service = service
        self.upstream_status = upstream_status
        super().__init__(
            message=error_message,
            status_code=status_code,
            code="EXTERNAL_SERVICE_ERROR",
            details=error_details,
        )

    @property
    def is_retryable(self) -> bool:
        """Whether the upstream failure is worth another attempt (throttling or 5xx)."""
        if self.upstream_status is None:
            return False
        return self.upstream_status == 429 or self.upstream_status >= 500
