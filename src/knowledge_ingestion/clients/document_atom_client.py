"""Client for the type detection and content extraction service."""

from typing import Optional

import httpx

from knowledge_ingestion.clients.base import ServiceClient
from knowledge_ingestion.config import get_settings
from knowledge_ingestion.services.retry import RetryPolicy
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("document_atom_client")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class DocumentAtomClient(ServiceClient):
    """
    HTTP client for the document atom service.

    Handles:
    - Detecting a document's type from its bytes
    - Extracting plain text given bytes and a detected type
    """

    service_name = "document-atom"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        access_key: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        settings = get_settings()
        super().__init__(
            base_url=base_url or settings.document_atom.endpoint,
            http_client=http_client,
            access_key=access_key if access_key is not None else settings.document_atom.access_key,
            retry_policy=retry_policy,
        )

    async def detect_type(self, data: bytes, filename: Optional[str] = None) -> Optional[str]:
        """
        Detect the type of a document.

        Args:
            data: Document bytes
            filename: Original filename, used as a hint by the detector

        Returns:
            The detected type string, or None when the service reports none
        """
        response = await self.request(
            "POST",
            "/typedetect",
            files={"file": (filename or "document", data, DEFAULT_CONTENT_TYPE)},
        )
        detected = self.parse_json(response).get("type")
        logger.debug(f"Type detection for {filename}: {detected}")
        return detected or None

    async def extract_content(
        self,
        data: bytes,
        file_type: str,
        filename: Optional[str] = None,
    ) -> Optional[str]:
        """
        Extract plain text from a document.

        Args:
            data: Document bytes
            file_type: Type returned by detect_type
            filename: Original filename

        Returns:
            Extracted text, or None when nothing could be extracted
        """
        response = await self.request(
            "POST",
            "/extract",
            files={"file": (filename or "document", data, DEFAULT_CONTENT_TYPE)},
            data={"type": file_type},
        )
        content = self.parse_json(response).get("content")
        if content:
            logger.debug(f"Extracted {len(content)} characters from {filename} ({file_type})")
        return content or None
