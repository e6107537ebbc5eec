"""Client for the chunk/embed service."""

from typing import Any, Dict, List, Optional

import httpx

from knowledge_ingestion.clients.base import ServiceClient
from knowledge_ingestion.config import get_settings
from knowledge_ingestion.models.chunk import Chunk
from knowledge_ingestion.models.document import IngestionRule
from knowledge_ingestion.services.retry import RetryPolicy
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("chunking_client")


class ChunkingClient(ServiceClient):
    """
    HTTP client for the chunk/embed service.

    The same service splits document text into embedded chunks during
    ingestion and embeds single queries during retrieval.
    """

    service_name = "chunking"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        access_key: Optional[str] = None,
        embedding_endpoint_id: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        settings = get_settings()
        super().__init__(
            base_url=base_url or settings.chunking.endpoint,
            http_client=http_client,
            access_key=access_key if access_key is not None else settings.chunking.access_key,
            retry_policy=retry_policy,
        )
        self.embedding_endpoint_id = embedding_endpoint_id or settings.chunking.embedding_endpoint_id

    def _build_process_body(self, text: str, rule: Optional[IngestionRule]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"text": text}
        if rule is not None:
            if rule.chunking:
                body["chunking"] = rule.chunking
            if rule.embedding:
                body["embedding"] = rule.embedding
            if rule.summarization:
                body["summarization"] = rule.summarization
        if self.embedding_endpoint_id:
            embedding = dict(body.get("embedding") or {})
            embedding.setdefault("embedding_endpoint_id", self.embedding_endpoint_id)
            body["embedding"] = embedding
        return body

    async def chunk_and_embed(self, text: str, rule: Optional[IngestionRule] = None) -> List[Chunk]:
        """
        Split text into chunks and embed each one.

        Args:
            text: Extracted document text
            rule: Ingestion rule whose configuration blocks are forwarded

        Returns:
            Chunks ordered by index (empty when the service returns none)
        """
        response = await self.request("POST", "/v1/process", json=self._build_process_body(text, rule))
        raw_chunks = self.parse_json(response).get("chunks") or []

        chunks: List[Chunk] = []
        for position, raw in enumerate(raw_chunks):
            index = raw.get("index")
            chunks.append(
                Chunk(
                    index=position if index is None else index,
                    content=raw.get("content") or "",
                    embeddings=raw.get("embeddings") or [],
                )
            )
        chunks.sort(key=lambda c: c.index)
        logger.info(f"Chunking service returned {len(chunks)} chunks")
        return chunks

    async def embed(self, text: str) -> List[float]:
        """Embed a single query string; an empty list means no embedding was produced."""
        body: Dict[str, Any] = {"text": text}
        if self.embedding_endpoint_id:
            body["embedding_endpoint_id"] = self.embedding_endpoint_id
        response = await self.request("POST", "/v1/embed", json=body)
        return list(self.parse_json(response).get("embeddings") or [])
