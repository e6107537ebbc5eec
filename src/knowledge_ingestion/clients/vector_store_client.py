"""Client for the vector store (chunk records and search)."""

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from knowledge_ingestion.clients.base import ServiceClient
from knowledge_ingestion.config import get_settings
from knowledge_ingestion.models.chunk import Chunk
from knowledge_ingestion.models.retrieval import (
    NeighborChunk,
    RetrievalChunk,
    RetrievalSearchOptions,
    SearchMode,
)
from knowledge_ingestion.services.retry import RetryPolicy
from knowledge_ingestion.utils.errors import ExternalServiceError
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("vector_store_client")

VECTOR_SEARCH_TYPE = "CosineSimilarity"


def build_search_body(
    query: str,
    embeddings: Optional[List[float]],
    max_results: int,
    options: RetrievalSearchOptions,
) -> Dict[str, Any]:
    """Build a search request body for the requested mode."""
    body: Dict[str, Any] = {"max_results": max_results}

    if options.uses_vector and embeddings:
        body["vector"] = {"search_type": VECTOR_SEARCH_TYPE, "embeddings": embeddings}

    if options.uses_full_text:
        full_text: Dict[str, Any] = {
            "query": query,
            "search_type": options.full_text_search_type.value,
            "language": options.full_text_language,
            "normalization": options.full_text_normalization,
            "minimum_score": options.full_text_minimum_score,
        }
        if options.search_mode == SearchMode.HYBRID:
            full_text["text_weight"] = options.text_weight
        body["full_text"] = full_text

    if options.include_neighbors > 0:
        body["include_neighbors"] = options.include_neighbors

    return body


def parse_search_result(raw: Dict[str, Any]) -> RetrievalChunk:
    neighbors = [
        NeighborChunk(content=n.get("content") or "", position=n.get("position") or 0)
        for n in (raw.get("neighbors") or [])
    ]
    return RetrievalChunk(
        document_id=raw.get("document_id"),
        score=raw.get("score") or 0.0,
        text_score=raw.get("text_score"),
        content=raw.get("content"),
        position=raw.get("position"),
        neighbors=neighbors,
    )


class VectorStoreClient(ServiceClient):
    """
    HTTP client for the vector store.

    Handles:
    - Writing one chunk record per call
    - Vector, full-text and hybrid search over a collection
    """

    service_name = "vector-store"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        access_key: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        settings = get_settings()
        super().__init__(
            base_url=base_url or settings.vector_store.endpoint,
            http_client=http_client,
            access_key=access_key if access_key is not None else settings.vector_store.access_key,
            retry_policy=retry_policy,
        )

    async def put(self, collection_id: str, document_id: str, chunk: Chunk) -> Optional[str]:
        """
        Store a chunk record.

        Returns:
            The record id assigned by the store, or None when the store returns no body

        Raises:
            ExternalServiceError: On a non-2xx response
        """
        payload = {
            "content": chunk.content,
            "embeddings": chunk.embeddings,
            "metadata": {
                "source_document_id": document_id,
                "chunk_index": chunk.index,
            },
        }
        response = await self.request(
            "PUT", f"/v1/collections/{collection_id}/documents", json=payload
        )
        try:
            record_id = self.parse_json(response).get("id")
        except ValueError:
            # 2xx is a successful store even when the body is not JSON
            logger.debug(
                f"Non-JSON store response for chunk {chunk.index} of {document_id}: {response.text[:100]}"
            )
            return None
        return str(record_id) if record_id else None

    async def ensure_collection(self, collection_id: str) -> bool:
        """
        Make sure a collection exists, creating it when the store reports it missing.

        Returns:
            True if the collection exists or was created, False otherwise
        """
        try:
            await self.request("GET", f"/v1/collections/{collection_id}")
            return True
        except ExternalServiceError as e:
            if e.upstream_status != 404:
                logger.warning(f"Could not check collection {collection_id}: {e.message}")
                return False
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not check collection {collection_id}: {e}")
            return False

        logger.info(f"Collection {collection_id} not found; creating it")
        try:
            await self.request("POST", "/v1/collections", json={"id": collection_id})
        except (ExternalServiceError, httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not create collection {collection_id}: {e}")
            return False
        return True

    async def search(
        self,
        collection_id: str,
        query: str,
        embeddings: Optional[List[float]],
        max_results: int,
        options: RetrievalSearchOptions,
    ) -> List[RetrievalChunk]:
        """Search a collection; results are returned in the store's order."""
        body = build_search_body(query, embeddings, max_results, options)
        response = await self.request("POST", f"/v1/collections/{collection_id}/search", json=body)
        documents = self.parse_json(response).get("documents") or []
        return [parse_search_result(raw) for raw in documents]
