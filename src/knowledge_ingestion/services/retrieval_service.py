"""Hybrid retrieval: query embedding, collection search and relevance scoring."""

import asyncio
from typing import List, Optional

import httpx

from knowledge_ingestion.clients.chunking_client import ChunkingClient
from knowledge_ingestion.clients.vector_store_client import VectorStoreClient
from knowledge_ingestion.models.retrieval import (
    RetrievalChunk,
    RetrievalSearchOptions,
    SearchMode,
)
from knowledge_ingestion.utils.errors import ExternalServiceError, RetrievalValidationError
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("retrieval_service")

COLLABORATOR_ERRORS = (ExternalServiceError, httpx.HTTPError, asyncio.TimeoutError, ValueError)


def fuse_scores(vector_score: float, text_score: Optional[float], text_weight: float) -> float:
    """Weighted hybrid score; a missing text score counts as 0."""
    return (1.0 - text_weight) * vector_score + text_weight * (text_score or 0.0)


def effective_score(chunk: RetrievalChunk, options: RetrievalSearchOptions) -> float:
    """The score a result is ranked and thresholded by, for the given mode."""
    if options.search_mode == SearchMode.FULL_TEXT:
        return chunk.text_score or 0.0
    if options.search_mode == SearchMode.HYBRID:
        return fuse_scores(chunk.score, chunk.text_score, options.text_weight)
    return chunk.score


def validate_request(collection_id: str, query: str, top_k: int, score_threshold: float) -> None:
    """
    Reject malformed retrieval requests before any I/O.

    Raises:
        RetrievalValidationError: On an empty collection or query, a
            non-positive top_k, or a threshold outside [0, 1]
    """
    if not collection_id or not collection_id.strip():
        raise RetrievalValidationError("collection_id must not be empty", field="collection_id")
    if not query or not query.strip():
        raise RetrievalValidationError("query must not be empty", field="query")
    if top_k <= 0:
        raise RetrievalValidationError("top_k must be greater than 0", field="top_k")
    if not 0.0 <= score_threshold <= 1.0:
        raise RetrievalValidationError(
            "score_threshold must be between 0.0 and 1.0", field="score_threshold"
        )


def rank_results(
    results: List[RetrievalChunk],
    options: RetrievalSearchOptions,
    score_threshold: float,
) -> List[RetrievalChunk]:
    """
    Score, filter and order search results.

    Results below the threshold are dropped first; in FullText and Hybrid
    modes results whose text score is under full_text_minimum_score are
    dropped next. Empty results are discarded. Ordering is by descending
    effective score and ties keep the store's order.
    """
    ranked: List[RetrievalChunk] = []
    for chunk in results:
        chunk.relevance = effective_score(chunk, options)
        if chunk.relevance < score_threshold:
            continue
        if (
            options.uses_full_text
            and options.full_text_minimum_score is not None
            and (chunk.text_score or 0.0) < options.full_text_minimum_score
        ):
            continue
        content = chunk.merged_content if options.include_neighbors > 0 else chunk.content
        if not content:
            continue
        ranked.append(chunk)

    return sorted(ranked, key=lambda c: c.relevance, reverse=True)


class RetrievalService:
    """
    Retrieves the most relevant chunk contents for a query.

    Handles:
    - Request validation
    - Query embedding (skipped in FullText mode)
    - Vector, full-text and hybrid search with vector fallback for empty hybrid results
    - Scoring, threshold filtering and stable ordering

    Collaborator failures are logged and produce an empty result; only
    validation errors reach the caller.
    """

    def __init__(self, chunking: ChunkingClient, vector_store: VectorStoreClient):
        self._chunking = chunking
        self._vector_store = vector_store

    async def _embed_query(self, query: str) -> List[float]:
        try:
            embeddings = await self._chunking.embed(query)
        except COLLABORATOR_ERRORS as e:
            logger.warning(f"Query embedding failed: {e}")
            return []
        if not embeddings:
            logger.warning("Query embedding returned no values")
        return embeddings

    async def _search(
        self,
        collection_id: str,
        query: str,
        embeddings: Optional[List[float]],
        top_k: int,
        options: RetrievalSearchOptions,
    ) -> Optional[List[RetrievalChunk]]:
        try:
            return await self._vector_store.search(collection_id, query, embeddings, top_k, options)
        except COLLABORATOR_ERRORS as e:
            logger.warning(f"Search of collection {collection_id} failed: {e}")
            return None

    async def retrieve_chunks(
        self,
        collection_id: str,
        query: str,
        top_k: int,
        score_threshold: float,
        search_options: Optional[RetrievalSearchOptions] = None,
    ) -> List[RetrievalChunk]:
        """
        Search a collection and return ranked results.

        Args:
            collection_id: Collection to search
            query: Natural language query
            top_k: Maximum number of results requested from the store
            score_threshold: Minimum effective score, inclusive
            search_options: Mode and full-text tuning (defaults to vector search)

        Returns:
            Results ordered by descending effective score

        Raises:
            RetrievalValidationError: If the request is malformed
        """
        validate_request(collection_id, query, top_k, score_threshold)
        options = search_options or RetrievalSearchOptions()

        embeddings: Optional[List[float]] = None
        if options.search_mode != SearchMode.FULL_TEXT:
            embeddings = await self._embed_query(query)
            if not embeddings:
                return []
            logger.debug(f"Generated {len(embeddings)}-dimensional query embedding")
        else:
            logger.debug("FullText mode: skipping query embedding")

        results = await self._search(collection_id, query, embeddings, top_k, options)
        if results is None:
            return []

        if not results and options.search_mode == SearchMode.HYBRID and embeddings:
            logger.info(f"Hybrid search of {collection_id} returned no results; falling back to vector search")
            options = options.model_copy(update={"search_mode": SearchMode.VECTOR})
            results = await self._search(collection_id, query, embeddings, top_k, options)
            if results is None:
                return []

        ranked = rank_results(results, options, score_threshold)[:top_k]
        logger.info(
            f"Retrieved {len(ranked)} of {len(results)} results from {collection_id} "
            f"(mode={options.search_mode.value}, threshold={score_threshold})"
        )
        return ranked

    async def retrieve(
        self,
        collection_id: str,
        query: str,
        top_k: int,
        score_threshold: float,
        search_options: Optional[RetrievalSearchOptions] = None,
    ) -> List[str]:
        """Same as retrieve_chunks, returning only the contents."""
        options = search_options or RetrievalSearchOptions()
        chunks = await self.retrieve_chunks(collection_id, query, top_k, score_threshold, options)
        if options.include_neighbors > 0:
            return [c.merged_content for c in chunks]
        return [c.content for c in chunks]
