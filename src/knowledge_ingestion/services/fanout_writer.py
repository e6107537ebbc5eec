"""Bounded-concurrency writer that stores a document's chunks in the vector store."""

import asyncio
from typing import List, Optional, Sequence

import httpx

from knowledge_ingestion.clients.vector_store_client import VectorStoreClient
from knowledge_ingestion.config import get_settings
from knowledge_ingestion.models.chunk import Chunk, FanOutResult, StoredChunk
from knowledge_ingestion.services.processing_log_service import ProcessingLogService
from knowledge_ingestion.utils.errors import ChunkStoreError, ExternalServiceError
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("fanout_writer")


class ChunkFanOutWriter:
    """
    Stores every chunk of a document, one vector store record per chunk.

    A failed write is logged and counted; it never aborts the remaining
    chunks. At most max_parallel_tasks writes are in flight at once, and
    record ids are reported in chunk-index order.
    """

    def __init__(
        self,
        vector_store: VectorStoreClient,
        max_parallel_tasks: Optional[int] = None,
        processing_log: Optional[ProcessingLogService] = None,
        progress_log_interval: Optional[int] = None,
    ):
        settings = get_settings()
        self._vector_store = vector_store
        self.max_parallel_tasks = max(1, max_parallel_tasks or settings.ingestion.max_parallel_tasks)
        self.progress_log_interval = max(
            1, progress_log_interval or settings.ingestion.progress_log_interval
        )
        self._processing_log = processing_log

    async def _put(self, collection_id: str, document_id: str, chunk: Chunk) -> Optional[str]:
        try:
            return await self._vector_store.put(collection_id, document_id, chunk)
        except (ExternalServiceError, httpx.HTTPError, asyncio.TimeoutError) as e:
            raise ChunkStoreError(
                f"Failed to store chunk {chunk.index} of document {document_id}: {e}",
                chunk_index=chunk.index,
            ) from e

    async def store(self, collection_id: str, document_id: str, chunk: Chunk) -> bool:
        """Store a single chunk; returns False on failure instead of raising."""
        result = await self._store_one(collection_id, document_id, chunk)
        return result.success

    async def _store_one(self, collection_id: str, document_id: str, chunk: Chunk) -> StoredChunk:
        try:
            record_id = await self._put(collection_id, document_id, chunk)
        except ChunkStoreError as e:
            logger.warning(e.message)
            return StoredChunk(index=chunk.index, success=False)
        except Exception as e:
            logger.warning(
                f"Unexpected error storing chunk {chunk.index} of document {document_id}: {e}",
                exc_info=True,
            )
            return StoredChunk(index=chunk.index, success=False)
        return StoredChunk(index=chunk.index, success=True, record_id=record_id)

    async def store_all(
        self,
        collection_id: str,
        document_id: str,
        chunks: Sequence[Chunk],
        tenant_id: Optional[str] = None,
    ) -> FanOutResult:
        """
        Store all chunks of a document.

        Args:
            collection_id: Target collection
            document_id: Source document, recorded in each chunk's metadata
            chunks: Chunks to store
            tenant_id: Tenant used to locate the processing log

        Returns:
            FanOutResult with stored/total counts and record ids in index order
        """
        total = len(chunks)
        if total == 0:
            return FanOutResult(stored_count=0, total_count=0, record_ids=[])

        semaphore = asyncio.Semaphore(self.max_parallel_tasks)
        completed = 0
        stored = 0

        async def bounded(chunk: Chunk) -> StoredChunk:
            nonlocal completed, stored
            async with semaphore:
                outcome = await self._store_one(collection_id, document_id, chunk)
            completed += 1
            if outcome.success:
                stored += 1
            if self._processing_log is not None and (
                completed % self.progress_log_interval == 0 or completed == total
            ):
                await self._processing_log.info(
                    document_id,
                    f"Stored {stored}/{completed} chunks ({completed}/{total} processed)",
                    tenant_id,
                )
            return outcome

        logger.info(
            f"Storing {total} chunks for document {document_id} in collection {collection_id} "
            f"(max_parallel_tasks={self.max_parallel_tasks})"
        )
        raw_outcomes = await asyncio.gather(*(bounded(c) for c in chunks), return_exceptions=True)

        outcomes: List[StoredChunk] = []
        for chunk, raw in zip(chunks, raw_outcomes):
            if isinstance(raw, Exception):
                logger.error(f"Store task for chunk {chunk.index} of document {document_id} failed: {raw}")
                outcomes.append(StoredChunk(index=chunk.index, success=False))
            elif isinstance(raw, BaseException):
                raise raw
            else:
                outcomes.append(raw)

        outcomes.sort(key=lambda o: o.index)
        record_ids = [o.record_id for o in outcomes if o.success and o.record_id]
        stored_count = sum(1 for o in outcomes if o.success)

        if stored_count < total:
            logger.warning(
                f"Stored {stored_count}/{total} chunks for document {document_id}; "
                f"{total - stored_count} failed"
            )
        return FanOutResult(stored_count=stored_count, total_count=total, record_ids=record_ids)
