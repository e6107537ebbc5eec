"""Ingestion pipeline: turns a stored document into embedded chunks in a collection."""

import asyncio
import time
from typing import Optional

from knowledge_ingestion.clients.chunking_client import ChunkingClient
from knowledge_ingestion.clients.document_atom_client import DocumentAtomClient
from knowledge_ingestion.clients.vector_store_client import VectorStoreClient
from knowledge_ingestion.config import get_settings
from knowledge_ingestion.models.document import Document, DocumentStatus, IngestionRule
from knowledge_ingestion.repositories.document_repository import (
    DocumentRepository,
    IngestionRuleRepository,
)
from knowledge_ingestion.services.fanout_writer import ChunkFanOutWriter
from knowledge_ingestion.services.processing_log_service import ProcessingLogService
from knowledge_ingestion.services.state_machine import DocumentLifecycle, StatusStateMachine
from knowledge_ingestion.services.storage_service import StorageService
from knowledge_ingestion.utils.errors import (
    ChunkingError,
    CollectionUnavailableError,
    ContentExtractionError,
    DatabaseError,
    EmptyDownloadError,
    NoCollectionConfiguredError,
    TypeDetectionFailedError,
)
from knowledge_ingestion.utils.logging import document_id_var, get_logger

logger = get_logger("ingestion_service")

CANCELLED_MESSAGE = "Ingestion cancelled."


class RunProgress:
    """The step a single run is in and when the run started."""

    def __init__(self):
        self.step = "Initialization"
        self.started_at = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000


class IngestionService:
    """
    Runs the ingestion pipeline for one document at a time.

    Pipeline:
    1. Load the document and its ingestion rule
    2. Download bytes from blob storage
    3. Detect the document type
    4. Extract text
    5. Chunk and embed (optionally summarizing first)
    6. Store every chunk in the target collection
    7. Record chunk record ids and mark the document Completed

    Each stage writes a status through the state machine. Expected
    failures short-circuit into a terminal status; anything unexpected is
    caught once and recorded as Failed. Nothing is rolled back.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        rules: IngestionRuleRepository,
        state_machine: StatusStateMachine,
        storage: StorageService,
        document_atom: DocumentAtomClient,
        chunking: ChunkingClient,
        vector_store: VectorStoreClient,
        processing_log: Optional[ProcessingLogService] = None,
        max_parallel_tasks: Optional[int] = None,
    ):
        self._documents = documents
        self._rules = rules
        self._state_machine = state_machine
        self._storage = storage
        self._document_atom = document_atom
        self._chunking = chunking
        self._vector_store = vector_store
        self._processing_log = processing_log
        self._max_parallel_tasks = max_parallel_tasks or get_settings().ingestion.max_parallel_tasks

    async def process_document(self, document_id: str) -> None:
        """
        Ingest a document.

        Completion is observable only through the document's status. A
        missing document is logged and ignored. When the running task is
        cancelled, one shielded attempt is made to record Failed before the
        cancellation propagates.
        """
        token = document_id_var.set(document_id)
        try:
            document = await self._documents.get_by_id(document_id)
            if document is None:
                logger.warning(f"Document {document_id} not found; skipping ingestion")
                return

            lifecycle = self._state_machine.lifecycle(
                document.id, document.status, tenant_id=document.tenant_id
            )
            progress = RunProgress()
            try:
                await self._run(document, lifecycle, progress)
            except asyncio.CancelledError:
                logger.warning(f"Ingestion of document {document_id} cancelled during {progress.step}")
                await asyncio.shield(self._record_failure(document, lifecycle, progress, CANCELLED_MESSAGE))
                raise
            except Exception as e:
                logger.error(f"Ingestion of document {document_id} failed: {e}", exc_info=True)
                await self._record_failure(document, lifecycle, progress, f"Ingestion failed: {e}")
        finally:
            document_id_var.reset(token)

    async def _mark_failed(self, lifecycle: DocumentLifecycle, message: str) -> None:
        try:
            await lifecycle.fail(message)
        except Exception as update_error:
            logger.error(
                f"Failed to update status to Failed: document_id={lifecycle.document_id} - {update_error}",
                exc_info=True,
            )

    async def _record_failure(
        self, document: Document, lifecycle: DocumentLifecycle, progress: RunProgress, message: str
    ) -> None:
        try:
            await self._plog(
                document,
                "ERROR",
                f"Pipeline failed during step: {progress.step}: {message} "
                f"(total runtime {progress.elapsed_ms:.2f}ms)",
            )
        except Exception as log_error:
            logger.warning(f"Could not write processing log for document {document.id}: {log_error}")
        await self._mark_failed(lifecycle, message)

    async def _plog(self, document: Document, level: str, message: str) -> None:
        if self._processing_log is not None:
            await self._processing_log.log(document.id, level, message, document.tenant_id)

    async def _step_start(
        self, document: Document, step: str, progress: RunProgress
    ) -> Optional[float]:
        progress.step = step
        if self._processing_log is None:
            return None
        return await self._processing_log.step_start(document.id, step, document.tenant_id)

    async def _step_complete(
        self, document: Document, step: str, started_at: Optional[float], result: str
    ) -> None:
        if self._processing_log is not None:
            await self._processing_log.step_complete(
                document.id, step, started_at, result, document.tenant_id
            )

    async def _load_rule(self, document: Document) -> Optional[IngestionRule]:
        if not document.ingestion_rule_id:
            await self._plog(document, "INFO", "Ingestion rule loaded: no rule")
            return None
        try:
            rule = await self._rules.get_by_id(document.ingestion_rule_id)
        except DatabaseError as e:
            logger.warning(f"Could not load ingestion rule {document.ingestion_rule_id}: {e.message}")
            rule = None
        if rule is None:
            logger.warning(
                f"Ingestion rule {document.ingestion_rule_id} for document {document.id} not found; "
                "continuing without rule"
            )
            await self._plog(document, "WARN", f"Ingestion rule {document.ingestion_rule_id} not found")
            return None
        await self._plog(document, "INFO", f"Ingestion rule loaded: {rule.id} ({rule.name})")
        return rule

    async def _run(
        self, document: Document, lifecycle: DocumentLifecycle, progress: RunProgress
    ) -> None:
        logger.info(
            f"Processing document: id={document.id}, filename={document.original_filename}, "
            f"size={document.size_bytes}"
        )
        await self._plog(
            document,
            "INFO",
            f"Pipeline started for document {document.id}, filename: {document.original_filename or 'unknown'}",
        )

        progress.step = "Rule loading"
        rule = await self._load_rule(document)

        await lifecycle.begin("Detecting document type.")

        # Download
        started = await self._step_start(document, "File download", progress)
        data = await self._storage.download(document.bucket_name, document.blob_key)
        if not data:
            await lifecycle.advance(DocumentStatus.FAILED, EmptyDownloadError().message)
            return
        await self._step_complete(
            document,
            "File download",
            started,
            f"bucket: {document.bucket_name or 'default'}, key: {document.blob_key}, {len(data)} bytes",
        )

        # Type detection
        started = await self._step_start(document, "Type detection", progress)
        detected_type = await self._document_atom.detect_type(data, document.original_filename)
        if not detected_type or detected_type.strip().lower() == "unknown":
            await lifecycle.advance(
                DocumentStatus.TYPE_DETECTION_FAILED, TypeDetectionFailedError().message
            )
            return
        await self._step_complete(document, "Type detection", started, f"detected type: {detected_type}")
        await lifecycle.advance(DocumentStatus.TYPE_DETECTION_SUCCESS, f"Detected type: {detected_type}")

        # Extraction
        await lifecycle.advance(DocumentStatus.PROCESSING, "Processing document content.")
        started = await self._step_start(document, "Content extraction", progress)
        text = await self._document_atom.extract_content(
            data, detected_type, document.original_filename
        )
        if not text or not text.strip():
            await lifecycle.advance(DocumentStatus.FAILED, ContentExtractionError().message)
            return
        await self._step_complete(
            document, "Content extraction", started, f"{len(text)} characters extracted"
        )

        # Chunking and embedding
        await lifecycle.advance(DocumentStatus.PROCESSING_CHUNKS, "Processing content.")
        if rule is not None and rule.summarization_enabled:
            await lifecycle.advance(DocumentStatus.SUMMARIZING, "Summarizing document content.")
        started = await self._step_start(document, "Chunking", progress)
        chunks = await self._chunking.chunk_and_embed(text, rule)
        if not chunks:
            await lifecycle.advance(DocumentStatus.FAILED, ChunkingError().message)
            return
        await self._step_complete(document, "Chunking", started, f"{len(chunks)} chunks generated")

        # Storage
        await lifecycle.advance(DocumentStatus.STORING_EMBEDDINGS, f"Storing {len(chunks)} embeddings.")
        collection_id = document.collection_id or (rule.collection_id if rule else None)
        if not collection_id:
            await lifecycle.advance(DocumentStatus.FAILED, NoCollectionConfiguredError().message)
            return

        progress.step = "Collection check"
        if not await self._vector_store.ensure_collection(collection_id):
            await self._plog(
                document, "ERROR", f"Collection check failed: collection {collection_id} could not be found or created"
            )
            await lifecycle.advance(DocumentStatus.FAILED, CollectionUnavailableError().message)
            return

        writer = ChunkFanOutWriter(
            self._vector_store,
            max_parallel_tasks=(rule.max_parallel_tasks if rule else None) or self._max_parallel_tasks,
            processing_log=self._processing_log,
        )
        started = await self._step_start(document, "Embedding storage", progress)
        result = await writer.store_all(collection_id, document.id, chunks, tenant_id=document.tenant_id)
        await self._step_complete(
            document,
            "Embedding storage",
            started,
            f"{result.stored_count}/{result.total_count} chunks stored in collection {collection_id}",
        )

        if result.record_ids:
            await self._documents.update_chunk_record_ids(document.id, result.record_ids)

        await lifecycle.advance(
            DocumentStatus.COMPLETED, f"Ingestion complete. {result.stored_count} chunks stored."
        )
        await self._plog(document, "INFO", f"Pipeline complete, total runtime {progress.elapsed_ms:.2f}ms")
        logger.info(
            f"Document {document.id} ingested: {result.stored_count}/{result.total_count} chunks stored "
            f"in collection {collection_id}"
        )
