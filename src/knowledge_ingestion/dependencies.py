"""Service wiring shared by the HTTP app and the queue consumer."""

from typing import Optional

import httpx
from fastapi import Request

from knowledge_ingestion.clients.chunking_client import ChunkingClient
from knowledge_ingestion.clients.document_atom_client import DocumentAtomClient
from knowledge_ingestion.clients.vector_store_client import VectorStoreClient
from knowledge_ingestion.config import Settings, get_settings
from knowledge_ingestion.database.session import get_session_factory
from knowledge_ingestion.repositories.document_repository import (
    DocumentRepository,
    IngestionRuleRepository,
)
from knowledge_ingestion.services.ingestion_service import IngestionService
from knowledge_ingestion.services.processing_log_service import ProcessingLogService
from knowledge_ingestion.services.retrieval_service import RetrievalService
from knowledge_ingestion.services.retry import RetryPolicy
from knowledge_ingestion.services.state_machine import StatusStateMachine
from knowledge_ingestion.services.storage_service import StorageService


class ServiceContainer:
    """Long-lived service instances built once per process."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        retry_policy = RetryPolicy.from_settings(self.settings.retry)

        # One shared HTTP client for every collaborator
        self.http_client = httpx.AsyncClient(timeout=httpx.Timeout(None, connect=10.0))

        self.documents = DocumentRepository(get_session_factory())
        self.rules = IngestionRuleRepository(get_session_factory())
        self.processing_log = ProcessingLogService(self.settings.processing_log)
        self.state_machine = StatusStateMachine(self.documents, self.processing_log)
        self.storage = StorageService(self.settings.storage)

        self.document_atom = DocumentAtomClient(self.http_client, retry_policy=retry_policy)
        self.chunking = ChunkingClient(self.http_client, retry_policy=retry_policy)
        self.vector_store = VectorStoreClient(self.http_client, retry_policy=retry_policy)

        self.ingestion = IngestionService(
            documents=self.documents,
            rules=self.rules,
            state_machine=self.state_machine,
            storage=self.storage,
            document_atom=self.document_atom,
            chunking=self.chunking,
            vector_store=self.vector_store,
            processing_log=self.processing_log,
            max_parallel_tasks=self.settings.ingestion.max_parallel_tasks,
        )
        self.retrieval = RetrievalService(self.chunking, self.vector_store)

    async def close(self) -> None:
        await self.storage.close()
        await self.http_client.aclose()


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container created in the app lifespan."""
    return request.app.state.services


def get_ingestion_service(request: Request) -> IngestionService:
    return get_services(request).ingestion


def get_retrieval_service(request: Request) -> RetrievalService:
    return get_services(request).retrieval


def get_document_repository(request: Request) -> DocumentRepository:
    return get_services(request).documents


def get_processing_log(request: Request) -> ProcessingLogService:
    return get_services(request).processing_log
