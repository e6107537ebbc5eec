"""Pytest configuration and fixtures."""

from typing import Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from knowledge_ingestion.database.models import Base
from knowledge_ingestion.models.chunk import Chunk
from knowledge_ingestion.models.document import Document, DocumentStatus, IngestionRule
from knowledge_ingestion.services.ingestion_service import IngestionService
from knowledge_ingestion.services.state_machine import StatusStateMachine

# Test database URL (in-memory SQLite for unit tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Create test session factory."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class FakeDocumentRepository:
    """In-memory stand-in for DocumentRepository that records every status write."""

    def __init__(self, documents: Optional[List[Document]] = None):
        self.documents: Dict[str, Document] = {d.id: d for d in documents or []}
        self.status_writes: List[Tuple[str, DocumentStatus, Optional[str]]] = []
        self.chunk_record_ids: Dict[str, List[str]] = {}

    async def get_by_id(self, document_id: str) -> Optional[Document]:
        document = self.documents.get(document_id)
        return document.model_copy() if document else None

    async def update_status(self, document_id, status, message=None) -> int:
        if document_id not in self.documents:
            return 0
        self.status_writes.append((document_id, status, message))
        self.documents[document_id].status = status
        self.documents[document_id].status_message = message
        return 1

    async def update_chunk_record_ids(self, document_id, record_ids) -> int:
        if document_id not in self.documents:
            return 0
        self.chunk_record_ids[document_id] = list(record_ids)
        return 1

    async def get_chunk_record_ids(self, document_id):
        return self.chunk_record_ids.get(document_id)

    def statuses(self, document_id: str) -> List[DocumentStatus]:
        return [s for d, s, _ in self.status_writes if d == document_id]

    def last_message(self, document_id: str) -> Optional[str]:
        messages = [m for d, _, m in self.status_writes if d == document_id]
        return messages[-1] if messages else None


class FakeRuleRepository:
    def __init__(self, rules: Optional[List[IngestionRule]] = None):
        self.rules = {r.id: r for r in rules or []}

    async def get_by_id(self, rule_id: str) -> Optional[IngestionRule]:
        return self.rules.get(rule_id)


def make_chunks(count: int) -> List[Chunk]:
    return [Chunk(index=i, content=f"chunk {i}", embeddings=[0.1 * i, 0.2]) for i in range(count)]


@pytest.fixture
def document():
    """A pending document with a target collection."""
    return Document(
        id="doc-1",
        tenant_id="tenant-1",
        name="Handbook",
        original_filename="handbook.pdf",
        bucket_name="documents",
        blob_key="tenant-1/handbook.pdf",
        size_bytes=1024,
        status=DocumentStatus.PENDING,
        collection_id="col-1",
    )


@pytest.fixture
def documents(document):
    return FakeDocumentRepository([document])


@pytest.fixture
def rules():
    return FakeRuleRepository()


@pytest.fixture
def storage():
    mock = MagicMock()
    mock.download = AsyncMock(return_value=b"%PDF-1.7 file bytes")
    return mock


@pytest.fixture
def document_atom():
    mock = MagicMock()
    mock.detect_type = AsyncMock(return_value="pdf")
    mock.extract_content = AsyncMock(return_value="Extracted document text.")
    return mock


@pytest.fixture
def chunking():
    mock = MagicMock()
    mock.chunk_and_embed = AsyncMock(return_value=make_chunks(3))
    mock.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return mock


@pytest.fixture
def vector_store():
    mock = MagicMock()

    async def put(collection_id, document_id, chunk):
        return f"rec-{chunk.index}"

    mock.put = AsyncMock(side_effect=put)
    mock.search = AsyncMock(return_value=[])
    mock.ensure_collection = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def ingestion_service(documents, rules, storage, document_atom, chunking, vector_store):
    """IngestionService wired to in-memory fakes."""
    return IngestionService(
        documents=documents,
        rules=rules,
        state_machine=StatusStateMachine(documents),
        storage=storage,
        document_atom=document_atom,
        chunking=chunking,
        vector_store=vector_store,
        max_parallel_tasks=4,
    )
