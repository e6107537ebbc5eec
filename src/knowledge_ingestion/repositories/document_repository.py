"""Repositories for document records and ingestion rules."""

import json
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from knowledge_ingestion.database.models import AssistantDocument, IngestionRuleRecord, utcnow
from knowledge_ingestion.database.session import get_session_factory
from knowledge_ingestion.models.document import (
    Document,
    DocumentStatus,
    IngestionRule,
    parse_chunk_record_ids,
)
from knowledge_ingestion.utils.errors import DatabaseError
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("document_repository")


class DocumentRepository:
    """
    Persistence for document records.

    Every operation opens and commits its own session, so a single
    repository instance is safe to share between concurrent ingestion runs.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or get_session_factory()

    async def get_by_id(self, document_id: str) -> Optional[Document]:
        """
        Load a document by ID.

        Returns:
            Document model or None if not found

        Raises:
            DatabaseError: If the query fails
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(AssistantDocument).where(AssistantDocument.id == document_id)
                )
                record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting document {document_id}: {e}")
            raise DatabaseError("Failed to retrieve document", details={"document_id": document_id}) from e

        if record is None:
            return None
        return Document.model_validate(record)

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        message: Optional[str] = None,
    ) -> int:
        """
        Overwrite status, status message and last-updated timestamp.

        Returns:
            Number of rows affected (0 when the document does not exist)
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(AssistantDocument)
                    .where(AssistantDocument.id == document_id)
                    .values(status=status.value, status_message=message, updated_at=utcnow())
                )
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error updating status of document {document_id}: {e}")
            raise DatabaseError(
                "Failed to update document status",
                details={"document_id": document_id, "status": status.value},
            ) from e

    async def update_chunk_record_ids(self, document_id: str, record_ids: List[str]) -> int:
        """Persist vector store record ids as a JSON array."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(AssistantDocument)
                    .where(AssistantDocument.id == document_id)
                    .values(chunk_record_ids=json.dumps(list(record_ids)), updated_at=utcnow())
                )
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error updating chunk record ids of document {document_id}: {e}")
            raise DatabaseError(
                "Failed to update chunk record ids", details={"document_id": document_id}
            ) from e

    async def get_chunk_record_ids(self, document_id: str) -> Optional[List[str]]:
        """
        Read back the stored record ids.

        Raises:
            ValueError: If the stored value is not a JSON array of strings
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(AssistantDocument.chunk_record_ids).where(
                        AssistantDocument.id == document_id
                    )
                )
                raw = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error reading chunk record ids of document {document_id}: {e}")
            raise DatabaseError(
                "Failed to read chunk record ids", details={"document_id": document_id}
            ) from e
        return parse_chunk_record_ids(raw)


class IngestionRuleRepository:
    """Read access to ingestion rules."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or get_session_factory()

    async def get_by_id(self, rule_id: str) -> Optional[IngestionRule]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(IngestionRuleRecord).where(IngestionRuleRecord.id == rule_id)
                )
                record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting ingestion rule {rule_id}: {e}")
            raise DatabaseError("Failed to retrieve ingestion rule", details={"rule_id": rule_id}) from e

        if record is None:
            return None
        return IngestionRule.model_validate(record)
