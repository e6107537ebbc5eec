"""SQLAlchemy database models."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class AssistantDocument(Base):
    """Document record shared with the upload and management services."""

    __tablename__ = "assistant_documents"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        index=True,
    )
    tenant_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    # File identity and blob location
    name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    original_filename: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    bucket_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    blob_key: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    content_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Pipeline state
    status: Mapped[str] = mapped_column(String(32), default="Pending", index=True, nullable=False)
    status_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ingestion_rule_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    collection_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Opaque JSON text
    labels: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    chunk_record_ids: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AssistantDocument(id={self.id}, status={self.status})>"


class IngestionRuleRecord(Base):
    """Ingestion rule with the configuration blocks forwarded to the chunking service."""

    __tablename__ = "ingestion_rules"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        index=True,
    )
    tenant_id: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    bucket: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    collection_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    collection_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # JSON text blocks
    chunking: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    embedding: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summarization: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<IngestionRuleRecord(id={self.id}, name={self.name})>"
