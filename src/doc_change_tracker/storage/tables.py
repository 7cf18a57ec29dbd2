"""SQLAlchemy table definitions for tracked documents and the change audit trail."""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TrackedDocumentRow(Base):
    """One tracking row per (tenant, document, destination). Never deleted."""

    __tablename__ = "tracked_documents"
    __table_args__ = (
        UniqueConstraint("tenant_id", "doc_id", "notify_destination", name="uq_tracked_documents_destination"),
        Index("ix_tracked_documents_tenant_active", "tenant_id", "active"),
    )

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(128), nullable=False)
    doc_id = Column(String(128), nullable=False)
    doc_type = Column(String(16), nullable=False)
    notify_destination = Column(String(255), nullable=False)
    owner_user_id = Column(String(128), nullable=True)
    title = Column(Text, nullable=True)
    last_known_modifier = Column(String(128), nullable=True)
    last_known_modified_at = Column(BigInteger, nullable=True)
    last_notification_at = Column(DateTime(timezone=True), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    started_tracking_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    notes = Column(Text, nullable=True)


class DocumentChangeRow(Base):
    """Append-only audit row for a detected change."""

    __tablename__ = "document_changes"
    __table_args__ = (Index("ix_document_changes_tenant_doc", "tenant_id", "doc_id", "detected_at"),)

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(128), nullable=False)
    doc_id = Column(String(128), nullable=False)
    notify_destination = Column(String(255), nullable=True)
    previous_modifier = Column(String(128), nullable=True)
    new_modifier = Column(String(128), nullable=False)
    previous_modified_at = Column(BigInteger, nullable=True)
    new_modified_at = Column(BigInteger, nullable=False)
    change_type = Column(String(32), nullable=False)
    debounced = Column(Boolean, nullable=False, default=False)
    notification_sent = Column(Boolean, nullable=False, default=False)
    notification_ref = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    detected_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
