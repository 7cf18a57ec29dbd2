"""
SQLAlchemy tracking store.

Persists tracking rows and the change audit trail in a relational database.
Session work is blocking, so every call runs in a worker thread via
``asyncio.to_thread``; SQLite access is serialized with a lock because the
in-memory database shares a single connection.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from contextlib import nullcontext
from datetime import UTC, datetime
from typing import TypeVar

from sqlalchemy import create_engine, or_, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from doc_change_tracker.core.interfaces import ITrackingStore
from doc_change_tracker.models import (
    ChangeAuditRecord,
    ChangeStats,
    ChangeType,
    DocType,
    DocumentMetadata,
    PersistenceError,
    TrackedDocument,
)
from doc_change_tracker.storage.scope import require_tenant
from doc_change_tracker.storage.tables import Base, DocumentChangeRow, TrackedDocumentRow

logger = logging.getLogger(__name__)

T = TypeVar("T")


def create_store_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine, sharing one connection for in-memory SQLite."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _to_tracked(row: TrackedDocumentRow) -> TrackedDocument:
    return TrackedDocument(
        id=row.id,
        tenant_id=row.tenant_id,
        doc_id=row.doc_id,
        doc_type=DocType(row.doc_type),
        notify_destination=row.notify_destination,
        owner_user_id=row.owner_user_id,
        title=row.title,
        last_known_modifier=row.last_known_modifier,
        last_known_modified_at=row.last_known_modified_at,
        last_notification_at=row.last_notification_at,
        active=row.active,
        started_tracking_at=row.started_tracking_at,
        updated_at=row.updated_at,
        notes=row.notes,
    )


def _to_record(row: DocumentChangeRow) -> ChangeAuditRecord:
    return ChangeAuditRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        doc_id=row.doc_id,
        notify_destination=row.notify_destination,
        previous_modifier=row.previous_modifier,
        new_modifier=row.new_modifier,
        previous_modified_at=row.previous_modified_at,
        new_modified_at=row.new_modified_at,
        change_type=ChangeType(row.change_type),
        debounced=row.debounced,
        notification_sent=row.notification_sent,
        notification_ref=row.notification_ref,
        error_message=row.error_message,
        detected_at=row.detected_at,
    )


class SqlTrackingStore(ITrackingStore):
    """Tracking store over a SQLAlchemy engine."""

    def __init__(self, database_url: str = "sqlite://", echo: bool = False, engine: Engine | None = None):
        """
        Initialize the store.

        Args:
            database_url: SQLAlchemy database URL
            echo: Log emitted SQL statements
            engine: Pre-built engine (overrides database_url)
        """
        self.engine = engine or create_store_engine(database_url, echo=echo)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._lock = threading.Lock() if self.engine.dialect.name == "sqlite" else nullcontext()

    def initialize(self) -> None:
        """Create tables that do not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info("Tracking tables initialized on %s", self.engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        self.engine.dispose()

    async def _run(
        self,
        operation: str,
        work: Callable[[Session], T],
        tenant_id: str | None = None,
        doc_id: str | None = None,
    ) -> T:
        """Run session work in a worker thread inside one transaction."""

        def execute() -> T:
            with self._lock:
                with self._session_factory() as session, session.begin():
                    return work(session)

        try:
            return await asyncio.to_thread(execute)
        except SQLAlchemyError as e:
            logger.error("Persistence operation %s failed for %s: %s", operation, doc_id or "-", e)
            raise PersistenceError(
                f"Failed to {operation.replace('_', ' ')}: {e}",
                operation=operation,
                doc_id=doc_id,
                tenant_id=tenant_id,
                underlying_error=e,
            ) from e

    async def start_tracking(
        self,
        tenant_id: str,
        doc_id: str,
        doc_type: DocType,
        destination: str,
        initial_metadata: DocumentMetadata | None = None,
        owner_user_id: str | None = None,
        notes: str | None = None,
    ) -> TrackedDocument:
        require_tenant(tenant_id, "start_tracking")
        doc_type = DocType(doc_type)

        def work(session: Session) -> TrackedDocument:
            now = datetime.now(UTC)
            row = session.scalars(
                select(TrackedDocumentRow).where(
                    TrackedDocumentRow.tenant_id == tenant_id,
                    TrackedDocumentRow.doc_id == doc_id,
                    TrackedDocumentRow.notify_destination == destination,
                )
            ).first()

            keep_state = False
            if row is None:
                row = TrackedDocumentRow(
                    tenant_id=tenant_id,
                    doc_id=doc_id,
                    notify_destination=destination,
                    started_tracking_at=now,
                )
                session.add(row)
            elif not row.active:
                row.started_tracking_at = now
            else:
                # Re-tracking an active row never overwrites its known state
                keep_state = row.last_known_modified_at is not None

            row.doc_type = doc_type.value
            row.active = True
            row.updated_at = now
            if owner_user_id is not None:
                row.owner_user_id = owner_user_id
            if notes is not None:
                row.notes = notes
            if initial_metadata is not None and not keep_state:
                row.title = initial_metadata.title
                row.last_known_modifier = initial_metadata.last_modified_by
                row.last_known_modified_at = initial_metadata.last_modified_at

            session.flush()
            return _to_tracked(row)

        tracked = await self._run("start_tracking", work, tenant_id, doc_id)
        logger.info("Started tracking %s -> %s (tenant %s)", doc_id, destination, tenant_id)
        return tracked

    async def stop_tracking(self, tenant_id: str, doc_id: str) -> bool:
        require_tenant(tenant_id, "stop_tracking")

        def work(session: Session) -> bool:
            result = session.execute(
                update(TrackedDocumentRow)
                .where(
                    TrackedDocumentRow.tenant_id == tenant_id,
                    TrackedDocumentRow.doc_id == doc_id,
                    TrackedDocumentRow.active.is_(True),
                )
                .values(active=False, updated_at=datetime.now(UTC))
            )
            return result.rowcount > 0

        deactivated = await self._run("stop_tracking", work, tenant_id, doc_id)
        logger.info("Stopped tracking %s (tenant %s, deactivated=%s)", doc_id, tenant_id, deactivated)
        return deactivated

    async def list_tracked(self, tenant_id: str, active_only: bool = True) -> list[TrackedDocument]:
        require_tenant(tenant_id, "list_tracked")

        def work(session: Session) -> list[TrackedDocument]:
            stmt = select(TrackedDocumentRow).where(TrackedDocumentRow.tenant_id == tenant_id)
            if active_only:
                stmt = stmt.where(TrackedDocumentRow.active.is_(True))
            return [_to_tracked(row) for row in session.scalars(stmt.order_by(TrackedDocumentRow.id))]

        return await self._run("list_tracked", work, tenant_id)

    async def get_tracked(
        self, tenant_id: str, doc_id: str, destination: str | None = None
    ) -> TrackedDocument | None:
        require_tenant(tenant_id, "get_tracked")

        def work(session: Session) -> TrackedDocument | None:
            stmt = select(TrackedDocumentRow).where(
                TrackedDocumentRow.tenant_id == tenant_id, TrackedDocumentRow.doc_id == doc_id
            )
            if destination is not None:
                stmt = stmt.where(TrackedDocumentRow.notify_destination == destination)
            row = session.scalars(stmt.order_by(TrackedDocumentRow.id)).first()
            return _to_tracked(row) if row is not None else None

        return await self._run("get_tracked", work, tenant_id, doc_id)

    async def record_change(self, tenant_id: str, record: ChangeAuditRecord) -> ChangeAuditRecord:
        require_tenant(tenant_id, "record_change")

        def work(session: Session) -> ChangeAuditRecord:
            row = DocumentChangeRow(
                tenant_id=tenant_id,
                doc_id=record.doc_id,
                notify_destination=record.notify_destination,
                previous_modifier=record.previous_modifier,
                new_modifier=record.new_modifier,
                previous_modified_at=record.previous_modified_at,
                new_modified_at=record.new_modified_at,
                change_type=ChangeType(record.change_type).value,
                debounced=record.debounced,
                notification_sent=record.notification_sent,
                notification_ref=record.notification_ref,
                error_message=record.error_message,
                detected_at=_as_utc(record.detected_at),
            )
            session.add(row)
            session.flush()
            return _to_record(row)

        stored = await self._run("record_change", work, tenant_id, record.doc_id)
        logger.debug("Recorded %s change for %s", stored.change_type, stored.doc_id)
        return stored

    async def update_last_known_state(
        self,
        tenant_id: str,
        doc_id: str,
        modifier: str,
        modified_at: int,
        destination: str | None = None,
    ) -> bool:
        require_tenant(tenant_id, "update_last_known_state")

        def work(session: Session) -> bool:
            stmt = update(TrackedDocumentRow).where(
                TrackedDocumentRow.tenant_id == tenant_id,
                TrackedDocumentRow.doc_id == doc_id,
                TrackedDocumentRow.active.is_(True),
            )
            if destination is not None:
                stmt = stmt.where(TrackedDocumentRow.notify_destination == destination)
            result = session.execute(
                stmt.values(
                    last_known_modifier=modifier,
                    last_known_modified_at=modified_at,
                    updated_at=datetime.now(UTC),
                )
            )
            return result.rowcount > 0

        return await self._run("update_last_known_state", work, tenant_id, doc_id)

    async def update_last_notification_time(
        self,
        tenant_id: str,
        doc_id: str,
        timestamp: datetime,
        destination: str | None = None,
    ) -> bool:
        require_tenant(tenant_id, "update_last_notification_time")
        timestamp = _as_utc(timestamp)

        def work(session: Session) -> bool:
            stmt = update(TrackedDocumentRow).where(
                TrackedDocumentRow.tenant_id == tenant_id,
                TrackedDocumentRow.doc_id == doc_id,
                TrackedDocumentRow.active.is_(True),
                or_(
                    TrackedDocumentRow.last_notification_at.is_(None),
                    TrackedDocumentRow.last_notification_at < timestamp,
                ),
            )
            if destination is not None:
                stmt = stmt.where(TrackedDocumentRow.notify_destination == destination)
            result = session.execute(stmt.values(last_notification_at=timestamp, updated_at=datetime.now(UTC)))
            return result.rowcount > 0

        return await self._run("update_last_notification_time", work, tenant_id, doc_id)

    async def get_change_history(self, tenant_id: str, doc_id: str, limit: int = 50) -> list[ChangeAuditRecord]:
        require_tenant(tenant_id, "get_change_history")

        def work(session: Session) -> list[ChangeAuditRecord]:
            stmt = (
                select(DocumentChangeRow)
                .where(DocumentChangeRow.tenant_id == tenant_id, DocumentChangeRow.doc_id == doc_id)
                .order_by(DocumentChangeRow.detected_at.desc(), DocumentChangeRow.id.desc())
                .limit(limit)
            )
            return [_to_record(row) for row in session.scalars(stmt)]

        return await self._run("get_change_history", work, tenant_id, doc_id)

    async def get_change_stats(self, tenant_id: str, doc_id: str) -> ChangeStats:
        require_tenant(tenant_id, "get_change_stats")

        def work(session: Session) -> list[ChangeAuditRecord]:
            stmt = select(DocumentChangeRow).where(
                DocumentChangeRow.tenant_id == tenant_id, DocumentChangeRow.doc_id == doc_id
            )
            return [_to_record(row) for row in session.scalars(stmt.order_by(DocumentChangeRow.id))]

        records = await self._run("get_change_stats", work, tenant_id, doc_id)
        return ChangeStats.from_records(doc_id, records)

    async def list_active_tenants(self) -> list[str]:
        def work(session: Session) -> list[str]:
            stmt = (
                select(TrackedDocumentRow.tenant_id)
                .where(TrackedDocumentRow.active.is_(True))
                .distinct()
                .order_by(TrackedDocumentRow.tenant_id)
            )
            return list(session.scalars(stmt))

        return await self._run("list_active_tenants", work)

    async def health_check(self) -> bool:
        try:
            await self._run("health_check", lambda session: session.execute(text("SELECT 1")).scalar_one())
        except PersistenceError:
            return False
        return True
