"""
In-memory tracking store.

Keeps tracking rows and the audit trail in process memory with the same
tenant-scoping and write rules as the SQL store. Used for tests and for
ephemeral runs that do not need durability.
"""

import itertools
import logging
from datetime import UTC, datetime

from doc_change_tracker.core.interfaces import ITrackingStore
from doc_change_tracker.models import ChangeAuditRecord, ChangeStats, DocType, DocumentMetadata, TrackedDocument
from doc_change_tracker.storage.scope import require_tenant

logger = logging.getLogger(__name__)


class InMemoryTrackingStore(ITrackingStore):
    """Tracking store backed by dictionaries and lists."""

    def __init__(self):
        self._rows: dict[tuple[str, str, str], TrackedDocument] = {}
        self._changes: list[ChangeAuditRecord] = []
        self._row_ids = itertools.count(1)
        self._change_ids = itertools.count(1)

    def _matching(self, tenant_id: str, doc_id: str, destination: str | None) -> list[tuple[str, str, str]]:
        return [
            key
            for key in self._rows
            if key[0] == tenant_id and key[1] == doc_id and (destination is None or key[2] == destination)
        ]

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
        key = (tenant_id, doc_id, destination)
        now = datetime.now(UTC)

        updates = {
            "doc_type": DocType(doc_type),
            "active": True,
            "updated_at": now,
        }
        if owner_user_id is not None:
            updates["owner_user_id"] = owner_user_id
        if notes is not None:
            updates["notes"] = notes

        existing = self._rows.get(key)
        # Re-tracking an active row never overwrites its known state
        keep_state = existing is not None and existing.active and existing.has_known_state
        if initial_metadata is not None and not keep_state:
            updates["title"] = initial_metadata.title
            updates["last_known_modifier"] = initial_metadata.last_modified_by
            updates["last_known_modified_at"] = initial_metadata.last_modified_at

        if existing is not None:
            if not existing.active:
                updates["started_tracking_at"] = now
            row = existing.model_copy(update=updates)
            logger.info("Reactivated tracking for %s -> %s (tenant %s)", doc_id, destination, tenant_id)
        else:
            row = TrackedDocument(
                id=next(self._row_ids),
                tenant_id=tenant_id,
                doc_id=doc_id,
                notify_destination=destination,
                started_tracking_at=now,
                **updates,
            )
            logger.info("Started tracking %s -> %s (tenant %s)", doc_id, destination, tenant_id)

        self._rows[key] = row
        return row

    async def stop_tracking(self, tenant_id: str, doc_id: str) -> bool:
        require_tenant(tenant_id, "stop_tracking")
        deactivated = False
        for key in self._matching(tenant_id, doc_id, None):
            row = self._rows[key]
            if row.active:
                self._rows[key] = row.model_copy(update={"active": False, "updated_at": datetime.now(UTC)})
                deactivated = True

        logger.info("Stopped tracking %s (tenant %s, deactivated=%s)", doc_id, tenant_id, deactivated)
        return deactivated

    async def list_tracked(self, tenant_id: str, active_only: bool = True) -> list[TrackedDocument]:
        require_tenant(tenant_id, "list_tracked")
        return [
            row for key, row in self._rows.items() if key[0] == tenant_id and (row.active or not active_only)
        ]

    async def get_tracked(
        self, tenant_id: str, doc_id: str, destination: str | None = None
    ) -> TrackedDocument | None:
        require_tenant(tenant_id, "get_tracked")
        keys = self._matching(tenant_id, doc_id, destination)
        return self._rows[keys[0]] if keys else None

    async def record_change(self, tenant_id: str, record: ChangeAuditRecord) -> ChangeAuditRecord:
        require_tenant(tenant_id, "record_change")
        stored = record.model_copy(update={"id": next(self._change_ids), "tenant_id": tenant_id})
        self._changes.append(stored)
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
        updated = False
        for key in self._matching(tenant_id, doc_id, destination):
            row = self._rows[key]
            if not row.active:
                continue
            self._rows[key] = row.model_copy(
                update={
                    "last_known_modifier": modifier,
                    "last_known_modified_at": modified_at,
                    "updated_at": datetime.now(UTC),
                }
            )
            updated = True
        return updated

    async def update_last_notification_time(
        self,
        tenant_id: str,
        doc_id: str,
        timestamp: datetime,
        destination: str | None = None,
    ) -> bool:
        require_tenant(tenant_id, "update_last_notification_time")
        updated = False
        for key in self._matching(tenant_id, doc_id, destination):
            row = self._rows[key]
            if not row.active:
                continue
            if row.last_notification_at is not None and row.last_notification_at >= timestamp:
                continue
            self._rows[key] = row.model_copy(
                update={"last_notification_at": timestamp, "updated_at": datetime.now(UTC)}
            )
            updated = True
        return updated

    async def get_change_history(self, tenant_id: str, doc_id: str, limit: int = 50) -> list[ChangeAuditRecord]:
        require_tenant(tenant_id, "get_change_history")
        records = [r for r in self._changes if r.tenant_id == tenant_id and r.doc_id == doc_id]
        records.sort(key=lambda r: (r.detected_at, r.id or 0), reverse=True)
        return records[:limit]

    async def get_change_stats(self, tenant_id: str, doc_id: str) -> ChangeStats:
        require_tenant(tenant_id, "get_change_stats")
        records = [r for r in self._changes if r.tenant_id == tenant_id and r.doc_id == doc_id]
        return ChangeStats.from_records(doc_id, records)

    async def list_active_tenants(self) -> list[str]:
        return sorted({key[0] for key, row in self._rows.items() if row.active})

    async def health_check(self) -> bool:
        return True
