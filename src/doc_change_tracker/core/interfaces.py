"""
Abstract interfaces for the document change tracker.

These interfaces define the contracts of the external collaborators the
poller depends on, enabling dependency injection of fakes for testing and
alternative implementations for other providers, stores and channels.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from doc_change_tracker.models import (
    ChangeAuditRecord,
    ChangeStats,
    DocType,
    DocumentMetadata,
    TrackedDocument,
)


class IMetadataProvider(ABC):
    """Interface for the document provider's metadata API."""

    @abstractmethod
    async def fetch_remote_metadata(self, doc_id: str, doc_type: DocType) -> dict[str, Any]:
        """
        Fetch the raw metadata response for a document.

        Args:
            doc_id: Provider document token
            doc_type: Provider document type

        Returns:
            Raw provider response; mapping to DocumentMetadata is the caller's job

        Raises:
            TransientFetchError: For failures worth retrying
            FetchError: For failures that will not succeed on retry
        """
        pass


class INotifier(ABC):
    """Interface for the channel that delivers change notifications."""

    @abstractmethod
    async def notify(self, destination: str, message: str) -> str:
        """
        Deliver a rendered message to a destination.

        Args:
            destination: Channel-specific destination identifier
            message: Rendered notification text

        Returns:
            Reference of the delivered notification

        Raises:
            NotifierError: If delivery fails
        """
        pass


class ITrackingStore(ABC):
    """
    Interface for tenant-scoped storage of tracked documents and the audit trail.

    Every tenant-scoped method must refuse to run without a tenant, raising
    TenantScopeError rather than defaulting to an unscoped query.
    """

    @abstractmethod
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
        """
        Insert or reactivate a tracking row. Idempotent on (doc_id, destination).

        initial_metadata becomes the last known state of new, reactivated or
        state-less rows; an active row with known state keeps its own.

        Raises:
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def stop_tracking(self, tenant_id: str, doc_id: str) -> bool:
        """
        Deactivate every tracking row of a document. Rows are never deleted.

        Returns:
            True if at least one active row was deactivated
        """
        pass

    @abstractmethod
    async def list_tracked(self, tenant_id: str, active_only: bool = True) -> list[TrackedDocument]:
        """List tracking rows of a tenant."""
        pass

    @abstractmethod
    async def get_tracked(
        self, tenant_id: str, doc_id: str, destination: str | None = None
    ) -> TrackedDocument | None:
        """Get a tracking row, the first matching one when destination is omitted."""
        pass

    @abstractmethod
    async def record_change(self, tenant_id: str, record: ChangeAuditRecord) -> ChangeAuditRecord:
        """
        Append one audit record.

        Returns:
            The stored record with its storage identifier
        """
        pass

    @abstractmethod
    async def update_last_known_state(
        self,
        tenant_id: str,
        doc_id: str,
        modifier: str,
        modified_at: int,
        destination: str | None = None,
    ) -> bool:
        """
        Store the last observed modification state on active rows.

        Returns:
            True if a row was updated
        """
        pass

    @abstractmethod
    async def update_last_notification_time(
        self,
        tenant_id: str,
        doc_id: str,
        timestamp: datetime,
        destination: str | None = None,
    ) -> bool:
        """
        Advance the last notification time on active rows. Never moves it backwards.

        Returns:
            True if a row was updated
        """
        pass

    @abstractmethod
    async def get_change_history(self, tenant_id: str, doc_id: str, limit: int = 50) -> list[ChangeAuditRecord]:
        """Audit records of a document, newest first."""
        pass

    @abstractmethod
    async def get_change_stats(self, tenant_id: str, doc_id: str) -> ChangeStats:
        """Aggregate the audit trail of a document."""
        pass

    @abstractmethod
    async def list_active_tenants(self) -> list[str]:
        """Tenants that currently have at least one active tracking row."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check that the store is reachable."""
        pass
