"""
Data models for tracked documents and their provider metadata.

These models represent the snapshot fetched from the document provider and
the persisted tracking row that remembers the last known state of a document.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class DocType(str, Enum):
    """Document types supported by the provider metadata API."""

    DOC = "doc"
    SHEET = "sheet"
    BITABLE = "bitable"
    DOCX = "docx"


class DocumentMetadata(BaseModel):
    """
    Snapshot of a document's modification state.

    Timestamps are unix seconds as reported by the provider. ``last_modified_at``
    is the authoritative clock for change detection.
    """

    doc_id: str = Field(..., min_length=1, description="Provider document token")
    title: str = Field(default="Unknown", description="Document title")
    owner_id: str = Field(default="unknown", description="Owner user identifier")
    created_at: int = Field(default=0, ge=0, description="Creation time (unix seconds)")
    last_modified_by: str = Field(default="unknown", description="User who last modified the document")
    last_modified_at: int = Field(default=0, ge=0, description="Last modification time (unix seconds)")
    doc_type: DocType = Field(default=DocType.DOC, description="Provider document type")

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def last_modified_datetime(self) -> datetime:
        """Last modification time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.last_modified_at, tz=UTC)

    def to_display_dict(self) -> dict[str, str]:
        """Format metadata for JSON output or logging."""
        return {
            "doc_id": self.doc_id,
            "title": self.title,
            "doc_type": self.doc_type.value,
            "owner_id": self.owner_id,
            "created_at": datetime.fromtimestamp(self.created_at, tz=UTC).isoformat(),
            "last_modified_by": self.last_modified_by,
            "last_modified_at": self.last_modified_datetime.isoformat(),
        }


class TrackedDocument(BaseModel):
    """
    Persisted tracking state for one (tenant, document, destination) triple.

    Rows are never physically deleted; ``active=False`` excludes them from
    polling while keeping them for audit continuity.
    """

    id: int | None = Field(None, description="Storage identifier")
    tenant_id: str = Field(..., min_length=1, description="Owning tenant")
    doc_id: str = Field(..., min_length=1, description="Provider document token")
    doc_type: DocType = Field(..., description="Provider document type")
    notify_destination: str = Field(..., min_length=1, description="Where change notifications are sent")
    owner_user_id: str | None = Field(None, description="User who asked for the document to be tracked")
    title: str | None = Field(None, description="Document title at the time tracking started")
    last_known_modifier: str | None = Field(None, description="Last observed modifier")
    last_known_modified_at: int | None = Field(None, ge=0, description="Last observed modification time")
    last_notification_at: datetime | None = Field(None, description="When a notification was last sent")
    active: bool = Field(default=True, description="Whether the document is included in poll cycles")
    started_tracking_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When tracking was (re)started",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Last time the row was written",
    )
    notes: str | None = Field(None, description="Free-form notes from the requester")

    @field_validator('last_notification_at', 'started_tracking_at', 'updated_at')
    @classmethod
    def ensure_utc(cls, v):
        """Treat naive datetimes coming back from storage as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def has_known_state(self) -> bool:
        """Whether a modification state has ever been observed for this row."""
        return self.last_known_modified_at is not None

    def __str__(self) -> str:
        status = "active" if self.active else "inactive"
        return f"TrackedDocument({self.doc_id} -> {self.notify_destination}, {status})"
