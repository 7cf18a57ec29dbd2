"""
Data models for change detection results and the change audit trail.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from doc_change_tracker.models.document import TrackedDocument


class ChangeType(str, Enum):
    """Classification of a detected change."""

    NEW_DOCUMENT = "new_document"
    TIME_UPDATED = "time_updated"
    USER_CHANGED = "user_changed"


class ChangeDetectionResult(BaseModel):
    """Outcome of comparing a fresh metadata snapshot with the last known state."""

    has_changed: bool = Field(..., description="Whether any change was observed")
    change_type: ChangeType | None = Field(None, description="Classification when has_changed is true")
    debounced: bool = Field(default=False, description="Change observed but notification suppressed")
    previous_modifier: str | None = Field(None, description="Modifier from the last known state")
    previous_modified_at: int | None = Field(None, description="Modification time from the last known state")
    current_modifier: str = Field(..., description="Modifier from the fresh snapshot")
    current_modified_at: int = Field(..., description="Modification time from the fresh snapshot")
    detected_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the comparison ran",
    )
    reason: str = Field(default="", description="Explanation of the decision")

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def should_notify(self) -> bool:
        """True when the caller must dispatch a notification."""
        return self.has_changed and not self.debounced


class ChangeAuditRecord(BaseModel):
    """
    One append-only row of the change audit trail.

    Written for every detected change whether or not a notification was sent.
    Records are frozen: correcting history means inserting a new record.
    """

    id: int | None = Field(None, description="Storage identifier")
    tenant_id: str = Field(..., min_length=1, description="Owning tenant")
    doc_id: str = Field(..., min_length=1, description="Provider document token")
    notify_destination: str | None = Field(None, description="Destination of the tracking row")
    previous_modifier: str | None = Field(None)
    new_modifier: str = Field(...)
    previous_modified_at: int | None = Field(None)
    new_modified_at: int = Field(...)
    change_type: ChangeType = Field(...)
    debounced: bool = Field(...)
    notification_sent: bool = Field(default=False)
    notification_ref: str | None = Field(None, description="Reference returned by the notifier")
    error_message: str | None = Field(None, description="Delivery error when notification failed")
    detected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)

    @field_validator('detected_at')
    @classmethod
    def ensure_utc(cls, v):
        """Treat naive datetimes coming back from storage as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @classmethod
    def from_detection(
        cls,
        tracked: TrackedDocument,
        detection: ChangeDetectionResult,
        notification_ref: str | None = None,
        error_message: str | None = None,
    ) -> "ChangeAuditRecord":
        """Build the audit row for a detection result on a tracked document."""
        if not detection.has_changed or detection.change_type is None:
            raise ValueError("Audit records can only be built from detected changes")

        return cls(
            tenant_id=tracked.tenant_id,
            doc_id=tracked.doc_id,
            notify_destination=tracked.notify_destination,
            previous_modifier=detection.previous_modifier,
            new_modifier=detection.current_modifier,
            previous_modified_at=detection.previous_modified_at,
            new_modified_at=detection.current_modified_at,
            change_type=detection.change_type,
            debounced=detection.debounced,
            notification_sent=notification_ref is not None,
            notification_ref=notification_ref,
            error_message=error_message,
            detected_at=detection.detected_at,
        )


class ChangeStats(BaseModel):
    """Aggregation over the audit trail of one document."""

    doc_id: str
    total_changes: int = Field(default=0, ge=0)
    notified_changes: int = Field(default=0, ge=0)
    debounced_changes: int = Field(default=0, ge=0)
    unique_modifiers: list[str] = Field(default_factory=list)
    last_change_at: datetime | None = None

    @classmethod
    def from_records(cls, doc_id: str, records: list[ChangeAuditRecord]) -> "ChangeStats":
        modifiers: list[str] = []
        for record in records:
            if record.new_modifier not in modifiers:
                modifiers.append(record.new_modifier)

        return cls(
            doc_id=doc_id,
            total_changes=len(records),
            notified_changes=sum(1 for r in records if r.notification_sent),
            debounced_changes=sum(1 for r in records if r.debounced),
            unique_modifiers=modifiers,
            last_change_at=max((r.detected_at for r in records), default=None),
        )


class ChangePatternSummary(BaseModel):
    """Summary of a sequence of detection results."""

    total_changes: int = 0
    total_debounced: int = 0
    unique_modifiers: set[str] = Field(default_factory=set)
    average_change_interval_seconds: float = 0.0
