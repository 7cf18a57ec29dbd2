"""Rendering of change notification messages."""

from datetime import UTC, datetime

from doc_change_tracker.models import ChangeDetectionResult, ChangeType, DocumentMetadata

_CHANGE_LABELS = {
    ChangeType.NEW_DOCUMENT: "Now tracking",
    ChangeType.TIME_UPDATED: "Content updated",
    ChangeType.USER_CHANGED: "Modifier changed",
}


def render_change_message(metadata: DocumentMetadata, detection: ChangeDetectionResult) -> str:
    """
    Render the notification text for a detected change.

    Args:
        metadata: Fresh metadata snapshot of the document
        detection: Detection result that triggered the notification

    Returns:
        Markdown-flavoured message text
    """
    modified_at = datetime.fromtimestamp(metadata.last_modified_at, tz=UTC)
    label = _CHANGE_LABELS.get(detection.change_type, "Changed")

    lines = [
        f"📝 **{metadata.title}**",
        f"Modified by: {metadata.last_modified_by}",
        f"Modified at: {modified_at.strftime('%Y-%m-%d %H:%M:%S')} UTC",
        f"Document type: {metadata.doc_type.value}",
        f"Change: {label}",
    ]
    if detection.previous_modifier and detection.previous_modifier != metadata.last_modified_by:
        lines.append(f"Previously modified by: {detection.previous_modifier}")

    return "\n".join(lines)
