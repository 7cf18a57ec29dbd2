"""
Change detection with debouncing.

Compares a freshly fetched metadata snapshot with the last known tracking
state and classifies the result. Pure functions only: no I/O, the current
time can be injected.

Modification times are compared at the provider's one-second granularity, so
two edits within the same second by the same user collapse into one change.
"""

from collections.abc import Sequence
from datetime import UTC, datetime

from doc_change_tracker.models import (
    ChangeDetectionResult,
    ChangePatternSummary,
    ChangeType,
    DocumentMetadata,
    TrackedDocument,
)


def detect_change(
    current: DocumentMetadata,
    previous: TrackedDocument | None,
    debounce_window_seconds: float,
    last_notification_at: datetime | None = None,
    now: datetime | None = None,
) -> ChangeDetectionResult:
    """
    Classify the difference between a snapshot and the last known state.

    Precedence: no previous state gives ``new_document``; a different
    modification time gives ``time_updated``; the same time with a different
    modifier gives ``user_changed``.

    Args:
        current: Freshly fetched metadata
        previous: Last known tracking state, None on first observation
        debounce_window_seconds: Minimum time between two notifications
        last_notification_at: Last notification time (defaults to previous.last_notification_at)
        now: Current time (defaults to the wall clock)

    Returns:
        Detection result; ``debounced`` is only meaningful when ``has_changed``
    """
    now = now or datetime.now(UTC)

    if previous is None:
        return ChangeDetectionResult(
            has_changed=True,
            change_type=ChangeType.NEW_DOCUMENT,
            debounced=False,
            current_modifier=current.last_modified_by,
            current_modified_at=current.last_modified_at,
            detected_at=now,
            reason="First time tracking document",
        )

    time_changed = current.last_modified_at != previous.last_known_modified_at
    user_changed = current.last_modified_by != previous.last_known_modifier

    if not time_changed and not user_changed:
        return ChangeDetectionResult(
            has_changed=False,
            previous_modifier=previous.last_known_modifier,
            previous_modified_at=previous.last_known_modified_at,
            current_modifier=current.last_modified_by,
            current_modified_at=current.last_modified_at,
            detected_at=now,
            reason="No metadata change (same user, same time)",
        )

    if time_changed:
        change_type = ChangeType.TIME_UPDATED
        reason = f"Document updated by {current.last_modified_by}"
    else:
        change_type = ChangeType.USER_CHANGED
        reason = f"Different user detected ({previous.last_known_modifier} -> {current.last_modified_by})"

    if last_notification_at is None:
        last_notification_at = previous.last_notification_at

    debounced = False
    if last_notification_at is not None:
        elapsed = (now - last_notification_at).total_seconds()
        if elapsed < debounce_window_seconds:
            debounced = True
            reason = (
                f"Debounced: change within {debounce_window_seconds:g}s of last notification "
                f"({elapsed:.1f}s ago)"
            )

    return ChangeDetectionResult(
        has_changed=True,
        change_type=change_type,
        debounced=debounced,
        previous_modifier=previous.last_known_modifier,
        previous_modified_at=previous.last_known_modified_at,
        current_modifier=current.last_modified_by,
        current_modified_at=current.last_modified_at,
        detected_at=now,
        reason=reason,
    )


def format_detection_result(result: ChangeDetectionResult) -> str:
    """Format a detection result for logs and command output."""
    if not result.has_changed:
        status = "NO CHANGE"
    elif result.debounced:
        status = "DEBOUNCED"
    else:
        status = "DETECTED"

    details = f" ({result.reason})" if result.reason else ""
    return f"{status}{details}"


def analyze_change_pattern(results: Sequence[ChangeDetectionResult]) -> ChangePatternSummary:
    """
    Summarize a sequence of detection results.

    Unique modifiers only count changes that were actually notified.
    """
    unique_modifiers = {r.current_modifier for r in results if r.has_changed and not r.debounced}
    total_debounced = sum(1 for r in results if r.debounced)

    average_interval = 0.0
    if len(results) > 1:
        intervals = [
            (results[i].detected_at - results[i - 1].detected_at).total_seconds() for i in range(1, len(results))
        ]
        average_interval = sum(intervals) / len(intervals)

    return ChangePatternSummary(
        total_changes=len(results),
        total_debounced=total_debounced,
        unique_modifiers=unique_modifiers,
        average_change_interval_seconds=average_interval,
    )
