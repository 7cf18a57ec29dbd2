"""Change detection and debouncing."""

from .change_detector import analyze_change_pattern, detect_change, format_detection_result

__all__ = [
    "detect_change",
    "format_detection_result",
    "analyze_change_pattern",
]
