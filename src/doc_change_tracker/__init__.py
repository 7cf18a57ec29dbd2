"""Poll-based change tracking for externally hosted documents."""

__version__ = "0.1.0"
