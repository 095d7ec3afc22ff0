"""
Exception types shared by the ingestion pipeline, the store and the API.
"""

from typing import Optional


class TechRoadmapError(Exception):
    """Base exception for the package."""


class SourceNotFound(TechRoadmapError):
    """Input file or directory does not exist; aborts the whole run."""

    def __init__(self, path) -> None:
        self.path = path
        super().__init__(f"Source not found: {path}")


class UnreadableSource(TechRoadmapError):
    """Input file exists but cannot be parsed as a workbook; aborts the run."""

    def __init__(self, path, detail: str = "") -> None:
        self.path = path
        message = f"Cannot read {path}"
        super().__init__(f"{message}: {detail}" if detail else message)


class SheetSkipped(TechRoadmapError):
    """A sheet (or CSV file) was excluded from ingestion.

    Raised by the per-sheet pipeline and caught by the batch loop, which
    logs it and moves on to the next unit.
    """

    IGNORED_NAME = "ignored-name"
    NO_DATA = "no-data"
    MISSING_TOPIC_COLUMN = "missing-topic-column"
    NO_TOPICS = "no-topics"

    def __init__(self, sheet: str, reason: str, detail: Optional[str] = None) -> None:
        self.sheet = sheet
        self.reason = reason
        message = f"Sheet '{sheet}' skipped ({reason})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PersistenceError(TechRoadmapError):
    """The store rejected a write."""

    def __init__(self, message: str, conflict: bool = False) -> None:
        self.conflict = conflict
        super().__init__(message)


class StoreUnavailable(TechRoadmapError):
    """The store cannot be reached at all; fatal for a run."""


class NotFound(TechRoadmapError):
    """A document looked up by id or name does not exist."""


class PublishError(TechRoadmapError):
    """The static hosting API refused or failed an operation."""
