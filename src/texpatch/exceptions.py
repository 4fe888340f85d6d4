"""Error hierarchy for edit extraction, buffer transactions and review."""

from typing import Any, Optional


class TexpatchError(Exception):
    """Base class for all texpatch errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class NoOpEditError(TexpatchError):
    """Raised when a record neither consumes lines nor carries content."""


class DocumentBufferError(TexpatchError):
    """Base class for failures reported by a document buffer."""


class StaleRangeError(DocumentBufferError):
    """A range no longer fits the buffer (out of bounds or inverted)."""


class OverlappingRangesError(DocumentBufferError):
    """A multi-range transaction contained ranges that overlap."""


class ReviewError(TexpatchError):
    """Base class for failures of review operations (accept/reject)."""


class EditNotFoundError(ReviewError):
    """The edit id is not part of the current edit set."""


class EditNotPendingError(ReviewError):
    """The edit was already accepted or rejected."""


class BufferUnavailableError(ReviewError):
    """No buffer was supplied to apply the edit against."""


class ReentrantAcceptError(ReviewError):
    """An accept was issued while a previous accept was still rebasing."""


class EditApplicationError(ReviewError):
    """The buffer rejected the transaction for a single edit.

    The edit has been removed from the set; other pending edits are untouched.
    """

    def __init__(self, edit_id: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)
        self.edit_id = edit_id
