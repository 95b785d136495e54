"""
Edit errors — the taxonomy every outcome and undo result reports from.

Each exception carries a ``reason`` code that is copied verbatim into
``ApplyOutcome.reason`` / ``UndoResult.reason`` for status reporting.
"""

from __future__ import annotations


class EditError(Exception):
    """Base class for all edit engine errors."""

    reason = "EditError"


class MalformedBatchError(EditError):
    """The batch violates the edit schema; nothing was touched."""

    reason = "MalformedBatch"


class PathOutOfRootError(EditError):
    """The edit path resolves outside the repository root."""

    reason = "PathOutOfRoot"


class PathBlockedError(EditError):
    """The edit path is inside the root but not editable (hidden path)."""

    reason = "PathBlocked"


class FileTooLargeError(EditError):
    """The mutated buffer exceeds the size ceiling."""

    reason = "FileTooLarge"

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"mutated file is {size} bytes (limit {limit})")
        self.size = size
        self.limit = limit


class AnchorNotFoundError(EditError):
    reason = "AnchorNotFound"


class AnchorAmbiguousError(EditError):
    """The anchor occurs more often than the request's limit allows."""

    reason = "AnchorAmbiguous"

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(
            f"anchor occurs {count} times, limit is {limit}"
        )
        self.count = count
        self.limit = limit


class ReadFailedError(EditError):
    reason = "ReadFailed"


class BackupFailedError(EditError):
    reason = "BackupFailed"


class WriteFailedError(EditError):
    reason = "WriteFailed"


class UserDeclinedError(EditError):
    reason = "UserDeclined"


class UndoNotAvailableError(EditError):
    reason = "UndoNotAvailable"


class BatchCancelledError(Exception):
    """Raised by an approver to stop submitting further files."""


# Outcome reason for a batch that left a file byte-identical.
NO_CHANGE = "NoChange"
