"""Anchored file editing — resolve, mutate, diff, back up, write, undo."""

from .errors import (
    EditError, MalformedBatchError, PathOutOfRootError, PathBlockedError,
    FileTooLargeError, AnchorNotFoundError, AnchorAmbiguousError,
    ReadFailedError, BackupFailedError, WriteFailedError, UserDeclinedError,
    UndoNotAvailableError, BatchCancelledError, NO_CHANGE,
)
from .models import EditOp, EditRequest, EditBatch, parse_batch, parse_tool_calls
from .anchor_resolver import resolve_anchor, find_occurrences, count_occurrences
from .mutations import apply_mutation, apply_request, apply_requests
from .diff_builder import DiffLine, DiffHunk, FileDiff, build_diff
from .atomic_writer import atomic_write, check_size, resolve_inside_root, MAX_FILE_BYTES
from .backup import BackupManager, BackupRecord, FileSnapshot, rebase_record
from .undo import UndoStack, UndoResult
from .executor import (
    BatchExecutor, ApplyOutcome, ApplyReport, FileState, Approver,
    APPLIED, SKIPPED, FAILED,
)
from .metrics import log_edit_metric, read_edit_stats

__all__ = [
    "EditError", "MalformedBatchError", "PathOutOfRootError", "PathBlockedError",
    "FileTooLargeError", "AnchorNotFoundError", "AnchorAmbiguousError",
    "ReadFailedError", "BackupFailedError", "WriteFailedError",
    "UserDeclinedError", "UndoNotAvailableError", "BatchCancelledError",
    "NO_CHANGE",
    "EditOp", "EditRequest", "EditBatch", "parse_batch", "parse_tool_calls",
    "resolve_anchor", "find_occurrences", "count_occurrences",
    "apply_mutation", "apply_request", "apply_requests",
    "DiffLine", "DiffHunk", "FileDiff", "build_diff",
    "atomic_write", "check_size", "resolve_inside_root", "MAX_FILE_BYTES",
    "BackupManager", "BackupRecord", "FileSnapshot", "rebase_record",
    "UndoStack", "UndoResult",
    "BatchExecutor", "ApplyOutcome", "ApplyReport", "FileState", "Approver",
    "APPLIED", "SKIPPED", "FAILED",
    "log_edit_metric", "read_edit_stats",
]
