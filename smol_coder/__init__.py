"""
smol_coder — applies anchored, machine-proposed edits to a repository
with diffs, backups, atomic writes and undo.

Public API for library usage::

    from smol_coder import BatchExecutor, UndoStack, parse_batch

    undo = UndoStack()
    executor = BatchExecutor(".", undo)
    report = executor.apply(parse_batch(response_json))
    undo.undo_last()
"""

from .config import Config
from .editing import (
    BatchExecutor, ApplyOutcome, ApplyReport, UndoStack, UndoResult,
    EditBatch, EditRequest, EditOp, parse_batch, parse_tool_calls,
)

__all__ = [
    "Config",
    "BatchExecutor", "ApplyOutcome", "ApplyReport", "UndoStack", "UndoResult",
    "EditBatch", "EditRequest", "EditOp", "parse_batch", "parse_tool_calls",
]
