"""
Undo stack — reverses committed batches, newest first, one batch at a time.

The stack is plain process-scoped state: create one per engine, pass it to
the executor, and let it go with the process. It starts empty.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .atomic_writer import atomic_write
from .backup import BackupRecord
from .errors import UndoNotAvailableError, WriteFailedError

logger = logging.getLogger(__name__)

DEFAULT_UNDO_DEPTH = 10


@dataclass
class UndoEntry:
    batch_id: str
    records: list[BackupRecord] = field(default_factory=list)


@dataclass
class UndoResult:
    """Result of an undo invocation."""
    success: bool = False
    batch_id: str = ""
    restored: list[str] = field(default_factory=list)
    reason: str = ""
    message: str = ""


class UndoStack:
    """Bounded stack of committed batches."""

    def __init__(self, max_depth: int = DEFAULT_UNDO_DEPTH) -> None:
        self._max_depth = max(1, max_depth)
        self._entries: list[UndoEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def peek(self) -> UndoEntry | None:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries.clear()

    def record(self, batch_id: str, backups: list[BackupRecord]) -> None:
        """Push a committed batch; batches that wrote nothing are ignored."""
        if not backups:
            return
        self._entries.append(UndoEntry(batch_id=batch_id, records=list(backups)))
        if len(self._entries) > self._max_depth:
            dropped = self._entries.pop(0)
            logger.debug("[Edit] Undo depth exceeded, forgetting batch %s",
                         dropped.batch_id)

    def undo_last(self) -> UndoResult:
        """Restore every file of the newest batch, or none of them."""
        entry = self.peek()
        if entry is None:
            return UndoResult(
                reason=UndoNotAvailableError.reason,
                message="Nothing to undo.",
            )

        # Read every backup before touching any target.
        pristine: list[tuple[BackupRecord, bytes]] = []
        for record in entry.records:
            try:
                with open(record.backup_path, "rb") as f:
                    pristine.append((record, f.read()))
            except OSError as exc:
                # The batch can never be restored; older batches stay reachable
                self._entries.pop()
                logger.error("[Edit] Backup missing for %s, dropping batch %s "
                             "from the undo stack: %s",
                             record.rel_path, entry.batch_id, exc)
                return UndoResult(
                    batch_id=entry.batch_id,
                    reason=UndoNotAvailableError.reason,
                    message=f"backup for {record.rel_path} is unreadable: {exc}",
                )

        restored: list[tuple[BackupRecord, bytes | None]] = []
        for record, content in pristine:
            try:
                current = _read_or_none(record.target_path)
                atomic_write(record.target_path, content)
            except (OSError, WriteFailedError) as exc:
                logger.error("[Edit] Undo of %s failed: %s", record.rel_path, exc)
                self._roll_back(restored)
                return UndoResult(
                    batch_id=entry.batch_id,
                    reason=WriteFailedError.reason,
                    message=str(exc),
                )
            restored.append((record, current))

        self._entries.pop()
        logger.info("[Edit] Undid batch %s (%d file(s))",
                    entry.batch_id, len(restored))
        return UndoResult(
            success=True,
            batch_id=entry.batch_id,
            restored=[r.rel_path for r, _ in restored],
        )

    @staticmethod
    def _roll_back(restored: list[tuple[BackupRecord, bytes | None]]) -> None:
        """Put files restored by a failed undo back to their pre-undo bytes."""
        for record, previous in reversed(restored):
            try:
                if previous is None:
                    os.unlink(record.target_path)
                else:
                    atomic_write(record.target_path, previous)
            except (OSError, WriteFailedError) as exc:
                logger.error("[Edit] Undo rollback failed for %s: %s",
                             record.rel_path, exc)


def _read_or_none(path: str) -> bytes | None:
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return None
