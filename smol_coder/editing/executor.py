"""
Batch executor — applies an edit batch file by file.

Every distinct file walks the same state machine::

    Pending -> Resolving -> Mutating -> AwaitingApproval -> Committing -> Committed
                   |           |              |                  |
                   +-> Skipped +-> Skipped    +-> Skipped        +-> Failed

Files are independent: one file being skipped or failing never stops the
others. Committed files of a batch are pushed onto the undo stack as one
entry once the whole batch has been processed.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from ..config import Config
from .atomic_writer import atomic_write, check_size, resolve_inside_root
from .backup import BackupManager, BackupRecord
from .diff_builder import FileDiff, build_diff
from .errors import (
    NO_CHANGE,
    AnchorAmbiguousError,
    AnchorNotFoundError,
    BackupFailedError,
    BatchCancelledError,
    EditError,
    FileTooLargeError,
    MalformedBatchError,
    PathBlockedError,
    PathOutOfRootError,
    ReadFailedError,
    UserDeclinedError,
    WriteFailedError,
)
from .metrics import log_edit_metric
from .models import EditBatch, EditRequest
from .mutations import apply_requests
from .undo import UndoStack

logger = logging.getLogger(__name__)

APPLIED = "applied"
SKIPPED = "skipped"
FAILED = "failed"

# Called with the file's diff and the requests behind it; True approves.
Approver = Callable[[FileDiff, list[EditRequest]], bool]


class FileState(str, Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    MUTATING = "mutating"
    AWAITING_APPROVAL = "awaiting_approval"
    COMMITTING = "committing"
    COMMITTED = "committed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ApplyOutcome:
    """Result for one file of a batch."""
    path: str
    status: str = SKIPPED
    reason: str = ""
    message: str = ""
    state: FileState = FileState.PENDING
    before: bytes | None = None
    after: bytes | None = None
    diff: FileDiff | None = None
    backup: BackupRecord | None = None
    requests: list[EditRequest] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.status == APPLIED

    @property
    def diff_text(self) -> str:
        return self.diff.render() if self.diff else ""


@dataclass
class ApplyReport:
    """Summary of one batch: an outcome per distinct file touched."""
    batch_id: str
    outcomes: list[ApplyOutcome] = field(default_factory=list)
    backup_dir: str | None = None
    cancelled: bool = False

    @property
    def applied(self) -> list[ApplyOutcome]:
        return [o for o in self.outcomes if o.status == APPLIED]

    @property
    def skipped(self) -> list[ApplyOutcome]:
        return [o for o in self.outcomes if o.status == SKIPPED]

    @property
    def failed(self) -> list[ApplyOutcome]:
        return [o for o in self.outcomes if o.status == FAILED]

    @property
    def records(self) -> list[BackupRecord]:
        return [o.backup for o in self.outcomes if o.backup is not None]

    def summary(self) -> str:
        text = (f"{len(self.applied)} applied, {len(self.skipped)} skipped, "
                f"{len(self.failed)} failed")
        if self.cancelled:
            text += " (cancelled)"
        return text


@dataclass
class _FileJob:
    rel_path: str
    abs_path: str | None = None
    error: EditError | None = None
    requests: list[EditRequest] = field(default_factory=list)


class BatchExecutor:
    """Apply edit batches to files under one repository root."""

    def __init__(
        self,
        repo_root: str,
        undo_stack: UndoStack,
        config: Config | None = None,
    ) -> None:
        self._root = os.path.realpath(repo_root)
        self._undo = undo_stack
        self._config = config or Config()
        self._cancelled = False

    @property
    def undo_stack(self) -> UndoStack:
        return self._undo

    def apply(self, batch: EditBatch, approve: Approver | None = None) -> ApplyReport:
        """Apply *batch*, asking *approve* before each file is written.

        With ``approve=None`` every file is approved (auto mode).
        """
        if not isinstance(batch, EditBatch):
            raise MalformedBatchError(
                f"expected an EditBatch, got {type(batch).__name__}"
            )

        backups = BackupManager(self._config.backup_root(self._root))
        report = ApplyReport(batch_id=backups.batch_id)
        self._cancelled = False

        if not len(batch):
            logger.info("[Edit] Batch %s has no edits", report.batch_id)
            return report

        for job in self._plan(batch):
            outcome = self._process(job, backups, approve)
            report.outcomes.append(outcome)
            self._log_metric(report.batch_id, outcome)
            if self._cancelled:
                report.cancelled = True
                logger.info("[Edit] Batch %s cancelled after %s",
                            report.batch_id, job.rel_path)
                break

        records = backups.records
        if records:
            self._undo.record(report.batch_id, records)
            backups.write_manifest()
            report.backup_dir = backups.batch_dir

        logger.info("[Edit] Batch %s: %s", report.batch_id, report.summary())
        return report

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _plan(self, batch: EditBatch) -> list[_FileJob]:
        """Group requests per resolved file, keeping batch order."""
        jobs: dict[str, _FileJob] = {}
        for request in batch:
            try:
                abs_path, rel_path = resolve_inside_root(
                    self._root,
                    request.path,
                    allow_hidden=self._config.ALLOW_HIDDEN_PATHS,
                    protected=[self._config.DATA_DIR],
                )
                key = abs_path
                job = jobs.get(key) or _FileJob(rel_path=rel_path, abs_path=abs_path)
            except (PathOutOfRootError, PathBlockedError) as exc:
                key = "\0" + request.path
                job = jobs.get(key) or _FileJob(rel_path=request.path, error=exc)
            job.requests.append(request)
            jobs[key] = job
        return list(jobs.values())

    # ------------------------------------------------------------------
    # Per-file state machine
    # ------------------------------------------------------------------

    def _process(
        self,
        job: _FileJob,
        backups: BackupManager,
        approve: Approver | None,
    ) -> ApplyOutcome:
        outcome = ApplyOutcome(path=job.rel_path, requests=list(job.requests))

        self._advance(outcome, FileState.RESOLVING)
        if job.error is not None:
            return self._finish(outcome, SKIPPED, job.error)

        try:
            with open(job.abs_path, "rb") as f:
                before = f.read()
        except FileNotFoundError:
            return self._finish(
                outcome, SKIPPED,
                AnchorNotFoundError(f"{job.rel_path} does not exist"),
            )
        except OSError as exc:
            return self._finish(
                outcome, FAILED,
                ReadFailedError(f"could not read {job.rel_path}: {exc}"),
            )
        outcome.before = before

        try:
            after = apply_requests(before, job.requests)
        except (AnchorNotFoundError, AnchorAmbiguousError) as exc:
            return self._finish(outcome, SKIPPED, exc)

        self._advance(outcome, FileState.MUTATING)
        if after == before:
            outcome.reason = NO_CHANGE
            outcome.message = "edits leave the file unchanged"
            self._advance(outcome, FileState.SKIPPED)
            return outcome
        try:
            check_size(after, self._config.MAX_FILE_BYTES)
        except FileTooLargeError as exc:
            return self._finish(outcome, SKIPPED, exc)

        outcome.after = after
        outcome.diff = build_diff(
            before.decode("utf-8", errors="replace"),
            after.decode("utf-8", errors="replace"),
            job.rel_path,
            context=self._config.DIFF_CONTEXT,
        )

        self._advance(outcome, FileState.AWAITING_APPROVAL)
        if approve is not None:
            try:
                approved = approve(outcome.diff, list(job.requests))
            except BatchCancelledError:
                self._cancelled = True
                approved = False
            if not approved:
                return self._finish(
                    outcome, SKIPPED, UserDeclinedError("declined by user"),
                )

        self._advance(outcome, FileState.COMMITTING)
        try:
            snapshot = backups.snapshot(job.rel_path, job.abs_path)
            if snapshot.content != before:
                raise BackupFailedError(
                    f"{job.rel_path} changed on disk since it was read"
                )
            record = backups.commit(snapshot)
        except BackupFailedError as exc:
            return self._finish(outcome, FAILED, exc)

        try:
            atomic_write(job.abs_path, after)
        except WriteFailedError as exc:
            backups.discard(record)
            return self._finish(outcome, FAILED, exc)

        outcome.backup = record
        outcome.status = APPLIED
        self._advance(outcome, FileState.COMMITTED)
        logger.info("[Edit] Applied %s (+%d -%d, backup %s)",
                    job.rel_path, outcome.diff.added, outcome.diff.removed,
                    record.backup_path)
        return outcome

    @staticmethod
    def _advance(outcome: ApplyOutcome, state: FileState) -> None:
        logger.debug("[Edit] %s: %s -> %s", outcome.path,
                     outcome.state.value, state.value)
        outcome.state = state

    def _finish(self, outcome: ApplyOutcome, status: str, error: EditError) -> ApplyOutcome:
        outcome.status = status
        outcome.reason = error.reason
        outcome.message = str(error)
        self._advance(
            outcome,
            FileState.FAILED if status == FAILED else FileState.SKIPPED,
        )
        log = logger.warning if status == FAILED else logger.info
        log("[Edit] %s %s: %s (%s)", status.capitalize(), outcome.path,
            error.reason, error)
        return outcome

    def _log_metric(self, batch_id: str, outcome: ApplyOutcome) -> None:
        if not self._config.RECORD_METRICS:
            return
        log_edit_metric(
            {
                "batch_id": batch_id,
                "path": outcome.path,
                "status": outcome.status,
                "reason": outcome.reason,
                "edits": len(outcome.requests),
                "added": outcome.diff.added if outcome.diff else 0,
                "removed": outcome.diff.removed if outcome.diff else 0,
            },
            self._config.metrics_path(self._root),
        )
