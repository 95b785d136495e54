"""
Backup manager — snapshots files before their first write in a batch.

Layout under the backup root::

    <backup_root>/<batch_id>/<repo-relative path>   pristine copies
    <backup_root>/<batch_id>.json                   manifest of records
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Iterable

from .atomic_writer import atomic_write, resolve_inside_root
from .errors import BackupFailedError, WriteFailedError

logger = logging.getLogger(__name__)

_MANIFEST_SUFFIX = ".json"


@dataclass(frozen=True)
class FileSnapshot:
    """Pristine bytes of one file, taken before any write in the batch."""
    rel_path: str
    abs_path: str
    content: bytes


@dataclass(frozen=True)
class BackupRecord:
    """Links a mutated file to its pristine copy in a batch directory."""
    batch_id: str
    timestamp: str
    rel_path: str
    backup_path: str
    target_path: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BackupRecord":
        if not isinstance(data.get("rel_path"), str):
            raise TypeError("record rel_path must be a string")
        return cls(
            batch_id=data["batch_id"],
            timestamp=data["timestamp"],
            rel_path=data["rel_path"],
            backup_path=data["backup_path"],
            target_path=data["target_path"],
        )


def new_batch_id(backup_root: str) -> str:
    """Return a batch id whose directory and manifest do not exist yet."""
    base = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    candidate = base
    n = 1
    while (os.path.exists(os.path.join(backup_root, candidate))
           or os.path.exists(os.path.join(backup_root, candidate + _MANIFEST_SUFFIX))):
        candidate = f"{base}_{n}"
        n += 1
    return candidate


def rebase_record(
    record: BackupRecord,
    backup_root: str,
    batch_id: str,
    repo_root: str,
    allow_hidden: bool = False,
    protected: Iterable[str] = (),
) -> BackupRecord:
    """Re-derive a manifest record's paths from its repo-relative path.

    The absolute paths stored in a manifest are not trusted: the target is
    resolved again under *repo_root* and the backup is looked up under
    *backup_root*, so a moved checkout still restores and an edited
    manifest cannot point a restore outside the repository.

    Raises ``PathOutOfRootError`` or ``PathBlockedError`` for a record whose
    relative path does not stay inside *repo_root*.
    """
    abs_path, rel_path = resolve_inside_root(
        repo_root, record.rel_path, allow_hidden=allow_hidden, protected=protected,
    )
    backup_path = os.path.join(
        os.path.abspath(backup_root), batch_id, *rel_path.split("/")
    )
    return replace(
        record,
        batch_id=batch_id,
        rel_path=rel_path,
        backup_path=backup_path,
        target_path=abs_path,
    )


class BackupManager:
    """Per-batch backup store.

    One instance serves exactly one batch; the batch directory is only
    created once the first file is actually backed up.
    """

    def __init__(self, backup_root: str, batch_id: str | None = None) -> None:
        self.backup_root = os.path.abspath(backup_root)
        self.batch_id = batch_id or new_batch_id(self.backup_root)
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self._snapshots: dict[str, FileSnapshot] = {}
        self._records: list[BackupRecord] = []

    @property
    def batch_dir(self) -> str:
        return os.path.join(self.backup_root, self.batch_id)

    @property
    def manifest_path(self) -> str:
        return self.batch_dir + _MANIFEST_SUFFIX

    @property
    def records(self) -> list[BackupRecord]:
        return list(self._records)

    def snapshot(self, rel_path: str, abs_path: str) -> FileSnapshot:
        """Read *abs_path* from disk; later calls return the first snapshot."""
        existing = self._snapshots.get(rel_path)
        if existing is not None:
            return existing
        try:
            with open(abs_path, "rb") as f:
                content = f.read()
        except OSError as exc:
            raise BackupFailedError(f"could not read {rel_path}: {exc}") from exc
        snap = FileSnapshot(rel_path=rel_path, abs_path=abs_path, content=content)
        self._snapshots[rel_path] = snap
        return snap

    def commit(self, snapshot: FileSnapshot) -> BackupRecord:
        """Persist *snapshot* into the batch directory."""
        dest = os.path.join(self.batch_dir, *snapshot.rel_path.split("/"))
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            atomic_write(dest, snapshot.content)
        except (OSError, WriteFailedError) as exc:
            logger.error("[Edit] Backup of %s failed: %s", snapshot.rel_path, exc)
            raise BackupFailedError(
                f"could not back up {snapshot.rel_path}: {exc}"
            ) from exc

        record = BackupRecord(
            batch_id=self.batch_id,
            timestamp=self.timestamp,
            rel_path=snapshot.rel_path,
            backup_path=dest,
            target_path=snapshot.abs_path,
        )
        self._records.append(record)
        logger.debug("[Edit] Backed up %s -> %s", snapshot.rel_path, dest)
        return record

    def discard(self, record: BackupRecord) -> None:
        """Drop a backup whose file write never happened."""
        if record in self._records:
            self._records.remove(record)
        try:
            os.unlink(record.backup_path)
        except OSError as exc:
            logger.warning(
                "[Edit] Could not remove unused backup %s: %s",
                record.backup_path, exc,
            )

    def write_manifest(self) -> str | None:
        """Write the batch manifest; returns its path, or None if empty."""
        if not self._records:
            return None
        payload = {
            "batch_id": self.batch_id,
            "timestamp": self.timestamp,
            "records": [r.to_dict() for r in self._records],
        }
        try:
            atomic_write(
                self.manifest_path,
                json.dumps(payload, indent=2).encode("utf-8"),
            )
        except WriteFailedError as exc:
            logger.warning("[Edit] Failed to write backup manifest: %s", exc)
            return None
        return self.manifest_path

    @staticmethod
    def load_manifest(backup_root: str, batch_id: str) -> list[BackupRecord]:
        """Read the records of *batch_id*; empty list if missing or invalid."""
        path = os.path.join(backup_root, batch_id + _MANIFEST_SUFFIX)
        if not os.path.isfile(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            return [BackupRecord.from_dict(r) for r in payload["records"]]
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as exc:
            logger.warning("[Edit] Unreadable manifest %s: %s", path, exc)
            return []

    @staticmethod
    def list_batches(backup_root: str) -> list[str]:
        """Batch ids that have a manifest, oldest first."""
        if not os.path.isdir(backup_root):
            return []
        return sorted(
            name[: -len(_MANIFEST_SUFFIX)]
            for name in os.listdir(backup_root)
            if name.endswith(_MANIFEST_SUFFIX)
            and os.path.isdir(os.path.join(backup_root, name[: -len(_MANIFEST_SUFFIX)]))
        )
