"""
CLI entry point — apply edit batches, inspect and restore backups.
"""

import argparse
import os
import sys

from .cli_display import format_outcome, setup_logger
from .config import Config
from .diff_display import make_approver
from .editing.backup import BackupManager, rebase_record
from .editing.errors import MalformedBatchError, PathBlockedError, PathOutOfRootError
from .editing.executor import BatchExecutor
from .editing.metrics import read_edit_stats
from .editing.models import parse_batch
from .editing.undo import UndoStack


def _cmd_apply(args, cfg: Config, root: str) -> int:
    try:
        with open(args.batch, "r", encoding="utf-8") as f:
            batch = parse_batch(f.read())
    except OSError as e:
        print(f"\n  [ERROR] Cannot read {args.batch}: {e}\n")
        return 2
    except MalformedBatchError as e:
        print(f"\n  [ERROR] Malformed batch: {e}\n")
        return 2

    if not len(batch):
        print("No edits proposed.")
        return 0

    executor = BatchExecutor(root, UndoStack(cfg.UNDO_DEPTH), cfg)
    report = executor.apply(batch, approve=make_approver(auto=args.auto))

    print(f"\n  Batch {report.batch_id}")
    for outcome in report.outcomes:
        print(format_outcome(outcome))
    print(f"\n  {report.summary()}")
    if report.backup_dir:
        print(f"  Backup: {report.backup_dir}")
    return 1 if report.failed else 0


def _cmd_backups(cfg: Config, root: str) -> int:
    backup_root = cfg.backup_root(root)
    batches = BackupManager.list_batches(backup_root)
    if not batches:
        print("No backups.")
        return 0
    for batch_id in batches:
        records = BackupManager.load_manifest(backup_root, batch_id)
        print(f"  {batch_id}  {len(records)} file(s)")
    return 0


def _cmd_restore(args, cfg: Config, root: str) -> int:
    batch_id = args.batch_id
    if os.path.basename(batch_id) != batch_id or batch_id.startswith("."):
        print(f"Invalid batch id {batch_id!r}.")
        return 1

    backup_root = cfg.backup_root(root)
    records = BackupManager.load_manifest(backup_root, batch_id)
    if not records:
        print(f"No backup found for batch {batch_id}.")
        return 1

    try:
        records = [
            rebase_record(
                record, backup_root, batch_id, root,
                allow_hidden=cfg.ALLOW_HIDDEN_PATHS,
                protected=[cfg.DATA_DIR],
            )
            for record in records
        ]
    except (PathOutOfRootError, PathBlockedError) as e:
        print(f"Restore refused [{e.reason}]: {e}")
        return 1

    # A one-entry stack restores the whole batch or nothing
    stack = UndoStack()
    stack.record(batch_id, records)
    result = stack.undo_last()
    if not result.success:
        print(f"Restore failed [{result.reason}]: {result.message}")
        return 1
    for path in result.restored:
        print(f"  Reverted {path}")
    return 0


def _cmd_stats(cfg: Config, root: str) -> int:
    stats = read_edit_stats(cfg.metrics_path(root))
    if not stats["total"]:
        print("No edit metrics recorded.")
        return 0
    print(f"  Edits:    {stats['total']}")
    print(f"  Applied:  {stats['applied_rate']:.1f}%")
    print(f"  Skipped:  {stats['skipped_rate']:.1f}%")
    print(f"  Failed:   {stats['failed_rate']:.1f}%")
    print(f"  Avg lines changed: {stats['avg_lines_changed']:.1f}")
    for reason, count in stats["reasons"].items():
        print(f"    {reason}: {count}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="smol-edit",
        description="Apply anchored edit batches with diffs, backups and undo",
    )
    parser.add_argument("--config", default=None,
                        help="Path to .smol.yaml config file")
    parser.add_argument("--root", default=None,
                        help="Repository root (default: from config)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_apply = sub.add_parser("apply", help="Apply an edit batch JSON file")
    p_apply.add_argument("batch", help="Path to the batch JSON")
    p_apply.add_argument("--auto", action="store_true",
                         help="Approve every file without prompting")

    sub.add_parser("backups", help="List backup batches")

    p_restore = sub.add_parser("restore", help="Restore every file of a batch")
    p_restore.add_argument("batch_id")

    sub.add_parser("stats", help="Show edit metrics")

    args = parser.parse_args(argv)

    cfg = Config.load(args.config)
    root = os.path.abspath(args.root or cfg.REPO_ROOT)
    setup_logger(cfg.log_dir(root))

    if args.command == "apply":
        return _cmd_apply(args, cfg, root)
    if args.command == "backups":
        return _cmd_backups(cfg, root)
    if args.command == "restore":
        return _cmd_restore(args, cfg, root)
    return _cmd_stats(cfg, root)


if __name__ == "__main__":
    sys.exit(main())
