"""
Atomic writer — commits buffers via temp file + rename, and guards the
preconditions every write must pass (path inside root, size ceiling).
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
from typing import Iterable, Iterator

from .errors import (
    FileTooLargeError,
    PathBlockedError,
    PathOutOfRootError,
    WriteFailedError,
)

logger = logging.getLogger(__name__)

MAX_FILE_BYTES = 256 * 1024

_TMP_PREFIX = ".smol_tmp_"


def _is_within(parent: str, child: str) -> bool:
    try:
        return os.path.commonpath([parent, child]) == parent
    except ValueError:
        # Different drives on Windows
        return False


def resolve_inside_root(
    repo_root: str,
    path: str,
    allow_hidden: bool = False,
    protected: Iterable[str] = (),
) -> tuple[str, str]:
    """Resolve *path* against *repo_root* and check it stays inside.

    Symlinks are resolved before the check, so a link pointing out of
    the repository is rejected like a ``..`` traversal.

    Returns
    -------
    tuple[str, str]
        ``(absolute_path, repo-relative POSIX path)``.
    """
    root = os.path.realpath(repo_root)
    candidate = path if os.path.isabs(path) else os.path.join(root, path)
    try:
        abs_path = os.path.realpath(candidate)
    except ValueError as exc:
        # Embedded NUL bytes never name a file
        raise PathOutOfRootError(f"{path!r} is not a valid path: {exc}") from exc

    if abs_path == root or not _is_within(root, abs_path):
        raise PathOutOfRootError(f"{path} resolves outside {root}")

    for name in protected:
        guarded = os.path.realpath(os.path.join(root, name))
        if _is_within(guarded, abs_path):
            raise PathOutOfRootError(f"{path} is inside the reserved {name}/")

    rel = os.path.relpath(abs_path, root)
    parts = rel.split(os.sep)
    if not allow_hidden and parts[0].startswith("."):
        raise PathBlockedError(f"{path} is under a hidden top-level entry")

    return abs_path, "/".join(parts)


def check_size(data: bytes, max_bytes: int = MAX_FILE_BYTES) -> None:
    """Raise ``FileTooLargeError`` if *data* exceeds *max_bytes*."""
    if len(data) > max_bytes:
        raise FileTooLargeError(len(data), max_bytes)


@contextlib.contextmanager
def _temp_sibling(path: str) -> Iterator[str]:
    """Yield a temp file path in *path*'s directory; remove it on exit.

    After a successful rename the temp path no longer exists, so the
    cleanup only ever fires on a failure path.
    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=_TMP_PREFIX, suffix=".tmp")
    os.close(fd)
    try:
        yield tmp_path
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_path)


def atomic_write(path: str, data: bytes) -> None:
    """Replace *path* with *data* so readers see old or new, never a mix.

    Raises
    ------
    WriteFailedError
        On any OS-level failure; *path* is left as it was.
    """
    try:
        with _temp_sibling(path) as tmp_path:
            with open(tmp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            if os.path.exists(path):
                shutil.copymode(path, tmp_path)
            os.replace(tmp_path, path)
    except OSError as exc:
        logger.error("[Edit] Atomic write failed for %s: %s", path, exc)
        raise WriteFailedError(f"could not write {path}: {exc}") from exc
