"""
Anchor resolver — finds verbatim anchor occurrences inside a buffer.
"""

from __future__ import annotations

from typing import AnyStr

from .errors import AnchorAmbiguousError, AnchorNotFoundError, MalformedBatchError

Range = tuple[int, int]


def find_occurrences(buffer: AnyStr, anchor: AnyStr) -> list[Range]:
    """Return every non-overlapping ``(start, end)`` range of *anchor*.

    Exact substring search, scanned left to right; offsets are byte
    offsets for ``bytes`` buffers and character offsets for ``str``.
    """
    if not anchor:
        raise MalformedBatchError("anchor must not be empty")

    ranges: list[Range] = []
    width = len(anchor)
    pos = buffer.find(anchor)
    while pos != -1:
        ranges.append((pos, pos + width))
        pos = buffer.find(anchor, pos + width)
    return ranges


def count_occurrences(buffer: AnyStr, anchor: AnyStr) -> int:
    return len(find_occurrences(buffer, anchor))


def resolve_anchor(buffer: AnyStr, anchor: AnyStr, limit: int = 1) -> list[Range]:
    """Resolve *anchor* in *buffer* against the request's *limit*.

    Raises
    ------
    AnchorNotFoundError
        The anchor does not occur at all.
    AnchorAmbiguousError
        The anchor occurs more than *limit* times.
    """
    if limit < 1:
        raise MalformedBatchError(f"limit must be positive, got {limit}")

    ranges = find_occurrences(buffer, anchor)
    if not ranges:
        raise AnchorNotFoundError("anchor not found")
    if len(ranges) > limit:
        raise AnchorAmbiguousError(len(ranges), limit)
    return ranges
