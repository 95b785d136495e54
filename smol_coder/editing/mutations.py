"""
Mutation operators — turn resolved anchor ranges into a new buffer.

Buffers are never modified in place: every step returns a new value, and
requests against one file are folded in batch order so later requests
see the effects of earlier ones.
"""

from __future__ import annotations

import logging
from typing import AnyStr, Iterable

from .anchor_resolver import Range, resolve_anchor
from .models import EditOp, EditRequest

logger = logging.getLogger(__name__)


def apply_mutation(
    buffer: AnyStr,
    ranges: list[Range],
    op: EditOp,
    snippet: AnyStr,
) -> AnyStr:
    """Apply *op* with *snippet* at every range of *buffer*.

    Ranges are processed from the highest offset down, so a change at a
    later offset never shifts an earlier range that is still pending.
    """
    result = buffer
    for start, end in sorted(ranges, reverse=True):
        if op is EditOp.REPLACE:
            result = result[:start] + snippet + result[end:]
        elif op is EditOp.INSERT_BEFORE:
            result = result[:start] + snippet + result[start:]
        elif op is EditOp.INSERT_AFTER:
            result = result[:end] + snippet + result[end:]
        else:
            raise ValueError(f"unhandled edit op: {op!r}")
    return result


def _encode_like(buffer: AnyStr, text: str) -> AnyStr:
    if isinstance(buffer, bytes):
        return text.encode("utf-8")
    return text


def apply_request(buffer: AnyStr, request: EditRequest) -> AnyStr:
    """Resolve *request*'s anchor in *buffer* and apply it.

    Propagates ``AnchorNotFoundError`` / ``AnchorAmbiguousError``.
    """
    anchor = _encode_like(buffer, request.anchor)
    snippet = _encode_like(buffer, request.snippet)
    ranges = resolve_anchor(buffer, anchor, request.limit)
    logger.debug(
        "[Edit] %s on %s: %d occurrence(s)",
        request.op.value, request.path, len(ranges),
    )
    return apply_mutation(buffer, ranges, request.op, snippet)


def apply_requests(buffer: AnyStr, requests: Iterable[EditRequest]) -> AnyStr:
    """Fold *requests* over *buffer* in order; each sees the previous output."""
    for request in requests:
        buffer = apply_request(buffer, request)
    return buffer
