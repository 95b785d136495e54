"""
Edit models — the edit request schema and the JSON boundary parser.

The JSON keys (``path``, ``op``, ``anchor``, ``snippet``, ``limit``,
``rationale``) are the contract with the upstream response parser and
must not be renamed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from .errors import MalformedBatchError

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = ("path", "op", "anchor", "snippet")


class EditOp(str, Enum):
    """Edit operation kinds, valued by their wire names."""

    REPLACE = "replace"
    INSERT_BEFORE = "insert_before"
    INSERT_AFTER = "insert_after"

    @classmethod
    def parse(cls, value: Any) -> "EditOp":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise MalformedBatchError(
                f"unsupported op: {value!r} "
                f"(expected one of {', '.join(m.value for m in cls)})"
            ) from None


@dataclass(frozen=True)
class EditRequest:
    """A single anchored edit against one file."""

    path: str
    op: EditOp
    anchor: str
    snippet: str
    limit: int = 1
    rationale: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.path, str) or not self.path.strip():
            raise MalformedBatchError("edit path must be a non-empty string")
        object.__setattr__(self, "op", EditOp.parse(self.op))
        if not isinstance(self.anchor, str) or not self.anchor:
            raise MalformedBatchError(
                f"anchor for {self.path} must be a non-empty string"
            )
        if not isinstance(self.snippet, str):
            raise MalformedBatchError(f"snippet for {self.path} must be a string")
        # bool is an int subclass; reject it explicitly
        if (not isinstance(self.limit, int) or isinstance(self.limit, bool)
                or self.limit < 1):
            raise MalformedBatchError(
                f"limit for {self.path} must be a positive integer, "
                f"got {self.limit!r}"
            )
        if self.rationale is None:
            object.__setattr__(self, "rationale", "")
        elif not isinstance(self.rationale, str):
            raise MalformedBatchError(
                f"rationale for {self.path} must be a string"
            )

    @classmethod
    def from_dict(cls, data: Any) -> "EditRequest":
        """Build a request from one JSON edit object; extra keys are ignored."""
        if not isinstance(data, dict):
            raise MalformedBatchError(
                f"edit must be an object, got {type(data).__name__}"
            )
        missing = [k for k in _REQUIRED_KEYS if k not in data]
        if missing:
            raise MalformedBatchError(
                f"edit is missing required field(s): {', '.join(missing)}"
            )
        return cls(
            path=data["path"],
            op=data["op"],
            anchor=data["anchor"],
            snippet=data["snippet"],
            limit=data.get("limit", 1),
            rationale=data.get("rationale") or "",
        )

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "op": self.op.value,
            "anchor": self.anchor,
            "snippet": self.snippet,
            "limit": self.limit,
            "rationale": self.rationale,
        }


@dataclass
class EditBatch:
    """Ordered edit requests from one generation-service response."""

    edits: list[EditRequest] = field(default_factory=list)

    def __iter__(self) -> Iterator[EditRequest]:
        return iter(self.edits)

    def __len__(self) -> int:
        return len(self.edits)

    def by_path(self) -> dict[str, list[EditRequest]]:
        """Group requests per path, keeping first-appearance order."""
        groups: dict[str, list[EditRequest]] = {}
        for edit in self.edits:
            groups.setdefault(edit.path, []).append(edit)
        return groups


def _load_json(data: Any) -> Any:
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8")
    if isinstance(data, str):
        try:
            return json.loads(data)
        except json.JSONDecodeError as exc:
            raise MalformedBatchError(f"invalid JSON: {exc}") from exc
    return data


def parse_batch(data: Any) -> EditBatch:
    """Parse an edit batch from JSON text, ``{"edits": [...]}`` or a list.

    Any schema violation rejects the whole batch with
    :class:`MalformedBatchError` before a single file is looked at.
    """
    payload = _load_json(data)
    if isinstance(payload, dict):
        if "edits" not in payload:
            raise MalformedBatchError("batch object has no 'edits' list")
        payload = payload["edits"]
    if not isinstance(payload, list):
        raise MalformedBatchError(
            f"edits must be a list, got {type(payload).__name__}"
        )

    edits: list[EditRequest] = []
    for idx, item in enumerate(payload):
        try:
            edits.append(EditRequest.from_dict(item))
        except MalformedBatchError as exc:
            raise MalformedBatchError(f"edit #{idx}: {exc}") from exc

    logger.debug("[Edit] Parsed batch with %d edit(s)", len(edits))
    return EditBatch(edits)


def parse_tool_calls(data: Any) -> EditBatch:
    """Parse an OpenAI-style tool-call list into an edit batch.

    Only ``edit`` calls become requests (``file_path``/``old_string``/
    ``new_string`` map to a single ``replace``); other tools are ignored.
    """
    calls = _load_json(data)
    if not isinstance(calls, list):
        raise MalformedBatchError("tool calls must be a list")

    edits: list[EditRequest] = []
    for idx, call in enumerate(calls):
        function = call.get("function") if isinstance(call, dict) else None
        if not isinstance(function, dict) or function.get("name") != "edit":
            continue
        args = function.get("arguments", "{}")
        try:
            args = json.loads(args) if isinstance(args, str) else args
        except json.JSONDecodeError as exc:
            raise MalformedBatchError(
                f"tool call #{idx}: invalid arguments: {exc}"
            ) from exc
        if not isinstance(args, dict):
            raise MalformedBatchError(f"tool call #{idx}: arguments must be an object")
        try:
            edits.append(EditRequest.from_dict({
                "path": args.get("file_path"),
                "op": EditOp.REPLACE.value,
                "anchor": args.get("old_string"),
                "snippet": args.get("new_string"),
            }))
        except MalformedBatchError as exc:
            raise MalformedBatchError(f"tool call #{idx}: {exc}") from exc

    return EditBatch(edits)
