"""
Diff builder — line-based unified diffs between two buffer versions.

Diffs are for display and approval only; nothing ever parses the
rendered text back into edits.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field

DEFAULT_CONTEXT = 3

_NO_NEWLINE = "\\ No newline at end of file"


@dataclass(frozen=True)
class DiffLine:
    """One diff line: ``tag`` is ``' '``, ``'-'`` or ``'+'``.

    ``text`` keeps its original line ending (the last line of a buffer
    may have none).
    """
    tag: str
    text: str


@dataclass
class DiffHunk:
    """A contiguous changed region with surrounding context.

    Start numbers follow the unified-diff convention: 1-indexed, or the
    line *before* the hunk when its count is zero.
    """
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: list[DiffLine] = field(default_factory=list)

    @property
    def header(self) -> str:
        return (
            f"@@ -{_format_range(self.old_start, self.old_count)} "
            f"+{_format_range(self.new_start, self.new_count)} @@"
        )


@dataclass
class FileDiff:
    """All hunks for one file."""
    path: str
    hunks: list[DiffHunk] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.hunks

    @property
    def added(self) -> int:
        return sum(1 for h in self.hunks for l in h.lines if l.tag == "+")

    @property
    def removed(self) -> int:
        return sum(1 for h in self.hunks for l in h.lines if l.tag == "-")

    def render(self) -> str:
        """Render as unified diff text; empty string when nothing changed."""
        if self.is_empty:
            return ""
        out = [f"--- a/{self.path}", f"+++ b/{self.path}"]
        for hunk in self.hunks:
            out.append(hunk.header)
            for line in hunk.lines:
                if line.text.endswith("\n"):
                    out.append(line.tag + line.text[:-1].rstrip("\r"))
                else:
                    out.append(line.tag + line.text)
                    out.append(_NO_NEWLINE)
        return "\n".join(out) + "\n"


def _format_range(start: int, count: int) -> str:
    if count == 1:
        return str(start)
    return f"{start},{count}"


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, keeping line endings.

    ``"".join(split_lines(t)) == t`` for every *t*.
    """
    parts = text.split("\n")
    lines = [p + "\n" for p in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def build_diff(
    old_text: str,
    new_text: str,
    path: str,
    context: int = DEFAULT_CONTEXT,
) -> FileDiff:
    """Compute the hunks turning *old_text* into *new_text*."""
    old_lines = split_lines(old_text)
    new_lines = split_lines(new_text)
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    diff = FileDiff(path=path)
    for group in matcher.get_grouped_opcodes(context):
        if all(tag == "equal" for tag, *_ in group):
            continue
        first, last = group[0], group[-1]
        i1, i2 = first[1], last[2]
        j1, j2 = first[3], last[4]
        hunk = DiffHunk(
            old_start=i1 + 1 if i2 > i1 else i1,
            old_count=i2 - i1,
            new_start=j1 + 1 if j2 > j1 else j1,
            new_count=j2 - j1,
        )
        for tag, a1, a2, b1, b2 in group:
            if tag == "equal":
                hunk.lines.extend(DiffLine(" ", l) for l in old_lines[a1:a2])
                continue
            if tag in ("replace", "delete"):
                hunk.lines.extend(DiffLine("-", l) for l in old_lines[a1:a2])
            if tag in ("replace", "insert"):
                hunk.lines.extend(DiffLine("+", l) for l in new_lines[b1:b2])
        diff.hunks.append(hunk)
    return diff
