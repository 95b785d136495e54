"""
Diff display — colour rendered diffs and ask for per-file approval.

Includes a Textual-based interactive diff viewer that pauses the batch so the
user can review one file's changes and approve, reject, or cancel the rest
of the batch before anything is written to disk.
"""

from __future__ import annotations

import logging

from .editing.diff_builder import FileDiff
from .editing.errors import BatchCancelledError
from .editing.models import EditRequest

logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"
CANCEL = "cancel"


def _line_kind(line: str) -> str:
    """Classify one rendered diff line for colouring."""
    if line.startswith(("+++", "---")):
        return "file"
    if line.startswith("@@"):
        return "hunk"
    if line.startswith("+"):
        return "add"
    if line.startswith("-"):
        return "remove"
    if line.startswith("\\"):
        return "marker"
    return "context"


_ANSI = {
    "file": "\033[1m",
    "hunk": "\033[36m",
    "add": "\033[32m",
    "remove": "\033[31m",
    "marker": "\033[2m",
}


def format_colored_diff(diff_text: str) -> str:
    """Add ANSI colors to a rendered ``FileDiff``.

    File headers bold, hunk headers cyan, additions green, removals red,
    and the no-newline marker dimmed.
    """
    colored: list[str] = []
    for line in diff_text.splitlines():
        code = _ANSI.get(_line_kind(line))
        colored.append(f"{code}{line}\033[0m" if code else line)
    return "\n".join(colored)


def _rationale(requests: list[EditRequest]) -> str:
    return "\n".join(r.rationale for r in requests if r.rationale)


def make_approver(auto: bool = False):
    """Return an approver callable for ``BatchExecutor.apply``.

    In *auto* mode every diff is logged and approved. Otherwise the diff is
    shown in a Textual viewer, falling back to a console prompt when the
    viewer cannot run. Choosing *cancel* raises ``BatchCancelledError``.
    """

    def approve(diff: FileDiff, requests: list[EditRequest]) -> bool:
        diff_text = diff.render()
        if auto:
            logger.info("[auto] Diff for %s:\n%s", diff.path, diff_text)
            return True

        try:
            choice = _textual_diff_approval(diff, diff_text, _rationale(requests))
        except Exception as e:
            logger.warning("Textual diff viewer failed: %s", e)
            choice = _console_diff_approval(diff, diff_text, _rationale(requests))

        if choice == CANCEL:
            raise BatchCancelledError(f"cancelled at {diff.path}")
        return choice == APPROVE

    return approve


# ══════════════════════════════════════════════════════════════════
#  Interactive Diff Approval — Textual TUI
# ══════════════════════════════════════════════════════════════════

_RICH = {
    "file": "bold white",
    "hunk": "cyan",
    "add": "green",
    "remove": "red",
    "marker": "dim italic",
}


def _format_rich_diff(diff_text: str) -> str:
    """Convert a rendered ``FileDiff`` to Rich markup for Textual display."""
    markup_lines: list[str] = []
    for line in diff_text.splitlines():
        # Diff content may itself contain Rich markup
        escaped = line.replace("[", "\\[")
        style = _RICH.get(_line_kind(line))
        markup_lines.append(f"[{style}]{escaped}[/{style}]" if style else escaped)
    return "\n".join(markup_lines)


def _textual_diff_approval(diff: FileDiff, diff_text: str, rationale: str) -> str:
    """Launch a Textual app to display one file's diff and get a decision."""
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.containers import Horizontal, VerticalScroll
    from textual.widgets import Button, Footer, Static

    class DiffApprovalApp(App):
        """Interactive single-file diff viewer."""

        CSS = """
        #file-header {
            dock: top;
            height: 1;
            background: $primary-darken-2;
            color: $text;
            text-style: bold;
            padding: 0 1;
        }
        #diff-scroll {
            height: 1fr;
            border: tall $panel;
            padding: 0 1;
        }
        #rationale {
            color: $warning;
            text-style: italic;
            padding-bottom: 1;
        }
        #decision-row {
            dock: bottom;
            height: 3;
            align: center middle;
        }
        #decision-row Button {
            margin: 0 1;
        }
        """

        BINDINGS = [
            Binding("a", "decide('approve')", "Approve"),
            Binding("r", "decide('reject')", "Reject"),
            Binding("escape", "decide('reject')", "Reject"),
            Binding("c", "decide('cancel')", "Cancel batch"),
        ]

        def __init__(self) -> None:
            super().__init__()
            self.choice = REJECT

        def compose(self) -> ComposeResult:
            yield Static(
                f"{diff.path}  +{diff.added} -{diff.removed}",
                id="file-header",
            )
            with VerticalScroll(id="diff-scroll"):
                if rationale:
                    yield Static(rationale.replace("[", "\\["), id="rationale")
                yield Static(_format_rich_diff(diff_text))
            with Horizontal(id="decision-row"):
                yield Button("✔ Approve", id=APPROVE, variant="success")
                yield Button("✕ Reject", id=REJECT, variant="error")
                yield Button("■ Cancel batch", id=CANCEL)
            yield Footer()

        def on_button_pressed(self, event: Button.Pressed) -> None:
            self.action_decide(event.button.id or REJECT)

        def action_decide(self, choice: str) -> None:
            self.choice = choice
            self.exit()

    app = DiffApprovalApp()
    app.run()
    return app.choice


def _console_diff_approval(diff: FileDiff, diff_text: str, rationale: str) -> str:
    """Fallback console-based diff approval when Textual cannot run."""
    print(f"\n{'─' * 60}")
    print(format_colored_diff(diff_text))
    if rationale:
        print(f"\n  Reason: {rationale}")
    print(f"\n  {diff.path}: [A]pprove  |  [R]eject  |  [C]ancel batch")

    while True:
        try:
            choice = input("  Your choice: ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            return REJECT
        if choice in ("a", "approve"):
            return APPROVE
        elif choice in ("r", "reject"):
            return REJECT
        elif choice in ("c", "cancel"):
            return CANCEL
        else:
            print("  Invalid choice. Use A, R or C.")
