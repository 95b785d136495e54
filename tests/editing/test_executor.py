"""Tests for the BatchExecutor end to end on a temp repository."""

import json
import os

import pytest

from smol_coder.config import Config
from smol_coder.editing import executor as executor_module
from smol_coder.editing.errors import BatchCancelledError, MalformedBatchError, WriteFailedError
from smol_coder.editing.executor import (
    APPLIED, FAILED, SKIPPED, BatchExecutor, FileState,
)
from smol_coder.editing.models import parse_batch
from smol_coder.editing.undo import UndoStack


BUTTON_HTML = b"""\
<html>
  <body>
    <h1>Title</h1>
    <p>Intro text.</p>
    <button class="btn">Save</button>
    <p>Footer text.</p>
  </body>
</html>
"""


@pytest.fixture
def repo(tmp_path):
    root = tmp_path / "repo"
    (root / "web").mkdir(parents=True)
    (root / "web" / "index.html").write_bytes(BUTTON_HTML)
    (root / "app.py").write_bytes(b"def main():\n    return 0\n")
    return root


@pytest.fixture
def undo():
    return UndoStack()


@pytest.fixture
def executor(repo, undo):
    return BatchExecutor(str(repo), undo, Config())


def _backup_root(repo):
    return repo / ".smol" / "backups"


def _edit(path, anchor, snippet, op="replace", limit=1):
    return {"path": path, "op": op, "anchor": anchor, "snippet": snippet, "limit": limit}


class TestButtonScenario:
    def test_replace_button_class(self, repo, executor):
        batch = parse_batch({"edits": [_edit(
            "web/index.html",
            '<button class="btn">',
            '<button class="btn rounded bg-blue-600">',
        )]})
        report = executor.apply(batch)

        assert len(report.outcomes) == 1
        outcome = report.outcomes[0]
        assert outcome.status == APPLIED
        assert outcome.state is FileState.COMMITTED

        assert len(outcome.diff.hunks) == 1
        changed = [l for l in outcome.diff.hunks[0].lines if l.tag != " "]
        assert [l.tag for l in changed] == ["-", "+"]
        assert "bg-blue-600" in changed[1].text

        on_disk = (repo / "web" / "index.html").read_bytes()
        assert on_disk == BUTTON_HTML.replace(
            b'<button class="btn">', b'<button class="btn rounded bg-blue-600">')

        backup = _backup_root(repo) / report.batch_id / "web" / "index.html"
        assert backup.read_bytes() == BUTTON_HTML
        assert os.path.realpath(report.backup_dir) == \
            os.path.realpath(_backup_root(repo) / report.batch_id)

    def test_manifest_written(self, repo, executor):
        report = executor.apply(parse_batch([_edit("app.py", "return 0", "return 1")]))
        manifest = _backup_root(repo) / f"{report.batch_id}.json"
        payload = json.loads(manifest.read_text())
        assert [r["rel_path"] for r in payload["records"]] == ["app.py"]


class TestSkips:
    def test_ambiguous_anchor(self, repo, executor, undo):
        (repo / "three.txt").write_bytes(b"x\nx\nx\n")
        report = executor.apply(parse_batch([_edit("three.txt", "x", "y")]))

        outcome = report.outcomes[0]
        assert outcome.status == SKIPPED
        assert outcome.reason == "AnchorAmbiguous"
        assert "3" in outcome.message and "1" in outcome.message
        assert (repo / "three.txt").read_bytes() == b"x\nx\nx\n"
        assert not _backup_root(repo).exists()
        assert len(undo) == 0

    def test_anchor_not_found(self, repo, executor):
        report = executor.apply(parse_batch([_edit("app.py", "def nope", "x")]))
        assert report.outcomes[0].reason == "AnchorNotFound"

    def test_missing_file(self, repo, executor):
        report = executor.apply(parse_batch([_edit("ghost.py", "a", "b")]))
        assert report.outcomes[0].status == SKIPPED
        assert report.outcomes[0].reason == "AnchorNotFound"
        assert not (repo / "ghost.py").exists()

    def test_path_traversal(self, repo, tmp_path, executor):
        before = sorted(p.name for p in tmp_path.iterdir())
        report = executor.apply(parse_batch([_edit("../outside.txt", "a", "b")]))

        outcome = report.outcomes[0]
        assert outcome.status == SKIPPED
        assert outcome.reason == "PathOutOfRoot"
        assert not (tmp_path / "outside.txt").exists()
        assert sorted(p.name for p in tmp_path.iterdir()) == before
        assert not (repo / ".smol").exists()

    def test_data_dir_is_not_editable(self, repo):
        cfg = Config({"allow_hidden_paths": True})
        executor = BatchExecutor(str(repo), UndoStack(), cfg)
        report = executor.apply(parse_batch([_edit(".smol/backups/x", "a", "b")]))
        assert report.outcomes[0].reason == "PathOutOfRoot"

    def test_hidden_path_blocked(self, repo, executor):
        report = executor.apply(parse_batch([_edit(".env", "A=1", "A=2")]))
        assert report.outcomes[0].reason == "PathBlocked"

    def test_size_ceiling(self, repo, executor):
        (repo / "big.txt").write_bytes(b"ANCHOR\n" + b"a" * (200 * 1024))
        report = executor.apply(parse_batch([
            _edit("big.txt", "ANCHOR\n", "ANCHOR\n" + "b" * (100 * 1024)),
        ]))
        outcome = report.outcomes[0]
        assert outcome.status == SKIPPED
        assert outcome.reason == "FileTooLarge"
        assert (repo / "big.txt").read_bytes().startswith(b"ANCHOR\naaa")
        assert not _backup_root(repo).exists()

    def test_no_change(self, repo, executor):
        report = executor.apply(parse_batch([_edit("app.py", "return 0", "return 0")]))
        assert report.outcomes[0].reason == "NoChange"
        assert not _backup_root(repo).exists()

    def test_declined(self, repo, executor, undo):
        seen = []

        def approve(diff, requests):
            seen.append((diff.path, len(requests)))
            return False

        report = executor.apply(
            parse_batch([_edit("app.py", "return 0", "return 1")]), approve=approve)
        assert seen == [("app.py", 1)]
        assert report.outcomes[0].reason == "UserDeclined"
        assert (repo / "app.py").read_bytes() == b"def main():\n    return 0\n"
        assert len(undo) == 0


class TestIndependence:
    def test_one_skip_does_not_block_others(self, repo, executor):
        report = executor.apply(parse_batch([
            _edit("../escape.txt", "a", "b"),
            _edit("app.py", "return 0", "return 42"),
            _edit("web/index.html", "<missing>", "x"),
        ]))
        assert [o.status for o in report.outcomes] == [SKIPPED, APPLIED, SKIPPED]
        assert report.summary() == "1 applied, 2 skipped, 0 failed"
        assert b"return 42" in (repo / "app.py").read_bytes()

    def test_nul_byte_path_is_skipped_not_fatal(self, repo, executor):
        report = executor.apply(parse_batch([
            _edit("bad\x00name.py", "a", "b"),
            _edit("app.py", "return 0", "return 7"),
        ]))
        assert [o.status for o in report.outcomes] == [SKIPPED, APPLIED]
        assert report.outcomes[0].reason == "PathOutOfRoot"
        assert (repo / "app.py").read_bytes() == b"def main():\n    return 7\n"

    def test_same_file_spelled_differently_is_one_file(self, repo, executor):
        report = executor.apply(parse_batch([
            _edit("app.py", "def main", "def run"),
            _edit("./app.py", "def run", "def start"),
        ]))
        assert len(report.outcomes) == 1
        assert report.outcomes[0].status == APPLIED
        assert (repo / "app.py").read_bytes().startswith(b"def start():")

    def test_write_failure_is_file_scoped(self, repo, executor, undo, monkeypatch):
        real_write = executor_module.atomic_write

        def flaky_write(path, data):
            if path.endswith("app.py"):
                raise WriteFailedError("read-only file system")
            real_write(path, data)

        monkeypatch.setattr(executor_module, "atomic_write", flaky_write)
        report = executor.apply(parse_batch([
            _edit("app.py", "return 0", "return 1"),
            _edit("web/index.html", "Title", "Heading"),
        ]))

        assert [o.status for o in report.outcomes] == [FAILED, APPLIED]
        assert report.outcomes[0].reason == "WriteFailed"
        assert (repo / "app.py").read_bytes() == b"def main():\n    return 0\n"
        # only the committed file is backed up and undoable
        assert [r.rel_path for r in undo.peek().records] == ["web/index.html"]
        assert not (_backup_root(repo) / report.batch_id / "app.py").exists()

    def test_backup_failure_leaves_file_untouched(self, repo, tmp_path, undo):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        cfg = Config({"data_dir": str(blocker)})
        executor = BatchExecutor(str(repo), undo, cfg)

        report = executor.apply(parse_batch([_edit("app.py", "return 0", "return 1")]))
        assert report.outcomes[0].status == FAILED
        assert report.outcomes[0].reason == "BackupFailed"
        assert (repo / "app.py").read_bytes() == b"def main():\n    return 0\n"
        assert len(undo) == 0


class TestChaining:
    def test_second_anchor_is_first_snippet(self, repo, executor):
        report = executor.apply(parse_batch([
            _edit("app.py", "    return 0\n", "    value = compute()\n    return 0\n"),
            _edit("app.py", "    value = compute()\n", "    log('start')\n",
                  op="insert_before"),
        ]))
        assert report.outcomes[0].status == APPLIED
        assert (repo / "app.py").read_bytes() == (
            b"def main():\n    log('start')\n    value = compute()\n    return 0\n"
        )

    def test_any_failed_request_skips_the_whole_file(self, repo, executor):
        report = executor.apply(parse_batch([
            _edit("app.py", "return 0", "return 1"),
            _edit("app.py", "not there", "x"),
        ]))
        assert report.outcomes[0].reason == "AnchorNotFound"
        assert (repo / "app.py").read_bytes() == b"def main():\n    return 0\n"


class TestUndoIntegration:
    def test_undo_restores_byte_identical(self, repo, executor, undo):
        originals = {
            "app.py": (repo / "app.py").read_bytes(),
            "web/index.html": (repo / "web" / "index.html").read_bytes(),
        }
        executor.apply(parse_batch([
            _edit("app.py", "return 0", "return 1"),
            _edit("web/index.html", "<p>", "<p class='x'>", limit=2),
        ]))
        assert (repo / "app.py").read_bytes() != originals["app.py"]

        result = undo.undo_last()
        assert result.success
        for rel, content in originals.items():
            assert (repo / rel).read_bytes() == content

    def test_crlf_and_binary_safe(self, repo, executor, undo):
        raw = b"a\r\nb\r\n\xff\xfe tail"
        (repo / "mixed.txt").write_bytes(raw)
        report = executor.apply(parse_batch([_edit("mixed.txt", "b\r\n", "B\r\n")]))
        assert report.outcomes[0].status == APPLIED
        assert (repo / "mixed.txt").read_bytes() == b"a\r\nB\r\n\xff\xfe tail"
        undo.undo_last()
        assert (repo / "mixed.txt").read_bytes() == raw


class TestCancellation:
    def test_cancel_stops_further_files(self, repo, executor, undo):
        calls = []

        def approve(diff, requests):
            calls.append(diff.path)
            if len(calls) == 2:
                raise BatchCancelledError("stop")
            return True

        (repo / "third.txt").write_bytes(b"three\n")
        report = executor.apply(parse_batch([
            _edit("app.py", "return 0", "return 1"),
            _edit("web/index.html", "Title", "Heading"),
            _edit("third.txt", "three", "3"),
        ]), approve=approve)

        assert report.cancelled is True
        assert calls == ["app.py", "web/index.html"]
        assert [o.status for o in report.outcomes] == [APPLIED, SKIPPED]
        assert (repo / "third.txt").read_bytes() == b"three\n"
        # committed files stay committed and remain undoable
        assert b"return 1" in (repo / "app.py").read_bytes()
        assert len(undo) == 1


class TestMisc:
    def test_requires_edit_batch(self, executor):
        with pytest.raises(MalformedBatchError):
            executor.apply([{"path": "app.py"}])

    def test_empty_batch(self, repo, executor):
        report = executor.apply(parse_batch([]))
        assert report.outcomes == []
        assert not (repo / ".smol").exists()

    def test_metrics_recorded_when_enabled(self, repo, undo):
        executor = BatchExecutor(str(repo), undo, Config({"record_metrics": True}))
        executor.apply(parse_batch([
            _edit("app.py", "return 0", "return 1"),
            _edit("app.py", "never", "x"),
            _edit("web/index.html", "Title", "Heading"),
        ]))
        lines = (repo / ".smol" / "edit_metrics.jsonl").read_text().splitlines()
        entries = [json.loads(l) for l in lines]
        assert [(e["path"], e["status"]) for e in entries] == [
            ("app.py", SKIPPED), ("web/index.html", APPLIED),
        ]

    def test_diff_replays_to_committed_bytes(self, repo, executor):
        report = executor.apply(parse_batch([
            _edit("web/index.html", "<p>", "<p class='lead'>", limit=2),
            _edit("web/index.html", "  </body>\n", "  <footer/>\n  </body>\n"),
        ]))
        outcome = report.outcomes[0]
        old_lines = BUTTON_HTML.decode().splitlines(keepends=True)
        rebuilt, cursor = [], 0
        for hunk in outcome.diff.hunks:
            start = hunk.old_start - 1
            rebuilt.extend(old_lines[cursor:start])
            cursor = start
            for line in hunk.lines:
                if line.tag != "+":
                    cursor += 1
                if line.tag != "-":
                    rebuilt.append(line.text)
        rebuilt.extend(old_lines[cursor:])
        assert "".join(rebuilt).encode() == (repo / "web" / "index.html").read_bytes()
        assert os.path.getsize(repo / "web" / "index.html") == len(outcome.after)
