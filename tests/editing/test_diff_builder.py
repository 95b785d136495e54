"""Tests for the unified diff builder."""

from smol_coder.editing.diff_builder import build_diff, split_lines


def _replay(old_text: str, diff) -> str:
    """Apply a FileDiff's hunks to *old_text* and return the result."""
    old_lines = split_lines(old_text)
    out: list[str] = []
    cursor = 0
    for hunk in diff.hunks:
        start = hunk.old_start - 1 if hunk.old_count else hunk.old_start
        out.extend(old_lines[cursor:start])
        cursor = start
        for line in hunk.lines:
            if line.tag == " ":
                assert old_lines[cursor] == line.text
                out.append(line.text)
                cursor += 1
            elif line.tag == "-":
                assert old_lines[cursor] == line.text
                cursor += 1
            else:
                out.append(line.text)
    out.extend(old_lines[cursor:])
    return "".join(out)


OLD = "".join(f"line {i}\n" for i in range(1, 21))


class TestSplitLines:
    def test_round_trip(self):
        for text in ["", "a", "a\n", "a\nb", "a\r\nb\r\n", "\n\n"]:
            assert "".join(split_lines(text)) == text

    def test_only_newline_splits(self):
        assert split_lines("a\x0cb\n") == ["a\x0cb\n"]


class TestBuildDiff:
    def test_identical_is_empty(self):
        diff = build_diff(OLD, OLD, "f.txt")
        assert diff.is_empty
        assert diff.render() == ""

    def test_single_line_change(self):
        new = OLD.replace("line 10\n", "line ten\n")
        diff = build_diff(OLD, new, "f.txt")
        assert len(diff.hunks) == 1
        hunk = diff.hunks[0]
        assert (hunk.old_start, hunk.old_count) == (7, 7)
        assert (hunk.new_start, hunk.new_count) == (7, 7)
        assert [l.tag for l in hunk.lines] == [" ", " ", " ", "-", "+", " ", " ", " "]
        assert diff.added == 1 and diff.removed == 1

    def test_distant_changes_make_separate_hunks(self):
        new = OLD.replace("line 2\n", "two\n").replace("line 18\n", "eighteen\n")
        diff = build_diff(OLD, new, "f.txt")
        assert len(diff.hunks) == 2

    def test_close_changes_merge(self):
        new = OLD.replace("line 5\n", "five\n").replace("line 9\n", "nine\n")
        diff = build_diff(OLD, new, "f.txt")
        assert len(diff.hunks) == 1

    def test_context_window_is_configurable(self):
        new = OLD.replace("line 10\n", "ten\n")
        diff = build_diff(OLD, new, "f.txt", context=1)
        assert len(diff.hunks[0].lines) == 4

    def test_render_format(self):
        old = "a\nb\nc\n"
        new = "a\nB\nc\n"
        assert build_diff(old, new, "src/x.py").render() == (
            "--- a/src/x.py\n"
            "+++ b/src/x.py\n"
            "@@ -1,3 +1,3 @@\n"
            " a\n"
            "-b\n"
            "+B\n"
            " c\n"
        )

    def test_pure_insertion_into_empty(self):
        diff = build_diff("", "new\n", "n.txt")
        assert diff.hunks[0].header == "@@ -0,0 +1 @@"

    def test_missing_trailing_newline_marker(self):
        text = build_diff("a\nb", "a\nc", "f").render()
        assert "-b\n\\ No newline at end of file\n+c\n\\ No newline at end of file\n" in text

    def test_deterministic(self):
        new = OLD.replace("line 3\n", "").replace("line 15\n", "x\ny\n")
        assert build_diff(OLD, new, "f").render() == build_diff(OLD, new, "f").render()


class TestReplay:
    def test_replay_reproduces_new_text(self):
        cases = [
            OLD.replace("line 1\n", ""),
            OLD + "tail",
            "head\n" + OLD,
            OLD.replace("line 7\n", "seven\nand more\n").replace("line 19\n", ""),
            "",
        ]
        for new in cases:
            assert _replay(OLD, build_diff(OLD, new, "f")) == new

    def test_replay_without_trailing_newline(self):
        old, new = "a\nb", "a\nb\nc"
        assert _replay(old, build_diff(old, new, "f")) == new
