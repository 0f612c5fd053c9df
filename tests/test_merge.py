"""Tests for the three-way merge and the sync flow built on it."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

from todotxt_sync.merge import merge, merge_with_report, sync_todo
from todotxt_sync.models import TaskList
from todotxt_sync.parser import parse_todo_lines
from todotxt_sync.remote import RemoteTodoFile
from todotxt_sync.storage import read_lines, write_lines

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ORIGINAL = ["(A) Buy milk @store", "(B) Plant herb +garden"]


def _tl(*lines: str) -> TaskList:
    return parse_todo_lines(lines)


def _mock_remote(lines: list[str]) -> MagicMock:
    """Create a mock RemoteTodoFile serving ``lines``."""
    remote = MagicMock(spec=RemoteTodoFile)
    remote.url = "https://dav.example.com/todo.txt"
    remote.fetch_lines.return_value = list(lines)
    return remote


# ===================================================================
# merge
# ===================================================================


class TestMerge:
    def test_edits_to_same_line_combine(self):
        original = _tl(*ORIGINAL)
        local = _tl("(A) Buy milk @store", "(D) Plant herb +garden")
        remote = _tl("(B) Plant herb +garden vegetable")

        result = merge(original, local, remote)

        herb = result.search("herb")
        assert len(herb) == 1
        assert herb[0].priority == "D"
        assert "Plant" in str(herb[0])
        assert "vegetable" in str(herb[0])

    def test_line_removed_on_one_side_stays_removed(self):
        original = _tl(*ORIGINAL)
        local = _tl("(A) Buy milk @store", "(D) Plant herb +garden")
        remote = _tl("(B) Plant herb +garden vegetable")

        result = merge(original, local, remote)

        assert len(result.search("milk")) == 0

    def test_tasks_added_on_both_sides_are_kept(self):
        original = _tl("(A) Call Mom", "(B) Schedule checkup +health")
        local = _tl("(A) Call Mom", "(B) Schedule checkup +health", "Star wars")
        remote = _tl("Watch videos", "(A) Call Mom", "(B) Schedule checkup +health")

        result = merge(original, local, remote)

        assert len(result.search("Star")) == 1
        assert len(result.search("videos")) == 1
        assert len(result) == 4

    def test_unchanged_local_keeps_remote_edit(self):
        original = _tl("x 2011-01-01 Update mobile app", "Call Mom")
        local = _tl("x 2011-01-01 Update mobile app", "Call Mom")
        remote = _tl("Update mobile app", "Call Mom")

        result = merge(original, local, remote)

        mobile = result.search("mobile")
        assert len(mobile) == 1
        assert mobile[0].completed is False

    def test_result_is_numbered_by_position(self):
        original = _tl("one", "two")
        local = _tl("one", "two", "three")
        remote = parse_todo_lines(["one", "", "two"])

        result = merge(original, local, remote)

        assert [t.item_number for t in result] == list(range(1, len(result) + 1))

    def test_inputs_are_not_modified(self):
        original = _tl(*ORIGINAL)
        local = _tl("(A) Buy milk @store", "(D) Plant herb +garden")
        remote = _tl("(B) Plant herb +garden vegetable")
        before = [original.to_output(), local.to_output(), remote.to_output()]

        merge(original, local, remote)

        assert [original.to_output(), local.to_output(), remote.to_output()] == before

    def test_identical_copies_merge_to_same_list(self):
        copy = _tl(*ORIGINAL)
        result = merge(copy, copy, copy)
        assert result.to_output() == ORIGINAL


class TestMergeWithEngine:
    def test_engine_receives_rendered_text(self):
        engine = MagicMock()
        engine.apply_patch.return_value = ("b\n", [True])

        merge_with_report(_tl("a"), _tl("b"), _tl("c"), engine=engine)

        engine.diff.assert_called_once_with("a\n", "b\n")
        engine.build_patch.assert_called_once_with("a\n", engine.diff.return_value)
        engine.apply_patch.assert_called_once_with(
            engine.build_patch.return_value, "c\n"
        )

    def test_failed_hunks_are_reported_not_raised(self):
        engine = MagicMock()
        engine.apply_patch.return_value = ("(A) one\n\n   \n(B) two\n", [True, False])

        report = merge_with_report(_tl("x"), _tl("y"), _tl("z"), engine=engine)

        assert report.tasks.to_output() == ["(A) one", "(B) two"]
        assert [t.item_number for t in report.tasks] == [1, 2]
        assert report.hunks_applied == 1
        assert report.hunks_failed == 1


# ===================================================================
# sync_todo
# ===================================================================


class TestSyncTodo:
    def test_sync_merges_and_writes_everywhere(self, tmp_path: Path):
        base = tmp_path / ".todo.txt.base"
        local = tmp_path / "todo.txt"
        write_lines(base, ORIGINAL)
        write_lines(local, ["(A) Buy milk @store", "(D) Plant herb +garden"])
        remote = _mock_remote(["(B) Plant herb +garden vegetable"])

        result = sync_todo(base, local, remote)

        expected = ["(D) Plant herb +garden vegetable"]
        assert result.merged.to_output() == expected
        assert result.local_changed is True
        assert result.remote_changed is True
        assert read_lines(local) == expected
        assert read_lines(base) == expected
        remote.push_lines.assert_called_once_with(expected)

    def test_dry_run_writes_nothing(self, tmp_path: Path):
        base = tmp_path / ".todo.txt.base"
        local = tmp_path / "todo.txt"
        write_lines(base, ORIGINAL)
        write_lines(local, ["(A) Buy milk @store", "(D) Plant herb +garden"])
        remote = _mock_remote(["(B) Plant herb +garden vegetable"])

        result = sync_todo(base, local, remote, dry_run=True)

        assert result.local_changed is True
        assert read_lines(local) == ["(A) Buy milk @store", "(D) Plant herb +garden"]
        assert read_lines(base) == ORIGINAL
        remote.push_lines.assert_not_called()

    def test_first_sync_local_file_wins(self, tmp_path: Path):
        base = tmp_path / ".todo.txt.base"
        local = tmp_path / "todo.txt"
        write_lines(local, ORIGINAL)
        remote = _mock_remote(["Something else entirely"])

        result = sync_todo(base, local, remote)

        assert result.merged.to_output() == ORIGINAL
        assert result.local_changed is False
        remote.push_lines.assert_called_once_with(ORIGINAL)
        assert read_lines(base) == ORIGINAL

    def test_first_sync_without_local_file_downloads(self, tmp_path: Path):
        base = tmp_path / ".todo.txt.base"
        local = tmp_path / "todo.txt"
        remote = _mock_remote(ORIGINAL)

        result = sync_todo(base, local, remote)

        assert result.remote_changed is False
        assert read_lines(local) == ORIGINAL
        remote.push_lines.assert_not_called()

    def test_unchanged_remote_is_not_pushed(self, tmp_path: Path):
        base = tmp_path / ".todo.txt.base"
        local = tmp_path / "todo.txt"
        write_lines(base, ORIGINAL)
        write_lines(local, ORIGINAL)
        remote = _mock_remote(ORIGINAL)

        result = sync_todo(base, local, remote)

        assert result.local_changed is False
        assert result.remote_changed is False
        remote.push_lines.assert_not_called()
