"""Three-way merge of todo.txt task lists.

Tasks carry no identifiers that survive edits on different devices, so the
merge works on text: the changes between the common original and one edited
copy are turned into a context patch and applied, with fuzzy matching, to the
other edited copy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from diff_match_patch import diff_match_patch

from .models import TaskList
from .parser import parse_todo_lines
from .remote import RemoteTodoFile
from .storage import load_task_list, write_lines

logger = logging.getLogger(__name__)


class DiffPatchEngine(Protocol):
    """The diff/patch primitive the merge is written against."""

    def diff(self, text1: str, text2: str) -> Any: ...

    def build_patch(self, base_text: str, diffs: Any) -> Any: ...

    def apply_patch(self, patch: Any, text: str) -> tuple[str, list[bool]]: ...


class DiffMatchPatchEngine:
    """DiffPatchEngine backed by the diff-match-patch library.

    Diffs run in line mode first and are then refined inside the changed
    lines, so an edit to one part of a line can still be applied to a copy
    where another part of that line changed.
    """

    def __init__(self) -> None:
        self._dmp = diff_match_patch()

    def diff(self, text1: str, text2: str) -> list[tuple[int, str]]:
        return self._dmp.diff_main(text1, text2, True)

    def build_patch(self, base_text: str, diffs: list[tuple[int, str]]) -> list:
        return self._dmp.patch_make(base_text, diffs)

    def apply_patch(self, patch: list, text: str) -> tuple[str, list[bool]]:
        merged, results = self._dmp.patch_apply(patch, text)
        return merged, list(results)


@dataclass
class MergeResult:
    """The merged list plus how many patch hunks applied."""

    tasks: TaskList
    hunks_applied: int = 0
    hunks_failed: int = 0


@dataclass
class SyncResult:
    """Summary of what a sync did (or would do, on a dry run)."""

    merged: TaskList = field(default_factory=TaskList)
    hunks_applied: int = 0
    hunks_failed: int = 0
    local_changed: bool = False
    remote_changed: bool = False


def merge(
    original: TaskList,
    local: TaskList,
    remote: TaskList,
    engine: DiffPatchEngine | None = None,
) -> TaskList:
    """Apply the changes from ``original`` to ``local`` onto ``remote``.

    None of the inputs is modified. Tasks in the result are numbered by
    position.
    """
    return merge_with_report(original, local, remote, engine).tasks


def merge_with_report(
    original: TaskList,
    local: TaskList,
    remote: TaskList,
    engine: DiffPatchEngine | None = None,
) -> MergeResult:
    """Like ``merge`` but also reports applied and failed hunks.

    Hunks that cannot be placed are skipped and logged; that is never an
    error, callers that care should inspect ``hunks_failed``.
    """
    engine = engine or DiffMatchPatchEngine()

    base_text = _render(original)
    local_text = _render(local)
    remote_text = _render(remote)

    diffs = engine.diff(base_text, local_text)
    patch = engine.build_patch(base_text, diffs)
    merged_text, results = engine.apply_patch(patch, remote_text)

    applied = sum(1 for ok in results if ok)
    failed = len(results) - applied
    if failed:
        logger.warning(
            "[MERGE] %d of %d change(s) could not be applied cleanly",
            failed,
            len(results),
        )
    else:
        logger.debug("[MERGE] applied %d change(s)", applied)

    lines = [line for line in merged_text.splitlines() if line.strip()]
    return MergeResult(
        tasks=parse_todo_lines(lines),
        hunks_applied=applied,
        hunks_failed=failed,
    )


def sync_todo(
    base_path: str | Path,
    local_path: str | Path,
    remote: RemoteTodoFile,
    dry_run: bool = False,
) -> SyncResult:
    """Reconcile a local todo.txt with its remote copy.

    ``base_path`` holds the result of the previous sync and serves as the
    common original. Without one, the local file wins when it exists and
    the remote copy is downloaded otherwise.

    Args:
        base_path: Snapshot written after every successful sync
        local_path: The local todo.txt
        remote: Remote copy of the same list
        dry_run: If True, only log what would happen without writing anything
    """
    base = Path(base_path)
    local_file = Path(local_path)

    logger.info("Fetching remote copy from %s ...", remote.url)
    remote_list = parse_todo_lines(remote.fetch_lines())
    local_exists = local_file.is_file()
    local_list = load_task_list(local_file) if local_exists else TaskList()
    logger.info(
        "Found %d local and %d remote task(s)", len(local_list), len(remote_list)
    )

    if base.is_file():
        original = load_task_list(base)
    elif local_exists:
        logger.info("No base snapshot at %s; local file wins", base)
        original = remote_list
    else:
        logger.info("No base snapshot at %s; downloading remote copy", base)
        original = local_list = remote_list

    report = merge_with_report(original, local_list, remote_list)
    merged_lines = report.tasks.to_output()

    result = SyncResult(
        merged=report.tasks,
        hunks_applied=report.hunks_applied,
        hunks_failed=report.hunks_failed,
        local_changed=not local_exists or merged_lines != local_list.to_output(),
        remote_changed=merged_lines != remote_list.to_output(),
    )

    if dry_run:
        logger.info(
            "[DRY RUN] Would write %d task(s): local %s, remote %s",
            len(report.tasks),
            "changed" if result.local_changed else "unchanged",
            "changed" if result.remote_changed else "unchanged",
        )
        return result

    if result.local_changed:
        write_lines(local_file, merged_lines)
        logger.info("Updated %s", local_file)
    if result.remote_changed:
        remote.push_lines(merged_lines)
        logger.info("Updated %s", remote.url)
    write_lines(base, merged_lines)

    return result


def _render(task_list: TaskList) -> str:
    return "".join(f"{line}\n" for line in task_list.to_output())
