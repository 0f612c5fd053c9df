"""Read and write todo.txt files on disk."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable

from .errors import TaskError
from .models import TaskList
from .parser import parse_todo_lines

logger = logging.getLogger(__name__)


def read_lines(path: str | Path) -> list[str]:
    """Return the lines of a UTF-8 text file without line endings."""
    p = Path(path)
    try:
        return p.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise TaskError(f"There was a problem trying to read from {p}") from exc


def write_lines(path: str | Path, lines: Iterable[str]) -> None:
    """Write ``lines`` to ``path``, one per line, replacing the file atomically.

    An existing file that uses CRLF line endings keeps them.
    """
    p = Path(path)
    eol = _detect_eol(p)
    content = "".join(f"{line}{eol}" for line in lines)
    try:
        _atomic_write(p, content)
    except OSError as exc:
        raise TaskError(f"There was a problem trying to save {p}") from exc


def load_task_list(path: str | Path) -> TaskList:
    """Parse a todo.txt file from disk."""
    p = Path(path)
    task_list = parse_todo_lines(read_lines(p), source_path=str(p))
    logger.debug("Loaded %d task(s) from %s", len(task_list), p)
    return task_list


def save_task_list(task_list: TaskList, path: str | Path | None = None) -> Path:
    """Write a TaskList back to disk, to its own source path by default."""
    target = Path(path) if path is not None else Path(task_list.source_path)
    if not str(target) or str(target) == ".":
        raise TaskError("No file to save the task list to")
    write_lines(target, task_list.to_file_lines())
    logger.debug("Saved %d task(s) to %s", len(task_list), target)
    return target


def archive_completed(
    task_list: TaskList,
    done_path: str | Path,
    preserve_numbering: bool = False,
) -> TaskList:
    """Move completed tasks out of ``task_list`` and append them to a done file.

    Returns the archived tasks. The caller is responsible for saving
    ``task_list`` afterwards.
    """
    done = Path(done_path)
    archived = task_list.remove_completed(preserve_numbering)
    if not len(archived):
        logger.debug("[ARCHIVE] nothing to archive")
        return archived

    existing = read_lines(done) if done.is_file() else []
    write_lines(done, existing + archived.to_output())
    logger.info("[ARCHIVE] moved %d task(s) to %s", len(archived), done)
    return archived


def _detect_eol(path: Path) -> str:
    """Line ending used by an existing file; ``\\n`` when there is none."""
    try:
        with path.open("rb") as fh:
            first = fh.readline()
    except OSError:
        return "\n"
    return "\r\n" if first.endswith(b"\r\n") else "\n"


def _atomic_write(target_path: Path, content: str) -> None:
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            newline="",
            dir=target_path.parent,
            delete=False,
        ) as temp_file:
            temp_path = Path(temp_file.name)
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, target_path)
    finally:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
