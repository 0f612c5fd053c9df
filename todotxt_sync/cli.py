"""CLI entry point for todotxt-sync."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import date
from pathlib import Path

from .errors import TaskError
from .merge import merge_with_report, sync_todo
from .models import TaskList
from .parser import parse_task
from .remote import RemoteTodoFile
from .storage import archive_completed, load_task_list, save_task_list, write_lines


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(message)s",
    )

    args.todo_path = Path(args.file or os.environ.get("TODO_FILE") or "todo.txt")
    args.done_path = Path(
        args.done_file
        or os.environ.get("DONE_FILE")
        or args.todo_path.with_name("done.txt")
    )
    if not args.preserve_line_numbers:
        args.preserve_line_numbers = _truthy_env(
            os.environ.get("TODOTXT_PRESERVE_LINE_NUMBERS")
        )

    try:
        return args.handler(args)
    except TaskError as exc:
        logging.error("%s", exc)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="todotxt-sync",
        description="Manage a todo.txt file and merge copies edited on different devices.",
    )
    parser.add_argument(
        "--file", "-f",
        type=str,
        default=None,
        help="Path to the todo.txt file (or set TODO_FILE env var; default ./todo.txt)",
    )
    parser.add_argument(
        "--done-file",
        type=str,
        default=None,
        help="Where archived tasks go (or set DONE_FILE; default done.txt next to todo.txt)",
    )
    parser.add_argument(
        "--preserve-line-numbers",
        action="store_true",
        help="Blank removed tasks instead of deleting them so item numbers stay put "
        "(or set TODOTXT_PRESERVE_LINE_NUMBERS)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="Add a task")
    p.add_argument("--date", "-t", action="store_true", help="Prefix today's date as creation date")
    p.add_argument("text", nargs="+")
    p.set_defaults(handler=cmd_add)

    p = sub.add_parser("ls", help="List tasks, optionally filtered by search terms")
    p.add_argument("terms", nargs="*", help="Terms to match; prefix with '-' to exclude")
    p.set_defaults(handler=cmd_list)

    p = sub.add_parser("lsp", help="List prioritized tasks")
    p.add_argument("priority", nargs="?", default="")
    p.set_defaults(handler=cmd_list_priority)

    p = sub.add_parser("pri", help="Set the priority of a task")
    p.add_argument("item", type=int)
    p.add_argument("priority")
    p.set_defaults(handler=cmd_priority)

    p = sub.add_parser("depri", help="Remove the priority of a task")
    p.add_argument("item", type=int)
    p.set_defaults(handler=cmd_depriority)

    p = sub.add_parser("do", help="Mark a task as done")
    p.add_argument("item", type=int)
    p.set_defaults(handler=cmd_do)

    p = sub.add_parser("del", help="Delete a task")
    p.add_argument("item", type=int)
    p.set_defaults(handler=cmd_delete)

    for name, help_text in (
        ("append", "Add text to the end of a task"),
        ("prepend", "Add text to the beginning of a task"),
        ("replace", "Replace the text of a task"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("item", type=int)
        p.add_argument("text", nargs="+")
        p.set_defaults(handler=cmd_edit)

    p = sub.add_parser("archive", help="Move completed tasks to the done file")
    p.set_defaults(handler=cmd_archive)

    p = sub.add_parser("merge", help="Three-way merge of todo.txt copies")
    p.add_argument("base", help="Common original")
    p.add_argument("local", help="Edited copy whose changes are applied")
    p.add_argument("remote", help="Edited copy the changes are applied to")
    p.add_argument("--output", "-o", default=None, help="Write the result here instead of stdout")
    p.set_defaults(handler=cmd_merge)

    p = sub.add_parser("sync", help="Merge the todo file with a copy on an HTTP server")
    p.add_argument("url", help="URL of the remote todo.txt (GET/PUT)")
    p.add_argument(
        "--base",
        default=None,
        help="Snapshot of the last sync (default .<todo file name>.base next to it)",
    )
    p.add_argument(
        "--token",
        default=None,
        help="Bearer token for the server (or set TODOTXT_SYNC_TOKEN env var)",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Log what would happen without making changes",
    )
    p.set_defaults(handler=cmd_sync)

    return parser


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


def cmd_add(args: argparse.Namespace) -> int:
    task_list = _load(args.todo_path)
    task = parse_task(" ".join(args.text))
    if args.date and task.created_date is None:
        task.created_date = date.today()
    task_list.add(task)
    save_task_list(task_list, args.todo_path)
    print(task.to_line(task_list.number_width))
    logging.info("TODO: %d added.", task.item_number)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    task_list = _load(args.todo_path)
    shown = task_list
    for term in args.terms:
        shown = shown.search(term)
    _print_tasks(shown, len(task_list))
    return 0


def cmd_list_priority(args: argparse.Namespace) -> int:
    task_list = _load(args.todo_path)
    _print_tasks(task_list.filter_by_priority(args.priority), len(task_list))
    return 0


def cmd_priority(args: argparse.Namespace) -> int:
    priority = args.priority.upper()
    if len(priority) != 1 or not "A" <= priority <= "Z":
        logging.error("Priority must be a single letter A-Z, got %r", args.priority)
        return 1
    return _edit_item(args, lambda tl: tl.set_priority(args.item, priority))


def cmd_depriority(args: argparse.Namespace) -> int:
    return _edit_item(args, lambda tl: tl.set_priority(args.item, ""))


def cmd_do(args: argparse.Namespace) -> int:
    task_list = _load(args.todo_path)
    task = task_list.find(args.item)
    if task is None:
        logging.error("No task %d", args.item)
        return 1
    if task.completed:
        logging.info("TODO: %d is already marked done.", args.item)
        return 0
    task.toggle_completed()
    save_task_list(task_list, args.todo_path)
    print(task.to_line(task_list.number_width))
    logging.info("TODO: %d marked as done.", args.item)
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    task_list = _load(args.todo_path)
    task = task_list.find(args.item)
    if task is None:
        logging.error("No task %d", args.item)
        return 1
    line = task.to_line(task_list.number_width)
    task_list.remove_task(args.item, args.preserve_line_numbers)
    save_task_list(task_list, args.todo_path)
    print(line)
    logging.info("TODO: %d deleted.", args.item)
    return 0


def cmd_edit(args: argparse.Namespace) -> int:
    text = " ".join(args.text)
    if args.command == "append":
        return _edit_item(args, lambda tl: tl.append_to_task(args.item, " " + text))
    if args.command == "prepend":
        return _edit_item(args, lambda tl: tl.prepend_to_task(args.item, text + " "))
    return _edit_item(args, lambda tl: tl.replace_in_task(args.item, text))


def cmd_archive(args: argparse.Namespace) -> int:
    task_list = _load(args.todo_path)
    archived = archive_completed(task_list, args.done_path, args.preserve_line_numbers)
    if len(archived):
        save_task_list(task_list, args.todo_path)
    for line in archived.to_output():
        print(line)
    logging.info("TODO: %d task(s) archived to %s", len(archived), args.done_path)
    return 0


def cmd_merge(args: argparse.Namespace) -> int:
    original = load_task_list(args.base)
    local = load_task_list(args.local)
    remote = load_task_list(args.remote)

    report = merge_with_report(original, local, remote)
    lines = report.tasks.to_output()
    if args.output:
        write_lines(args.output, lines)
        logging.info("Merged %d task(s) into %s", len(lines), args.output)
    else:
        for line in lines:
            print(line)

    if report.hunks_failed:
        logging.warning(
            "%d change(s) from %s could not be applied; check the result",
            report.hunks_failed,
            args.local,
        )
    return 0


def cmd_sync(args: argparse.Namespace) -> int:
    token = args.token or os.environ.get("TODOTXT_SYNC_TOKEN")
    base_path = Path(args.base) if args.base else args.todo_path.with_name(
        f".{args.todo_path.name}.base"
    )

    with RemoteTodoFile(args.url, token=token) as remote:
        result = sync_todo(base_path, args.todo_path, remote, dry_run=args.dry_run)

    logging.info(
        "Sync complete: %d task(s), %d change(s) applied, %d failed",
        len(result.merged),
        result.hunks_applied,
        result.hunks_failed,
    )
    return 0


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def _load(path: Path) -> TaskList:
    if not path.is_file():
        logging.debug("%s does not exist yet; starting an empty list", path)
        return TaskList(source_path=str(path))
    return load_task_list(path)


def _edit_item(args: argparse.Namespace, edit) -> int:
    task_list = _load(args.todo_path)
    task = task_list.find(args.item)
    if task is None:
        logging.error("No task %d", args.item)
        return 1
    changed = edit(task_list)
    if changed:
        save_task_list(task_list, args.todo_path)
        logging.debug("Changed %s of task %d", ", ".join(sorted(changed)), args.item)
    print(task.to_line(task_list.number_width))
    return 0


def _print_tasks(tasks: TaskList, total: int) -> None:
    shown = 0
    for task in tasks:
        if not str(task):
            continue
        print(task.to_line(tasks.number_width))
        shown += 1
    print("--")
    print(f"TODO: {shown} of {total} tasks shown")


def _truthy_env(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


if __name__ == "__main__":
    sys.exit(main())
