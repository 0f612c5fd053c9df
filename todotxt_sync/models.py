"""Data models for tasks parsed from todo.txt files."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Iterator

from .errors import TaskError

# Fields compared when reporting what a mutation changed
TRACKED_FIELDS = (
    "completed",
    "completed_date",
    "created_date",
    "priority",
    "body",
    "projects",
    "contexts",
    "metadata",
)


@dataclass
class TaskFields:
    """Everything the field parser recovers from one line.

    Prefix fields the line does not carry are left as ``None`` (or ``False``
    for ``completed``) so callers can tell "absent" from "empty".
    """

    body: str = ""
    completed: bool = False
    completed_date: date | None = None
    created_date: date | None = None
    priority: str | None = None
    projects: list[str] = field(default_factory=list)
    contexts: list[str] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class Task:
    """A single todo.txt task.

    ``raw`` is the line the task was built from and is never rewritten by
    the mutators; ``str(task)`` renders the current state.
    """

    raw: str
    item_number: int | None = None
    completed: bool = False
    completed_date: date | None = None
    created_date: date | None = None
    priority: str = ""
    body: str = ""
    projects: list[str] = field(default_factory=list)
    contexts: list[str] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_parts(
        cls,
        priority: str,
        projects: list[str] | None,
        contexts: list[str] | None,
        body: str,
        created_date: date | None = None,
        due_date: str = "",
        completed: bool = False,
        completed_date: date | None = None,
    ) -> Task:
        """Build a task from its components.

        Contexts, projects and ``due:`` are appended to the body in that
        order, the same way a hand-written line would carry them.
        """
        text = body
        if contexts:
            text += " " + " ".join(contexts)
        if projects:
            text += " " + " ".join(projects)
        if due_date:
            text += " due:" + due_date

        task = cls(raw="")
        task._reparse(text)
        task.priority = _normalize_priority(priority)
        task.created_date = created_date
        task.completed = completed
        task.completed_date = completed_date if completed else None
        task.raw = task.to_line()
        return task

    @property
    def has_priority(self) -> bool:
        return bool(self.priority)

    @property
    def due_date(self) -> str:
        return self.metadata.get("due", "")

    def copy(self) -> Task:
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Mutators (each returns the names of the fields it changed)
    # ------------------------------------------------------------------

    def set_priority(self, priority: str | None) -> set[str]:
        """Set the priority letter, upper-casing it. ``None`` means none.

        Raises TaskError for anything but a single letter A-Z.
        """
        normalized = _normalize_priority(priority)
        if normalized == self.priority:
            return set()
        self.priority = normalized
        return {"priority"}

    def set_body(self, body: str) -> set[str]:
        if body == self.body:
            return set()
        return self._reparse(body)

    def replace(self, text: str) -> set[str]:
        """Replace the whole task text and re-derive every field from it."""
        return self._reparse(text)

    def append(self, suffix: str) -> set[str]:
        return self._reparse(self.body + suffix)

    def prepend(self, prefix: str) -> set[str]:
        return self._reparse(prefix + self.body)

    def replace_text(self, old: str, new: str) -> bool:
        """Replace ``old`` with ``new`` in the body.

        Returns False, leaving the task untouched, when ``old`` is not in
        the body.
        """
        if old not in self.body:
            return False
        self._reparse(self.body.replace(old, new))
        return True

    def toggle_completed(self) -> set[str]:
        """Flip the completed flag.

        Completing stamps today's date as the completion date. Reopening a
        task drops its priority.
        """
        changed = {"completed"}
        self.completed = not self.completed
        if self.completed:
            today = date.today()
            if self.completed_date != today:
                self.completed_date = today
                changed.add("completed_date")
        elif self.priority:
            self.priority = ""
            changed.add("priority")
        return changed

    def empty(self) -> set[str]:
        """Clear every field except the item number (and ``raw``)."""
        before = self._snapshot()
        self.completed = False
        self.completed_date = None
        self.created_date = None
        self.priority = ""
        self.body = ""
        self.projects = []
        self.contexts = []
        self.metadata = {}
        return _changed_fields(before, self._snapshot())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_line(self, number_width: int | None = None) -> str:
        """Render the task as a todo.txt line.

        With ``number_width`` set (and an item number present) the line is
        prefixed with the zero-padded item number.
        """
        line = ""
        if self.completed:
            line += "x "
            if self.completed_date is not None:
                line += self.completed_date.isoformat() + " "
        if self.priority:
            line += f"({self.priority}) "
        if self.created_date is not None:
            line += self.created_date.isoformat() + " "
        line += self.body

        if number_width is not None and self.item_number is not None:
            return f"{self.item_number:0{number_width}d} {line}"
        return line

    def __str__(self) -> str:
        return self.to_line()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reparse(self, text: str) -> set[str]:
        """Re-derive the task from ``text``.

        Tokens and body always come from ``text``; prefix fields only
        override the current ones when ``text`` carries them.
        """
        from .parser import parse_fields

        before = self._snapshot()
        fields = parse_fields(text.replace("\r", "").replace("\n", ""))

        self.body = fields.body
        self.projects = fields.projects
        self.contexts = fields.contexts
        self.metadata = fields.metadata
        if fields.completed:
            self.completed = True
            self.completed_date = fields.completed_date
        if fields.priority:
            self.priority = fields.priority
        if fields.created_date is not None:
            self.created_date = fields.created_date

        return _changed_fields(before, self._snapshot())

    def _snapshot(self) -> dict:
        return {name: copy.copy(getattr(self, name)) for name in TRACKED_FIELDS}


def _changed_fields(before: dict, after: dict) -> set[str]:
    return {name for name in TRACKED_FIELDS if before[name] != after[name]}


def _normalize_priority(priority: str | None) -> str:
    letter = (priority or "").strip().strip("()").upper()
    if letter and (len(letter) != 1 or not "A" <= letter <= "Z"):
        raise TaskError(f"Priority must be a single letter A-Z, got {priority!r}")
    return letter


@dataclass
class TaskList:
    """An ordered collection of tasks addressed by item number.

    ``total_count`` only drives the width of the zero-padded numbers in
    numbered output; filtered views keep the width of the list they came
    from.
    """

    tasks: list[Task] = field(default_factory=list)
    total_count: int | None = None
    source_path: str = ""

    def __iter__(self) -> Iterator[Task]:
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)

    def __getitem__(self, index: int) -> Task:
        return self.tasks[index]

    @property
    def number_width(self) -> int:
        return len(str(self._width_count()))

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add(self, task: Task) -> Task:
        """Append a task, giving it the next free item number if it has none."""
        if task.item_number is None:
            task.item_number = self._next_item_number()
        self.tasks.append(task)
        return task

    def insert(self, index: int, task: Task) -> Task:
        if task.item_number is None:
            task.item_number = self._next_item_number()
        self.tasks.insert(index, task)
        return task

    def renumber(self) -> None:
        for number, task in enumerate(self.tasks, start=1):
            task.item_number = number

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def to_output(self) -> list[str]:
        return [task.to_line() for task in self.tasks]

    def to_numbered_output(self) -> list[str]:
        width = self.number_width
        return [task.to_line(width) for task in self.tasks]

    def to_file_lines(self) -> list[str]:
        """Lines for the todo.txt file, keeping gaps in the item numbering.

        Every missing number between two tasks becomes an empty line, so a
        reload gives each task the number it has now. Lists whose numbers
        are out of order are written as they stand.
        """
        numbers = [task.item_number for task in self.tasks]
        if None in numbers or numbers != sorted(set(numbers)):
            return self.to_output()

        lines: list[str] = []
        for task in self.tasks:
            lines.extend([""] * (task.item_number - 1 - len(lines)))
            lines.append(task.to_line())
        return lines

    def search(self, term: str) -> TaskList:
        """Case-insensitive substring filter; a leading ``-`` negates it."""
        include = True
        if term.startswith("-"):
            include = False
            term = term[1:]
        needle = term.casefold()
        return self._view(
            task for task in self.tasks if (needle in str(task).casefold()) == include
        )

    def filter_by_priority(self, priority: str | None) -> TaskList:
        """Tasks with the given priority, or every prioritized task by letter."""
        wanted = (priority or "").upper()
        if wanted:
            return self._view(task for task in self.tasks if task.priority == wanted)
        return self._view(
            sorted(
                (task for task in self.tasks if task.has_priority),
                key=lambda task: task.priority,
            )
        )

    def list_completed(self) -> TaskList:
        return self._view(task for task in self.tasks if task.completed)

    def find(self, item_number: int) -> Task | None:
        for task in self.tasks:
            if task.item_number == item_number:
                return task
        return None

    # ------------------------------------------------------------------
    # Mutators addressed by item number (no-ops for unknown numbers)
    # ------------------------------------------------------------------

    def set_priority(self, item_number: int, priority: str | None) -> set[str]:
        target = self.find(item_number)
        if target is None:
            return set()
        return target.set_priority(priority)

    def replace_in_task(self, item_number: int, text: str) -> set[str]:
        target = self.find(item_number)
        if target is None:
            return set()
        return target.replace(text)

    def append_to_task(self, item_number: int, text: str) -> set[str]:
        target = self.find(item_number)
        if target is None:
            return set()
        return target.append(text)

    def prepend_to_task(self, item_number: int, text: str) -> set[str]:
        target = self.find(item_number)
        if target is None:
            return set()
        return target.prepend(text)

    def remove_from_task(self, item_number: int, term: str) -> bool:
        target = self.find(item_number)
        if target is None:
            return False
        return target.replace_text(term, "")

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove_completed(self, preserve_numbering: bool) -> TaskList:
        """Remove completed tasks and return copies of them.

        With ``preserve_numbering`` the tasks are blanked in place so the
        remaining item numbers do not move; otherwise they are dropped and
        the list is renumbered 1..N.
        """
        removed = self._view(task.copy() for task in self.tasks if task.completed)

        if preserve_numbering:
            for task in self.tasks:
                if task.completed:
                    task.empty()
        else:
            self.tasks = [task for task in self.tasks if not task.completed]
            self.renumber()

        return removed

    def remove_task(self, item_number: int, preserve_numbering: bool) -> bool:
        target = self.find(item_number)
        if target is None:
            return False

        if preserve_numbering:
            target.empty()
        else:
            self.tasks.remove(target)
            self.renumber()
        return True

    # ------------------------------------------------------------------
    # Content-addressed operations
    # ------------------------------------------------------------------

    def delete(self, task: Task) -> None:
        """Remove the first task whose raw line equals ``task.raw``."""
        index = self._index_of_raw(task.raw)
        if index is None:
            raise TaskError(
                f"Task not found in task list, cannot remove it: {task.raw!r}"
            )
        del self.tasks[index]

    def update(self, current: Task, new: Task) -> None:
        """Put ``new`` in place of the first task whose raw line equals ``current.raw``."""
        index = self._index_of_raw(current.raw)
        if index is None:
            raise TaskError(
                f"Task not found in task list, cannot update it: {current.raw!r}"
            )
        if new.item_number is None:
            new.item_number = self.tasks[index].item_number
        self.tasks[index] = new

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _index_of_raw(self, raw: str) -> int | None:
        for index, task in enumerate(self.tasks):
            if task.raw == raw:
                return index
        return None

    def _next_item_number(self) -> int:
        numbers = [t.item_number for t in self.tasks if t.item_number is not None]
        return max(numbers, default=0) + 1

    def _width_count(self) -> int:
        if self.total_count is not None:
            return self.total_count
        numbers = [t.item_number for t in self.tasks if t.item_number is not None]
        return max([len(self.tasks), *numbers])

    def _view(self, tasks: Iterable[Task]) -> TaskList:
        return TaskList(
            tasks=list(tasks),
            total_count=self._width_count(),
            source_path=self.source_path,
        )
