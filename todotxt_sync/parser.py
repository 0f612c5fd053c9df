"""Parser for todo.txt lines.

Every stage scans the line as given; later stages never see text removed
by earlier ones. Parsing is lenient: a field that cannot be recognized is
simply left empty.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Iterable

from .models import Task, TaskFields, TaskList

# Regex patterns
RE_CONTEXT = re.compile(r"\s(@\S*\w)")
RE_PROJECT = re.compile(r"\s(\+\S*\w)")
RE_METADATA = re.compile(r"(?:^|\s)(\w+:\S+)")

_AREA_CODE = r"[2-9]1[02-9]|[2-9][02-8]1|[2-9][02-8][02-9]"
_EXCHANGE = r"[2-9]1[02-9]|[2-9][02-9]1|[2-9][02-9]{2}"
_SEPARATOR = r"\s*(?:[.-]\s*)?"

# NANP-style numbers; explicit ``phone:`` values are already metadata
RE_PHONE = re.compile(
    r"(?<!phone:)"
    rf"(?:(?:\+?1{_SEPARATOR})?(?:\(\s*(?:{_AREA_CODE})\s*\)|(?:{_AREA_CODE})){_SEPARATOR})"
    rf"(?:{_EXCHANGE}){_SEPARATOR}"
    r"[0-9]{4}"
    r"(?:\s*(?:#|x\.?|ext\.?|extension)\s*\d+)?"
)

_DATE = r"[0-9]{4}-[0-9]{2}-[0-9]{2}"
_COMPLETION = rf"(?:(?P<done>[xX]) (?P<completed_date>{_DATE}) )?"
_PRIORITY = r"(?:\((?P<priority>[A-Z])\) )?"
_CREATION = rf"(?:(?P<created_date>{_DATE}) )?"
_BODY = r"(?P<body>.+)$"

# The composite prefix pattern first, then variants without a date group,
# tried in turn when a matched date is not a real calendar date.
PREFIX_PATTERNS = [
    re.compile(_COMPLETION + _PRIORITY + _CREATION + _BODY),
    re.compile(_COMPLETION + _PRIORITY + _BODY),
    re.compile(_PRIORITY + _CREATION + _BODY),
    re.compile(_PRIORITY + _BODY),
]

PHONE_KEY = "phone"


def parse_task(line: str, item_number: int | None = None) -> Task:
    """Parse one todo.txt line into a Task."""
    raw = line.replace("\r", "").replace("\n", "")
    task = Task(raw=raw, item_number=item_number)
    _apply_fields(task, parse_fields(raw))
    return task


def parse_fields(line: str) -> TaskFields:
    """Extract every field of a todo.txt line.

    Order: contexts, projects, key:value metadata, phone numbers, then the
    completion/priority/date prefix of the stripped line.
    """
    fields = TaskFields(
        contexts=RE_CONTEXT.findall(line),
        projects=RE_PROJECT.findall(line),
        metadata=extract_metadata(line),
    )

    match = _match_prefix(line.strip())
    if match is None:
        return fields

    if match.groupdict().get("done"):
        fields.completed = True
        fields.completed_date = _parse_date(match.group("completed_date"))
    if match.group("priority"):
        fields.priority = match.group("priority")
    if match.groupdict().get("created_date"):
        fields.created_date = _parse_date(match.group("created_date"))
    fields.body = match.group("body")
    return fields


def extract_metadata(line: str) -> dict[str, str]:
    """Collect ``key:value`` tokens, then phone numbers, from a line."""
    metadata: dict[str, str] = {}

    for token in RE_METADATA.findall(line):
        key, value = token.split(":", 1)
        add_metadata(metadata, key, value)

    for match in RE_PHONE.finditer(line):
        add_metadata(metadata, PHONE_KEY, match.group(0))

    return metadata


def add_metadata(metadata: dict[str, str], key: str, value: str) -> str:
    """Insert ``key`` into ``metadata``, suffixing it on collision.

    The suffix is the number of keys already named ``key`` or ``key<digits>``,
    so a second ``phone`` becomes ``phone1``. Returns the key used.
    """
    if key in metadata:
        family = re.compile(re.escape(key) + r"[0-9]*")
        count = sum(1 for existing in metadata if family.fullmatch(existing))
        while f"{key}{count}" in metadata:
            count += 1
        key = f"{key}{count}"
    metadata[key] = value
    return key


def parse_todo_lines(lines: Iterable[str], source_path: str = "") -> TaskList:
    """Build a TaskList from todo.txt lines.

    Item numbers are line numbers. Blank lines produce no task but still
    use up a number, so blanked tasks keep later numbers stable.
    """
    task_list = TaskList(source_path=source_path)
    for number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        task_list.tasks.append(parse_task(line, item_number=number))
    return task_list


def parse_todo_txt(content: str, source_path: str = "") -> TaskList:
    """Parse the contents of a todo.txt file into a TaskList."""
    return parse_todo_lines(content.splitlines(), source_path=source_path)


def _match_prefix(text: str) -> re.Match | None:
    for pattern in PREFIX_PATTERNS:
        match = pattern.match(text)
        if match is None:
            return None
        dates = [
            value
            for name, value in match.groupdict().items()
            if name.endswith("_date") and value is not None
        ]
        if all(_parse_date(value) is not None for value in dates):
            return match
    return None


def _parse_date(raw: str) -> date | None:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def _apply_fields(task: Task, fields: TaskFields) -> None:
    task.body = fields.body
    task.projects = fields.projects
    task.contexts = fields.contexts
    task.metadata = fields.metadata
    task.completed = fields.completed
    task.completed_date = fields.completed_date
    task.priority = fields.priority or ""
    task.created_date = fields.created_date
