"""Checklist parsing, sequencing rules and status mutation for tasks.md.

A task line looks like::

    - [ ] 1.2. Build the parser _Requirements: 1.1, 3_

The marker is one of ``" "`` (pending), ``"-"`` (in progress) or ``"x"``
(done). Ids are dotted decimals of any depth; the parent of ``1.2.3`` is
``1.2``. Parsing and mutation share the same line grammar below so that
any line the parser sees can also be rewritten.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence

from .errors import TaskNotFoundError
from .models import MARKER_STATUSES, STATUS_MARKERS, TASK_STATUSES, Task

logger = logging.getLogger("kiro_flow.tasklist")

_INDENT = r"[ \t]*"
_MARKER = r"[ x-]"
_TASK_ID = r"\d+(?:\.\d+)*"

_TASK_LINE_PATTERN = re.compile(
    rf"^(?P<indent>{_INDENT})- \[(?P<mark>{_MARKER})\] (?P<id>{_TASK_ID})\. (?P<rest>.+)$"
)
_REQUIREMENTS_PATTERN = re.compile(r"_Requirements?: (?P<refs>[^_\n]+)_")


def parse_tasks(document: str) -> List[Task]:
    """Parse a checklist document into tasks in document order.

    Lines that do not match the task grammar are skipped. Subtasks are
    linked to their parent when the parent id occurs anywhere in the
    document; a dangling parent id leaves the task unlinked.
    """
    tasks: List[Task] = []
    for index, line in enumerate(document.split("\n")):
        match = _TASK_LINE_PATTERN.match(line)
        if not match:
            continue

        task_id = match.group("id")
        rest = match.group("rest")
        requirements: List[str] = []
        req_match = _REQUIREMENTS_PATTERN.search(rest)
        if req_match:
            requirements = [ref.strip() for ref in req_match.group("refs").split(",") if ref.strip()]
            rest = rest[: req_match.start()] + rest[req_match.end():]

        tasks.append(
            Task(
                id=task_id,
                status=MARKER_STATUSES[match.group("mark")],
                content=rest.strip(),
                requirements=requirements,
                parent_id=_parent_of(task_id),
                line_number=index,
            )
        )

    _link_subtasks(tasks)
    return tasks


def _parent_of(task_id: str) -> Optional[str]:
    head, dot, _ = task_id.rpartition(".")
    return head if dot else None


def _link_subtasks(tasks: Sequence[Task]) -> None:
    by_id: Dict[str, Task] = {}
    for task in tasks:
        # first occurrence wins for duplicated ids
        by_id.setdefault(task.id, task)

    for task in tasks:
        if task.parent_id is None:
            continue
        parent = by_id.get(task.parent_id)
        if parent is not None and task.id not in parent.subtasks:
            parent.subtasks.append(task.id)


def find_task(tasks: Sequence[Task], task_id: str) -> Optional[Task]:
    """Return the first task whose id equals ``task_id``."""
    for task in tasks:
        if task.id == task_id:
            return task
    return None


def validate_transition(
    tasks: Sequence[Task],
    task_id: str,
    new_status: str,
    *,
    enforce_parent_completion: bool = False,
) -> Optional[str]:
    """Decide whether ``task_id`` may move to ``new_status``.

    Returns ``None`` when the transition is permitted, otherwise a message
    naming what blocks it. Moving a task back to ``pending`` is always
    permitted.

    Args:
        tasks: Parsed tasks in document order.
        task_id: Id of the task to transition.
        new_status: One of ``pending``, ``in_progress`` or ``done``.
        enforce_parent_completion: Reject completing a subtask while its
            parent is not done. Off by default; see DESIGN.md before
            enabling it, since children normally finish before parents.

    Raises:
        TaskNotFoundError: if ``task_id`` is not in ``tasks``.
        ValueError: if ``new_status`` is not a known status.
    """
    if new_status not in TASK_STATUSES:
        raise ValueError(f"Unknown task status: {new_status}")

    task = find_task(tasks, task_id)
    if task is None:
        raise TaskNotFoundError(task_id)

    if enforce_parent_completion and task.parent_id is not None and new_status == "done":
        parent = find_task(tasks, task.parent_id)
        if parent is not None and parent.status != "done":
            return f"Cannot complete {task_id} - parent task {task.parent_id} incomplete"

    siblings = [t for t in tasks if t.parent_id == task.parent_id]
    position = next(i for i, t in enumerate(siblings) if t is task)
    if position > 0:
        previous = siblings[position - 1]
        if previous.status != "done" and new_status != "pending":
            return f"Cannot start {task_id} - previous task {previous.id} incomplete"

    if task.requirements and new_status != "pending":
        done_ids = {t.id for t in tasks if t.status == "done"}
        unmet = [ref for ref in task.requirements if ref not in done_ids]
        if unmet:
            return f"Cannot start {task_id} - requirements not met: {', '.join(unmet)}"

    return None


def set_task_status(document: str, task_id: str, new_status: str) -> str:
    """Rewrite the status marker of ``task_id`` and return the new document.

    Only the marker character of the first matching line changes. A task id
    is matched as a whole token, so ``1.1`` never rewrites ``1.10`` or
    ``1.1.1``. When no line matches the document is returned unchanged.
    """
    if new_status not in STATUS_MARKERS:
        raise ValueError(f"Unknown task status: {new_status}")

    pattern = re.compile(
        rf"^({_INDENT}- \[){_MARKER}(\] {re.escape(task_id)}\. .+)$",
        re.MULTILINE,
    )
    marker = STATUS_MARKERS[new_status]
    updated, count = pattern.subn(lambda m: f"{m.group(1)}{marker}{m.group(2)}", document, count=1)
    if not count:
        logger.debug("No checklist line found for task %s; document unchanged", task_id)
    return updated


def render_tasks(tasks: Sequence[Task], indent: str = "  ") -> str:
    """Render tasks back into checklist lines, indented by depth."""
    lines = []
    for task in tasks:
        line = f"{indent * task.depth}- [{task.marker}] {task.id}. {task.content}"
        if task.requirements:
            line += f" _Requirements: {', '.join(task.requirements)}_"
        lines.append(line)
    return "\n".join(lines) + ("\n" if lines else "")


def summarize_progress(tasks: Sequence[Task]) -> Dict[str, int]:
    """Count tasks per status and the rounded completion percentage."""
    counts = {status: 0 for status in TASK_STATUSES}
    for task in tasks:
        counts[task.status] += 1
    total = len(tasks)
    return {
        "total": total,
        "done": counts["done"],
        "in_progress": counts["in_progress"],
        "pending": counts["pending"],
        "percent": int(counts["done"] * 100 / total + 0.5) if total else 0,
    }
