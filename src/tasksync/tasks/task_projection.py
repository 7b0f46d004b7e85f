# src/tasksync/tasks/task_projection.py

"""
List projection: what the user sees, derived from canonical state.

Pure functions only. No I/O, no state of its own.

Ordering:
- provisional tasks (not yet confirmed by the store) first, newest local insertion first;
- then confirmed tasks by created_at, newest first.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Literal

from .task_models import PendingOp, Priority, Task

StatusFilter = Literal["all", "open", "done"]


@dataclass(slots=True, frozen=True)
class TaskFilter:
    status: StatusFilter = "all"
    priority: Priority | None = None

    def matches(self, task: Task) -> bool:
        if self.status == "open" and task.completed:
            return False
        if self.status == "done" and not task.completed:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        return True


@dataclass(slots=True, frozen=True)
class TaskView:
    task: Task
    pending: PendingOp

    @property
    def busy(self) -> bool:
        """True while an operation is in flight (controls should be disabled)."""
        return self.pending is not PendingOp.NONE


@dataclass(slots=True, frozen=True)
class ListSummary:
    total: int
    open: int
    done: int
    pending: int


def order_tasks(tasks: Iterable[Task]) -> list[Task]:
    """
    Provisional tasks keep their relative (newest-first) order; confirmed ones are
    sorted by created_at descending. The sort is stable for equal timestamps.
    """
    provisional: list[Task] = []
    confirmed: list[Task] = []
    for t in tasks:
        (provisional if t.created_at is None else confirmed).append(t)
    confirmed.sort(key=lambda t: t.created_at, reverse=True)  # type: ignore[arg-type,return-value]
    return provisional + confirmed


def project(
    tasks: Iterable[Task],
    pending: Mapping[str, PendingOp],
    task_filter: TaskFilter | None = None,
) -> list[TaskView]:
    views = [TaskView(task=t, pending=pending.get(t.id, PendingOp.NONE)) for t in order_tasks(tasks)]
    if task_filter is None:
        return views
    return [v for v in views if task_filter.matches(v.task)]


def summarize(tasks: Iterable[Task], pending: Mapping[str, PendingOp]) -> ListSummary:
    total = done = busy = 0
    for t in tasks:
        total += 1
        if t.completed:
            done += 1
        if pending.get(t.id, PendingOp.NONE) is not PendingOp.NONE:
            busy += 1
    return ListSummary(total=total, open=total - done, done=done, pending=busy)
