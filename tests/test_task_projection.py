# tests/test_task_projection.py

from __future__ import annotations

from datetime import timedelta

from tasksync.tasks.task_models import PendingOp, Priority, Task
from tasksync.tasks.task_projection import TaskFilter, order_tasks, project, summarize

from .fakes import T0


def _confirmed(task_id: str, minutes: int, **kw) -> Task:
    return Task(id=task_id, title=task_id, description="d", created_at=T0 + timedelta(minutes=minutes), **kw)


def test_order_puts_provisional_first_then_newest_confirmed() -> None:
    tasks = [
        _confirmed("old", 0),
        Task(id="local-2", title="n2", description="d"),
        _confirmed("new", 10),
        Task(id="local-1", title="n1", description="d"),
        _confirmed("mid", 5),
    ]

    assert [t.id for t in order_tasks(tasks)] == ["local-2", "local-1", "new", "mid", "old"]


def test_project_annotates_pending_markers() -> None:
    tasks = [_confirmed("a", 1), _confirmed("b", 2)]

    views = project(tasks, {"a": PendingOp.UPDATING})

    assert [(v.task.id, v.pending, v.busy) for v in views] == [
        ("b", PendingOp.NONE, False),
        ("a", PendingOp.UPDATING, True),
    ]


def test_project_filters_by_status_and_priority() -> None:
    tasks = [
        _confirmed("a", 1, completed=True, priority=Priority.HIGH),
        _confirmed("b", 2, priority=Priority.HIGH),
        _confirmed("c", 3, priority=Priority.LOW),
    ]

    assert [v.task.id for v in project(tasks, {}, TaskFilter(status="open"))] == ["c", "b"]
    assert [v.task.id for v in project(tasks, {}, TaskFilter(status="done"))] == ["a"]
    assert [v.task.id for v in project(tasks, {}, TaskFilter(priority=Priority.HIGH))] == ["b", "a"]
    assert [v.task.id for v in project(tasks, {}, TaskFilter("open", Priority.HIGH))] == ["b"]


def test_project_does_not_mutate_input() -> None:
    tasks = [_confirmed("a", 1), _confirmed("b", 2)]
    snapshot = list(tasks)

    project(tasks, {})

    assert tasks == snapshot


def test_summarize_counts() -> None:
    tasks = [
        _confirmed("a", 1, completed=True),
        _confirmed("b", 2),
        Task(id="local-1", title="n", description="d"),
    ]

    s = summarize(tasks, {"local-1": PendingOp.CREATING})

    assert (s.total, s.open, s.done, s.pending) == (3, 2, 1, 1)
