# src/tasksync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The reconciliation engine depends on Protocols instead of concrete implementations.
This keeps the HTTP transport and the cache backend swappable and makes testing easier.
"""

from typing import Any, Awaitable, Protocol

from ..tasks.task_models import Task, TaskDraft


class TaskGateway(Protocol):
    """
    Remote authoritative store.

    Every call is one request/response. Failures (including ambiguous ones) raise GatewayError.
    """

    def fetch_all(self) -> Awaitable[list[Task]]: ...
    def create_one(self, draft: TaskDraft) -> Awaitable[Task]: ...
    def update_one(self, task_id: str, fields: dict[str, Any]) -> Awaitable[Task]: ...
    def toggle_one(self, task_id: str) -> Awaitable[Task]: ...
    def delete_one(self, task_id: str) -> Awaitable[None]: ...


class SnapshotCache(Protocol):
    """Holds exactly one snapshot of the last confirmed task list."""

    def read_snapshot(self) -> list[Task] | None: ...
    def write_snapshot(self, tasks: list[Task]) -> None: ...
