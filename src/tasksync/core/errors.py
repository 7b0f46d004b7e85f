# src/tasksync/core/errors.py

"""
Error taxonomy.

- ValidationError / NotFoundError / ConflictError: rejected synchronously, no state change.
- GatewayError: a remote call failed or its outcome is unknown.
- SyncError: a GatewayError that caused a rollback, a re-sync or a cache fallback.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..tasks.task_models import TaskDraft


class TaskSyncError(Exception):
    """Base class for every error raised by tasksync."""


class ValidationError(TaskSyncError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(TaskSyncError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class ConflictError(TaskSyncError):
    def __init__(self, task_id: str, pending: str) -> None:
        super().__init__(f"Task {task_id} already has a pending '{pending}' operation")
        self.task_id = task_id
        self.pending = pending


class GatewayError(TaskSyncError):
    """
    Uniform failure of a remote call.

    ambiguous=True means the request may have reached the store (timeout/read error
    after sending); it is still treated as a failure.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        *,
        status_code: int | None = None,
        ambiguous: bool = False,
    ) -> None:
        detail = f"{operation} failed"
        if status_code is not None:
            detail += f" (HTTP {status_code})"
        super().__init__(f"{detail}: {message}")
        self.operation = operation
        self.message = message
        self.status_code = status_code
        self.ambiguous = ambiguous


class SyncError(TaskSyncError):
    def __init__(
        self,
        operation: str,
        cause: GatewayError,
        *,
        task_id: str | None = None,
        draft: TaskDraft | None = None,
        stale: bool = False,
    ) -> None:
        msg = f"{operation} could not be synchronized: {cause}"
        if stale:
            msg += " (showing stale data from local cache)"
        super().__init__(msg)
        self.operation = operation
        self.cause = cause
        self.task_id = task_id
        self.draft = draft
        self.stale = stale
        self.__cause__ = cause
