# src/tasksync/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..core.errors import ValidationError

TITLE_MAX_LEN = 50
DESCRIPTION_MAX_LEN = 200

LOCAL_ID_PREFIX = "local-"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, raw: str | None) -> Priority:
        """Lenient decode for stored/wire values: unknown -> MEDIUM."""
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.MEDIUM


class PendingOp(StrEnum):
    """
    In-flight operation marker for a task.

    "none" is never stored: a task without a pending operation is simply absent
    from the engine's pending map.
    """

    NONE = "none"
    CREATING = "creating"
    UPDATING = "updating"
    DELETING = "deleting"


def new_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_local_id(task_id: str) -> bool:
    return task_id.startswith(LOCAL_ID_PREFIX)


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    title: str
    description: str
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    # Assigned by the store; None until the create is confirmed.
    created_at: datetime | None = None

    @property
    def is_provisional(self) -> bool:
        return self.created_at is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "completed": self.completed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        raw_ts = data.get("created_at")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            priority=Priority.parse(data.get("priority")),
            completed=bool(data.get("completed", False)),
            created_at=datetime.fromisoformat(raw_ts) if raw_ts else None,
        )


def _clean_text(field: str, value: Any, max_len: int) -> str:
    text = ("" if value is None else str(value)).strip()
    if not text:
        raise ValidationError(field, "must not be empty")
    if len(text) > max_len:
        raise ValidationError(field, f"must be at most {max_len} characters")
    return text


def clean_title(value: Any) -> str:
    return _clean_text("title", value, TITLE_MAX_LEN)


def clean_description(value: Any) -> str:
    return _clean_text("description", value, DESCRIPTION_MAX_LEN)


def clean_priority(value: Priority | str | None) -> Priority:
    if value is None:
        return Priority.MEDIUM
    if isinstance(value, Priority):
        return value
    try:
        return Priority(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(p.value for p in Priority)
        raise ValidationError("priority", f"must be one of: {allowed}") from None


@dataclass(slots=True, frozen=True)
class TaskDraft:
    """
    Validated input for creating a task.

    Only TaskDraft.create() should be used to build one; the gateway accepts nothing else
    for creation, so an empty title/description never reaches the store.
    """

    title: str
    description: str
    priority: Priority = Priority.MEDIUM

    @classmethod
    def create(
        cls,
        title: Any,
        description: Any,
        priority: Priority | str | None = None,
    ) -> TaskDraft:
        return cls(
            title=clean_title(title),
            description=clean_description(description),
            priority=clean_priority(priority),
        )

    def to_task(self, task_id: str) -> Task:
        return Task(
            id=task_id,
            title=self.title,
            description=self.description,
            priority=self.priority,
        )
