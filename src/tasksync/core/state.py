# src/tasksync/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.task_cache import SqliteSnapshotCache
from ..tasks.task_engine import ReconciliationEngine
from ..tasks.task_gateway import HttpTaskGateway


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    gateway: HttpTaskGateway
    cache: SqliteSnapshotCache
    engine: ReconciliationEngine
