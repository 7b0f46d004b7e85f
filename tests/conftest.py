# tests/conftest.py

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksync.core.state import AppState
from tasksync.tasks.task_engine import ReconciliationEngine
from tasksync.tasks.task_models import Priority, Task

from .fakes import T0, FakeCache, FakeGateway


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasksync-test",
        api_base_url="http://store.test",
        request_timeout_seconds=1.0,
        connect_timeout_seconds=1.0,
        toggle_route="put",
        data_dir=tmp_path,
        cache_db_path=tmp_path / "cache.sqlite3",
        cache_key="tasks_snapshot",
        load_on_start=False,
    )


@pytest.fixture()
def seed_tasks() -> list[Task]:
    """Three confirmed tasks, oldest first."""
    return [
        Task(id="t1", title="First", description="one", created_at=T0 - timedelta(days=3)),
        Task(
            id="t2",
            title="Second",
            description="two",
            priority=Priority.HIGH,
            created_at=T0 - timedelta(days=2),
        ),
        Task(
            id="t3",
            title="Third",
            description="three",
            completed=True,
            created_at=T0 - timedelta(days=1),
        ),
    ]


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture()
def engine(gateway: FakeGateway, cache: FakeCache) -> ReconciliationEngine:
    return ReconciliationEngine(gateway, cache)


@pytest.fixture()
def state(settings: SimpleNamespace, gateway: FakeGateway, cache: FakeCache, engine) -> AppState:
    """AppState wired with in-memory fakes instead of HTTP/SQLite."""
    return AppState(settings=settings, gateway=gateway, cache=cache, engine=engine)  # type: ignore[arg-type]
