# tests/test_bootstrap.py

from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksync.cli.bootstrap import create_initial_state, shutdown
from tasksync.logging_setup import _ConsoleNoiseFilter, setup_logging
from tasksync.tasks.task_cache import SqliteSnapshotCache
from tasksync.tasks.task_gateway import HttpTaskGateway


@pytest.mark.asyncio
async def test_create_initial_state_wires_real_components(settings: SimpleNamespace) -> None:
    settings.toggle_route = "patch"

    state = create_initial_state(settings=settings)
    try:
        assert isinstance(state.gateway, HttpTaskGateway)
        assert isinstance(state.cache, SqliteSnapshotCache)
        assert state.gateway.base_url == "http://store.test"
        assert settings.cache_db_path.exists()
        assert state.engine.tasks == ()
        assert state.cache.read_snapshot() is None
    finally:
        await shutdown(state)


def test_setup_logging_writes_log_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    try:
        log_file = setup_logging(log_dir=tmp_path, console_level=logging.WARNING)
        logging.getLogger("tasksync.test").debug("hello file")
        for h in root.handlers:
            h.flush()

        assert log_file == tmp_path / "tasksync.log"
        assert "hello file" in log_file.read_text("utf-8")
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    ("name", "level", "quiet", "verbose"),
    [
        ("tasksync.tasks.task_engine", logging.DEBUG, True, True),
        ("tasksync.tasks.task_gateway", logging.INFO, False, True),
        ("tasksync.tasks.task_gateway", logging.WARNING, True, True),
        ("httpx", logging.INFO, False, True),
        ("py.warnings", logging.WARNING, False, False),
        ("asyncio", logging.ERROR, True, True),
    ],
)
def test_console_filter_hides_http_chatter_unless_enabled(name: str, level: int, quiet: bool, verbose: bool) -> None:
    record = _record(name, level)

    assert _ConsoleNoiseFilter().filter(record) is quiet
    assert _ConsoleNoiseFilter(log_http=True).filter(record) is verbose
