# src/tasksync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the concrete gateway and cache into the reconciliation engine.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..tasks.task_cache import SqliteSnapshotCache
from ..tasks.task_engine import ReconciliationEngine
from ..tasks.task_gateway import HttpTaskGateway

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.cache_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().

    Must be called from inside the event loop that will use the gateway.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    gateway = HttpTaskGateway(
        settings.api_base_url,
        timeout_seconds=settings.request_timeout_seconds,
        connect_timeout_seconds=settings.connect_timeout_seconds,
    )
    cache = SqliteSnapshotCache(settings.cache_db_path, key=settings.cache_key)
    engine = ReconciliationEngine(gateway, cache, toggle_route=settings.toggle_route)

    logger.info(
        "Wired engine: store=%s cache=%s toggle_route=%s",
        settings.api_base_url,
        settings.cache_db_path,
        settings.toggle_route,
    )
    return AppState(settings=settings, gateway=gateway, cache=cache, engine=engine)


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown: let in-flight confirmations finish, then close the HTTP client."""
    try:
        await state.engine.drain()
    except Exception:
        logger.exception("Failed to drain in-flight operations.")

    try:
        await state.gateway.aclose()
    except Exception:
        logger.debug("Gateway close failed.", exc_info=True)
