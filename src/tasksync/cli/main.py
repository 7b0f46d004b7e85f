# src/tasksync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState inside the event loop, performs the initial load
(falling back to the cached snapshot) and runs the console REPL.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import SyncError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)
    try:
        if settings.load_on_start:
            try:
                result = await state.engine.load()
                if result.stale:
                    logger.warning("Store unreachable; started with %d cached tasks.", len(result.tasks))
                else:
                    logger.info("Loaded %d tasks.", len(result.tasks))
            except SyncError as e:
                logger.warning("Initial load failed and no cache is available: %s", e)

        await run_console_loop(state)
    finally:
        await shutdown(state)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level, log_http=settings.log_http)

    logger.info("Starting %s...", settings.app_name)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")

    logger.info("Bye.")


if __name__ == "__main__":
    main()
