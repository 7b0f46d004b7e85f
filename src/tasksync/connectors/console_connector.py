# src/tasksync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str | None]) -> None:
    """Read stdin in a daemon thread; None is queued on EOF."""

    def _push(item: str | None) -> None:
        # The loop may already be closed when the process is exiting.
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(lines.put_nowait, item)

    def _reader() -> None:
        while True:
            try:
                line = input()
            except (EOFError, KeyboardInterrupt):
                _push(None)
                return
            _push(line)

    threading.Thread(target=_reader, name="console-input", daemon=True).start()


def _watch_errors(state: AppState):
    """Print each newly recorded sync error once, as soon as the engine records it."""
    engine = state.engine
    last_seen: list[object] = [engine.last_error]

    def _on_change() -> None:
        err = engine.last_error
        if err is not None and err is not last_seen[0]:
            _print_ts(f"[SYNC] {err}")
        last_seen[0] = err

    return engine.subscribe(_on_change)


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL.

    stdin is read by a daemon thread so that confirmations and rollbacks keep running on
    the event loop while the user is typing.
    """
    logger.info("Console connector started (store=%s).", getattr(state.settings, "api_base_url", "?"))
    _print_ts("[CONSOLE] Use /help for commands, /list to show tasks, /exit to quit.\n")

    def emit(text: str) -> None:
        _print_ts(text)

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    _start_stdin_reader(asyncio.get_running_loop(), lines)

    unsubscribe = _watch_errors(state)
    try:
        while True:
            print("> ", end="", flush=True)
            raw = await lines.get()
            if raw is None:
                logger.info("Console EOF received, exiting.")
                print()
                break
            user_input = raw.strip()

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            if not user_input.startswith("/"):
                user_input = "/add " + user_input if "|" in user_input else "/help"

            try:
                response = await command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is not None:
                _print_ts(response)
    finally:
        unsubscribe()

    logger.info("Console connector finished.")
