# src/tasksync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

APP_LOGGER = "tasksync"

# Per-request chatter: the gateway logs every call, httpx/httpcore log every request at INFO.
HTTP_LOGGERS = ("tasksync.tasks.task_gateway", "httpx", "httpcore")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable while the user types commands.

    tasksync records pass, except HTTP chatter below WARNING (unless `log_http`).
    Everything else, captured Python warnings included, needs ERROR+.
    The file handler is not filtered.
    """

    def __init__(self, *, log_http: bool = False) -> None:
        super().__init__()
        self._log_http = log_http

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name in HTTP_LOGGERS:
            return self._log_http or record.levelno >= logging.WARNING

        if record.name == APP_LOGGER or record.name.startswith(APP_LOGGER + "."):
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasksync",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    log_http: bool = False,
) -> Path:
    """
    Install a filtered stderr handler and a full file log (<log_dir>/tasksync.log).

    Call once, before the first log record. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tasksync.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter(log_http=log_http))
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    http_level = logging.DEBUG if log_http else logging.WARNING
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(http_level)

    return log_file
