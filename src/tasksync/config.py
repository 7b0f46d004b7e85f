# src/tasksync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No network or disk access at import time.
- Components receive settings by injection; get_settings() is only for the entrypoint.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKSYNC"

TOGGLE_ROUTES = ("put", "patch")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    log_http: bool

    # ---- Remote store ----
    api_base_url: str
    request_timeout_seconds: float
    connect_timeout_seconds: float
    toggle_route: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    cache_db_path: Path
    cache_key: str

    # ---- Startup ----
    load_on_start: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasksync").strip() or "tasksync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        log_http = _env_bool(_k("LOG_HTTP"), False)

        api_base_url = _env(_k("API_BASE_URL"), "http://localhost:3000").strip().rstrip("/")
        request_timeout_seconds = _env_float(_k("REQUEST_TIMEOUT_SECONDS"), 10.0)
        connect_timeout_seconds = _env_float(_k("CONNECT_TIMEOUT_SECONDS"), 5.0)

        # Unknown values fall back to the plain PUT contract.
        toggle_route = _env(_k("TOGGLE_ROUTE"), "put").strip().lower()
        if toggle_route not in TOGGLE_ROUTES:
            toggle_route = "put"

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasksync"))
        cache_db_path = _env_path(_k("CACHE_DB_PATH"), data_dir / "cache.sqlite3")
        cache_key = _env(_k("CACHE_KEY"), "tasks_snapshot").strip() or "tasks_snapshot"

        load_on_start = _env_bool(_k("LOAD_ON_START"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            log_http=log_http,
            api_base_url=api_base_url,
            request_timeout_seconds=request_timeout_seconds,
            connect_timeout_seconds=connect_timeout_seconds,
            toggle_route=toggle_route,
            data_dir=data_dir,
            cache_db_path=cache_db_path,
            cache_key=cache_key,
            load_on_start=load_on_start,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
