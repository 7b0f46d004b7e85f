# src/tasksync/tasks/task_cache.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path

from .task_models import Task

logger = logging.getLogger(__name__)

DEFAULT_KEY = "tasks_snapshot"


class SqliteSnapshotCache:
    """
    SQLite-backed durable cache for the last confirmed task list.

    Storage is a plain key/value table; this cache owns exactly one key and
    overwrites it on every write (no history, no expiry).

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "cache.sqlite3", *, key: str = DEFAULT_KEY) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._key = key
        self._ensure_schema()
        logger.info("SnapshotCache ready db=%s key=%s", self._db_path, self._key)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    # ---- public API ----

    def read_snapshot(self) -> list[Task] | None:
        """
        Return the cached task list, or None when nothing usable is stored.

        A snapshot that cannot be decoded is treated as absent (it is only a fallback).
        """
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (self._key,)).fetchone()
        finally:
            conn.close()

        if row is None:
            return None

        try:
            data = json.loads(row["value"])
            if not isinstance(data, list):
                raise ValueError(f"expected a list, got {type(data).__name__}")
            tasks = [Task.from_dict(item) for item in data]
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring undecodable cache snapshot key=%s", self._key, exc_info=True)
            return None

        logger.debug("Read cache snapshot: %d tasks", len(tasks))
        return tasks

    def write_snapshot(self, tasks: list[Task]) -> None:
        payload = json.dumps([t.to_dict() for t in tasks], ensure_ascii=False)
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (self._key, payload, time.time()),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Wrote cache snapshot: %d tasks", len(tasks))

    def clear(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM kv WHERE key = ?", (self._key,))
            conn.commit()
        finally:
            conn.close()
