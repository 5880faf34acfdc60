from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from threading import Lock
from typing import Any

logger = logging.getLogger("fnrun.events")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path(path: str) -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (e.g. a bind mount created by
    Docker), the DB file is placed inside it.
    """
    p = os.path.abspath(path)
    if os.path.isdir(p):
        p = os.path.join(p, "fnrun.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)
    return p


class EventLog:
    """Journal of lifecycle events.

    Every event goes to the ``fnrun.events`` logger. When a database path is
    given the event is also stored in a sqlite ``events`` table so that the
    front end can serve the most recent ones.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = _resolve_db_path(path) if path else None
        self._lock = Lock()
        if self.path:
            self._init_db()

    def _connect(self) -> sqlite3.Connection:
        assert self.path is not None
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS events (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  ts TEXT NOT NULL,
                  level TEXT NOT NULL,
                  function TEXT,
                  message TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
                """
            )

    def log(self, level: str, message: str, function: str | None = None) -> None:
        level = level.upper()
        logger.log(_LEVELS.get(level, logging.INFO), "%s%s", f"[{function}] " if function else "", message)
        if not self.path:
            return
        with self._lock, self._connect() as conn:
            conn.execute(
                "INSERT INTO events (ts, level, function, message) VALUES (?, ?, ?, ?)",
                (utc_now(), level, function, message),
            )

    def info(self, message: str, function: str | None = None) -> None:
        self.log("INFO", message, function)

    def warn(self, message: str, function: str | None = None) -> None:
        self.log("WARN", message, function)

    def error(self, message: str, function: str | None = None) -> None:
        self.log("ERROR", message, function)

    def latest(self, limit: int = 100) -> list[dict[str, Any]]:
        if not self.path:
            return []
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (int(limit),)).fetchall()
            return [dict(r) for r in rows]
