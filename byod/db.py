from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime
from threading import Lock
from typing import Any

from .settings import settings

logger = logging.getLogger("byod")

_schema_lock = Lock()
_schema_ready: set[str] = set()


def utc_now() -> str:
    return datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    A bind-mounted path that did not exist on the host shows up as a
    directory inside a container; in that case the DB file goes inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "byod.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    path = _resolve_db_path()
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    if path not in _schema_ready:
        with _schema_lock:
            if path not in _schema_ready:
                _create_schema(conn)
                _schema_ready.add(path)
    return conn


def _create_schema(conn: sqlite3.Connection) -> None:
    with conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              service_name TEXT,
              service_id TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            """
        )


def init_db() -> None:
    """Create tables if they do not exist."""
    connect().close()


def log_event(
    level: str,
    message: str,
    service_name: str | None = None,
    service_id: str | None = None,
) -> None:
    """Record an event in the log table and on the ``byod`` logger.

    DEBUG events only reach the logger; everything else is also persisted
    so ``GET /events`` can show what the watcher did.
    """
    level = level.upper()
    numeric = logging.getLevelName(level)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    prefix = f"[{service_name}] " if service_name else ""
    logger.log(numeric, "%s%s", prefix, message)

    if numeric <= logging.DEBUG:
        return
    try:
        with connect() as conn:
            conn.execute(
                "INSERT INTO events (ts, level, service_name, service_id, message) VALUES (?, ?, ?, ?, ?)",
                (utc_now(), level, service_name, service_id, message),
            )
    except sqlite3.Error as e:
        logger.error("Could not persist event: %s: %s", type(e).__name__, e)


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
