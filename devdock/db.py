from __future__ import annotations

import os
import sqlite3
import warnings
from datetime import datetime, timezone
from typing import Any

from .settings import Settings, settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path(cfg: Settings | None = None) -> str:
    """Return a file path usable by sqlite.

    If the configured path is an existing directory, the journal is placed
    inside it as ``events.db``. Missing parent directories are created.
    """

    cfg = cfg or settings
    p = os.path.abspath(os.path.expanduser(cfg.db_path))

    if os.path.isdir(p):
        p = os.path.join(p, "events.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect(cfg: Settings | None = None) -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(cfg))
    conn.row_factory = sqlite3.Row
    return conn


def init_db(cfg: Settings | None = None) -> None:
    """Create tables if they do not exist."""
    with connect(cfg) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              service_name TEXT,
              step TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            """
        )


def log_event(
    level: str,
    message: str,
    service_name: str | None = None,
    step: str | None = None,
    cfg: Settings | None = None,
) -> None:
    """Append a row to the event journal.

    The journal is best effort: a broken database must not interrupt a
    lifecycle run, so sqlite and filesystem failures only emit a warning.
    Components pass their own settings as cfg; None means the module default.
    """
    cfg = cfg or settings
    if not cfg.event_log:
        return
    try:
        init_db(cfg)
        with connect(cfg) as conn:
            conn.execute(
                "INSERT INTO events (ts, level, service_name, step, message) VALUES (?, ?, ?, ?, ?)",
                (utc_now(), level.upper(), service_name, step, message),
            )
    except (sqlite3.Error, OSError) as e:
        warnings.warn(f"devdock event log unavailable: {e}", RuntimeWarning, stacklevel=2)


def latest_events(limit: int = 100, cfg: Settings | None = None) -> list[dict[str, Any]]:
    init_db(cfg)
    with connect(cfg) as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
