"""SQLite snapshot store for meetings."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

logger = logging.getLogger(__name__)

DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"

SNAPSHOT_KEYS = ("current_meeting", "meetings")


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS snapshots (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        """
    )


def save_snapshot(conn: sqlite3.Connection, snapshot: Mapping[str, Any]) -> None:
    """Persist the durable engine fields in one transaction."""
    updated_at = datetime.now().strftime(DATETIME_FMT)
    conn.execute("BEGIN")
    try:
        conn.executemany(
            """
            INSERT INTO snapshots (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            [(key, json.dumps(snapshot.get(key)), updated_at) for key in SNAPSHOT_KEYS],
        )
    except Exception:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def load_snapshot(conn: sqlite3.Connection) -> Optional[dict[str, Any]]:
    """Return the stored snapshot, or None when nothing usable was saved."""
    rows = conn.execute(
        "SELECT key, value FROM snapshots WHERE key IN (?, ?)", SNAPSHOT_KEYS
    ).fetchall()
    if not rows:
        return None
    snapshot: dict[str, Any] = {"current_meeting": None, "meetings": []}
    for row in rows:
        try:
            snapshot[row["key"]] = json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt snapshot entry %s", row["key"])
            return None
    return snapshot


def fetch_last_saved(conn: sqlite3.Connection) -> Optional[datetime]:
    row = conn.execute("SELECT MAX(updated_at) AS updated_at FROM snapshots").fetchone()
    if row is None or row["updated_at"] is None:
        return None
    return datetime.strptime(row["updated_at"], DATETIME_FMT)
