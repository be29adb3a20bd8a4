"""Per-user locations of the meetings database and the log file."""

from __future__ import annotations

from pathlib import Path

from platformdirs import user_data_path

APP_NAME = "MeetingTimer"


def get_data_dir() -> Path:
    """Directory holding the meetings database and log, created on first use."""
    return user_data_path(APP_NAME, appauthor=False, roaming=True, ensure_exists=True)


def get_db_path() -> Path:
    return get_data_dir() / "meetings.sqlite3"


def get_log_path() -> Path:
    return get_data_dir() / "timer.log"
