"""Build an engine for one application session from the snapshot store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import EngineSettings
from .db import database_connection, load_snapshot, save_snapshot
from .engine import AgendaTimerEngine
from .notifications import Notifier

logger = logging.getLogger(__name__)


def open_engine(
    db_path: Path,
    *,
    settings: Optional[EngineSettings] = None,
    notifier: Optional[Notifier] = None,
) -> AgendaTimerEngine:
    """Create an engine and rehydrate the saved meetings into it.

    A missing or unreadable snapshot yields an empty engine.
    """
    engine = AgendaTimerEngine(notifier, settings=settings)
    restore_engine(engine, db_path)
    return engine


def restore_engine(engine: AgendaTimerEngine, db_path: Path) -> bool:
    with database_connection(db_path) as conn:
        snapshot = load_snapshot(conn)
    if snapshot is None:
        return False
    try:
        engine.restore(snapshot)
    except (KeyError, TypeError, ValueError):
        logger.exception("Ignoring unreadable snapshot in %s", db_path)
        return False
    return True


def save_engine(engine: AgendaTimerEngine, db_path: Path) -> None:
    snapshot = engine.snapshot()
    with database_connection(db_path) as conn:
        save_snapshot(conn, snapshot)
