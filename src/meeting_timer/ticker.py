"""Periodic tick driver for the agenda engine."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import EngineSettings
from .db import open_database, save_snapshot
from .engine import AgendaTimerEngine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TickerState:
    ticks: int = 0
    last_flush_time: datetime = field(default_factory=datetime.now)


class TickDriver:
    """Ticks the engine at a fixed interval and snapshots it to SQLite."""

    def __init__(
        self,
        engine: AgendaTimerEngine,
        db_path: Optional[Path] = None,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self.engine = engine
        self.db_path = Path(db_path) if db_path else None
        self.settings = settings or engine.settings
        self._conn = (
            open_database(self.db_path, check_same_thread=False) if self.db_path else None
        )
        self._state = TickerState()
        self._lock = threading.Lock()

    def run_forever(self) -> None:
        stop_event = threading.Event()
        try:
            self._run_loop(stop_event)
        except KeyboardInterrupt:
            logger.info("Tick driver interrupted; saving meetings.")
        finally:
            self._shutdown()

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        """Run the driver until the provided event is set."""
        try:
            self._run_loop(stop_event)
        finally:
            self._shutdown()

    def tick_once(self) -> None:
        try:
            self.engine.tick()
        except Exception:
            logger.exception("Engine tick failed.")
        self._state.ticks += 1

    def flush_if_needed(self) -> None:
        elapsed = datetime.now() - self._state.last_flush_time
        if elapsed >= self.settings.flush_interval:
            self.flush()

    def flush(self) -> None:
        if self._conn is None:
            return
        snapshot = self.engine.snapshot()
        with self._lock:
            save_snapshot(self._conn, snapshot)
            self._state.last_flush_time = datetime.now()
        logger.debug("Saved %d meetings.", len(snapshot["meetings"]))

    def _run_loop(self, stop_event: threading.Event) -> None:
        logger.info("Starting tick driver; saving to %s", self.db_path)
        interval = self.settings.tick_interval.total_seconds()
        while not stop_event.is_set():
            self.tick_once()
            self.flush_if_needed()
            stop_event.wait(interval)

    def _shutdown(self) -> None:
        try:
            self.flush()
        finally:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            logger.info("Tick driver stopped.")
