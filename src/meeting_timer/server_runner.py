"""Helpers to launch the local meeting timer API server."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import uvicorn

from .config import EngineSettings
from .paths import get_db_path
from .webapp import create_app

logger = logging.getLogger(__name__)


def run_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8766,
    db_path: Optional[Path] = None,
    settings: Optional[EngineSettings] = None,
    log_level: str = "info",
) -> None:
    """Serve the agenda timer API until interrupted.

    Meetings are restored from ``db_path`` on startup and saved back on every
    change and when the server shuts down.
    """
    resolved_db_path = db_path or get_db_path()
    app = create_app(
        db_path=resolved_db_path,
        settings=settings or EngineSettings(),
    )
    logger.info(
        "Serving meeting timer on http://%s:%d (API docs at /docs, data in %s)",
        host,
        port,
        resolved_db_path,
    )
    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)
