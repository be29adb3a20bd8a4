"""FastAPI application that exposes the agenda timer over a local HTTP API."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field

from .config import EngineSettings
from .engine import AgendaTimerEngine
from .paths import get_db_path
from .session import open_engine, save_engine
from .ticker import TickDriver

logger = logging.getLogger(__name__)


class TickerRunner:
    """Owns the tick driver thread that serves one FastAPI app.

    While the driver runs, saves go through its connection so the periodic
    flush and request-triggered saves share one SQLite handle. Without a
    driver (tests, or before startup) each save opens the database briefly.
    """

    def __init__(
        self, engine: AgendaTimerEngine, db_path: Path, settings: EngineSettings
    ) -> None:
        self._engine = engine
        self._db_path = Path(db_path)
        self._settings = settings
        self._lock = threading.Lock()
        self._driver: Optional[TickDriver] = None
        self._driver_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def start(self) -> None:
        """Start ticking; a second call while the driver is alive does nothing."""
        with self._lock:
            if self._driver_thread is not None and self._driver_thread.is_alive():
                return
            self._stop_event = threading.Event()
            self._driver = TickDriver(
                self._engine, db_path=self._db_path, settings=self._settings
            )
            self._driver_thread = threading.Thread(
                target=self._driver.run_until_stopped,
                args=(self._stop_event,),
                name="tick-driver",
                daemon=True,
            )
            self._driver_thread.start()
        logger.info("Tick driver thread started for %s", self._db_path)

    def stop(self) -> None:
        """Stop the driver and wait for its final save."""
        with self._lock:
            thread = self._driver_thread
            self._stop_event.set()
            self._driver_thread = None
            self._driver = None
        if thread is not None and thread.is_alive():
            thread.join(timeout=10)
            logger.info("Tick driver thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return self._driver_thread is not None and self._driver_thread.is_alive()

    def save(self) -> None:
        """Write the engine snapshot now instead of waiting for the next flush."""
        with self._lock:
            driver = self._driver
        if driver is not None:
            driver.flush()
        else:
            save_engine(self._engine, self._db_path)


class MeetingCreate(BaseModel):
    title: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


class MeetingTitleUpdate(BaseModel):
    title: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


class BellSettingsPayload(BaseModel):
    start: Optional[bool] = None
    five_min_warning: Optional[bool] = None
    end: Optional[bool] = None
    overtime: Optional[bool] = None
    sound_type: Optional[
        Literal["single", "double", "loop", "complete", "warning", "start"]
    ] = None

    model_config = ConfigDict(extra="forbid")


class MeetingSettingsUpdate(BaseModel):
    auto_transition: Optional[bool] = None
    silent_mode: Optional[bool] = None
    bell_settings: Optional[BellSettingsPayload] = None

    model_config = ConfigDict(extra="forbid")


class AgendaCreate(BaseModel):
    title: str = Field(min_length=1)
    planned_duration: int = Field(gt=0, description="Planned duration in seconds.")
    memo: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class AgendaUpdate(BaseModel):
    title: Optional[str] = None
    planned_duration: Optional[int] = Field(default=None, gt=0)
    memo: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class AgendaOrder(BaseModel):
    agenda_ids: list[str]

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[EngineSettings] = None,
    engine: Optional[AgendaTimerEngine] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or EngineSettings()
    resolved_engine = engine or open_engine(resolved_db_path, settings=resolved_settings)
    runner = TickerRunner(resolved_engine, resolved_db_path, resolved_settings)
    if resolved_engine.on_change is None:
        resolved_engine.on_change = runner.save

    app = FastAPI(title="Meeting Timer", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.engine = resolved_engine
    app.state.ticker_runner = runner

    static_dir = Path(__file__).parent / "static"
    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=static_dir), name="static")

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        runner.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        runner.stop()

    def _engine(request: Request) -> AgendaTimerEngine:
        return request.app.state.engine

    def _require(
        engine: AgendaTimerEngine, meeting_id: str, agenda_id: Optional[str] = None
    ) -> None:
        if not engine.contains(meeting_id):
            raise HTTPException(status_code=404, detail="Meeting not found")
        if agenda_id is not None and not engine.contains(meeting_id, agenda_id):
            raise HTTPException(status_code=404, detail="Agenda item not found")

    def _found(payload: Optional[Dict[str, Any]], what: str = "Meeting") -> Dict[str, Any]:
        # A concurrent delete can remove the entity between the write and the read.
        if payload is None:
            raise HTTPException(status_code=404, detail=f"{what} not found")
        return payload

    def _saved(request: Request, payload: Dict[str, Any]) -> Dict[str, Any]:
        request.app.state.ticker_runner.save()
        return payload

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "ticker_running": request.app.state.ticker_runner.is_running(),
            "database_path": str(request.app.state.db_path),
            "tick_seconds": resolved_settings.tick_interval.total_seconds(),
            "flush_seconds": resolved_settings.flush_interval.total_seconds(),
        }

    @app.get("/api/state")
    def state(request: Request) -> Dict[str, Any]:
        return _engine(request).state_payload()

    @app.get("/api/meetings")
    def list_meetings(request: Request) -> Dict[str, Any]:
        return _engine(request).meetings_payload()

    @app.post("/api/meetings", status_code=201)
    def create_meeting(payload: MeetingCreate, request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        meeting = engine.create_meeting(payload.title)
        return _saved(request, {"meeting": _found(engine.meeting_payload(meeting.id))})

    @app.patch("/api/meetings/{meeting_id}")
    def update_meeting_title(
        meeting_id: str, payload: MeetingTitleUpdate, request: Request
    ) -> Dict[str, Any]:
        engine = _engine(request)
        _require(engine, meeting_id)
        engine.update_meeting_title(meeting_id, payload.title)
        return _saved(request, {"meeting": _found(engine.meeting_payload(meeting_id))})

    @app.delete("/api/meetings/{meeting_id}")
    def delete_meeting(meeting_id: str, request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        _require(engine, meeting_id)
        engine.delete_meeting(meeting_id)
        return _saved(request, {"deleted": meeting_id})

    @app.post("/api/meetings/{meeting_id}/activate")
    def set_current_meeting(meeting_id: str, request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        _require(engine, meeting_id)
        engine.set_current_meeting(meeting_id)
        return _saved(request, engine.state_payload())

    @app.patch("/api/meetings/{meeting_id}/settings")
    def update_meeting_settings(
        meeting_id: str, payload: MeetingSettingsUpdate, request: Request
    ) -> Dict[str, Any]:
        engine = _engine(request)
        _require(engine, meeting_id)
        bells = (
            payload.bell_settings.model_dump(exclude_none=True)
            if payload.bell_settings
            else None
        )
        engine.update_meeting_settings(
            meeting_id,
            auto_transition=payload.auto_transition,
            silent_mode=payload.silent_mode,
            bell_settings=bells,
        )
        meeting = _found(engine.meeting_payload(meeting_id))
        return _saved(request, {"settings": meeting["settings"]})

    @app.get("/api/meetings/{meeting_id}/report")
    def report(meeting_id: str, request: Request) -> Dict[str, Any]:
        return _found(_engine(request).report(meeting_id))

    @app.post("/api/meetings/{meeting_id}/agenda", status_code=201)
    def add_agenda(
        meeting_id: str, payload: AgendaCreate, request: Request
    ) -> Dict[str, Any]:
        engine = _engine(request)
        _require(engine, meeting_id)
        item = engine.add_agenda(
            meeting_id, payload.title, payload.planned_duration, payload.memo
        )
        if item is None:
            raise HTTPException(status_code=404, detail="Meeting not found")
        agenda = _found(engine.agenda_payload(meeting_id, item.id), "Agenda item")
        return _saved(request, {"agenda": agenda})

    @app.patch("/api/meetings/{meeting_id}/agenda/{agenda_id}")
    def update_agenda(
        meeting_id: str, agenda_id: str, payload: AgendaUpdate, request: Request
    ) -> Dict[str, Any]:
        engine = _engine(request)
        _require(engine, meeting_id, agenda_id)
        updates = payload.model_dump(exclude_unset=True)
        if "title" in updates and not (updates["title"] or "").strip():
            raise HTTPException(status_code=400, detail="title must not be empty")
        engine.update_agenda(meeting_id, agenda_id, **updates)
        agenda = _found(engine.agenda_payload(meeting_id, agenda_id), "Agenda item")
        return _saved(request, {"agenda": agenda})

    @app.delete("/api/meetings/{meeting_id}/agenda/{agenda_id}")
    def delete_agenda(meeting_id: str, agenda_id: str, request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        _require(engine, meeting_id, agenda_id)
        engine.delete_agenda(meeting_id, agenda_id)
        return _saved(request, {"meeting": _found(engine.meeting_payload(meeting_id))})

    @app.post("/api/meetings/{meeting_id}/agenda/{agenda_id}/select")
    def select_agenda(meeting_id: str, agenda_id: str, request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        _require(engine, meeting_id, agenda_id)
        engine.select_agenda(meeting_id, agenda_id)
        return _saved(request, engine.state_payload())

    @app.put("/api/meetings/{meeting_id}/agenda/order")
    def reorder_agendas(
        meeting_id: str, payload: AgendaOrder, request: Request
    ) -> Dict[str, Any]:
        engine = _engine(request)
        _require(engine, meeting_id)
        engine.reorder_agendas(meeting_id, payload.agenda_ids)
        return _saved(request, {"meeting": _found(engine.meeting_payload(meeting_id))})

    @app.post("/api/timer/{action}")
    def timer_action(
        action: Literal["start", "pause", "stop", "next", "sync"], request: Request
    ) -> Dict[str, Any]:
        engine = _engine(request)
        if action == "start":
            engine.start_timer()
        elif action == "pause":
            engine.pause_timer()
        elif action == "stop":
            engine.stop_timer()
        elif action == "next":
            engine.next_agenda()
        else:
            engine.sync_time()
        return _saved(request, engine.state_payload())

    @app.get("/")
    def index(request: Request):
        index_path = (Path(__file__).parent / "static" / "index.html").resolve()
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="UI not found")
        return FileResponse(index_path)

    return app
