"""Command-line interface for the meeting timer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import EngineSettings
from .paths import get_db_path, get_log_path
from .server_runner import run_server
from .session import open_engine, save_engine

app = typer.Typer(help="Local agenda timer for meetings.")


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_file: bool = typer.Option(
        False, "--log-file", help="Also write logs to the per-user log file."
    ),
) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(get_log_path(), encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )


@app.command()
def meetings(
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the meetings SQLite database."
    ),
) -> None:
    """List saved meetings."""
    from .reporting import SummaryPrinter

    engine = open_engine(db_path or get_db_path())
    SummaryPrinter().print_meeting_list(engine.meetings)


@app.command()
def create(
    title: str = typer.Argument(..., help="Title of the new meeting."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the meetings SQLite database."
    ),
) -> None:
    """Create a meeting and make it the current one."""
    resolved = db_path or get_db_path()
    engine = open_engine(resolved)
    meeting = engine.create_meeting(title)
    save_engine(engine, resolved)
    typer.echo(meeting.id)


@app.command("add-agenda")
def add_agenda(
    title: str = typer.Argument(..., help="Title of the agenda item."),
    minutes: float = typer.Option(..., "--minutes", "-m", min=0.1, help="Planned minutes."),
    memo: Optional[str] = typer.Option(None, "--memo", help="Optional note for the item."),
    meeting_id: Optional[str] = typer.Option(
        None, "--meeting", help="Meeting id. Defaults to the current meeting."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the meetings SQLite database."
    ),
) -> None:
    """Append an agenda item to a meeting."""
    resolved = db_path or get_db_path()
    engine = open_engine(resolved)
    target = meeting_id or (engine.current_meeting.id if engine.current_meeting else None)
    item = engine.add_agenda(target, title, minutes * 60, memo) if target else None
    if item is None:
        typer.echo("No such meeting.", err=True)
        raise typer.Exit(code=1)
    save_engine(engine, resolved)
    typer.echo(item.id)


@app.command()
def summary(
    meeting_id: Optional[str] = typer.Option(
        None, "--meeting", help="Meeting id. Defaults to the current meeting."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the meetings SQLite database."
    ),
) -> None:
    """Print planned versus actual time for a meeting."""
    from .reporting import SummaryPrinter

    engine = open_engine(db_path or get_db_path())
    meeting = (
        engine.lifecycle.find_meeting(meeting_id) if meeting_id else engine.current_meeting
    )
    if meeting is None:
        typer.echo("No such meeting.", err=True)
        raise typer.Exit(code=1)
    SummaryPrinter().print_meeting_summary(meeting)


@app.command()
def run(
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the meetings SQLite database."
    ),
    tick_seconds: float = typer.Option(
        1.0, "--interval", min=0.1, help="Tick interval in seconds."
    ),
) -> None:
    """Time the current agenda item in this terminal until Ctrl-C.

    Only that item is timed; it is not advanced when it runs over. Use the
    HTTP API (`serve`) to step through a whole meeting.
    """
    from .ticker import TickDriver

    resolved = db_path or get_db_path()
    settings = EngineSettings.from_intervals(tick_seconds=tick_seconds)
    engine = open_engine(resolved, settings=settings)
    if not engine.start_timer():
        typer.echo("Nothing to time: no current meeting with a pending agenda item.", err=True)
        raise typer.Exit(code=1)
    TickDriver(engine, db_path=resolved, settings=settings).run_forever()


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8766, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the meetings SQLite database."
    ),
    tick_seconds: float = typer.Option(
        1.0, "--interval", min=0.1, help="Tick interval in seconds."
    ),
    flush_seconds: Optional[float] = typer.Option(
        None,
        "--flush-interval",
        min=1.0,
        help="Snapshot save interval in seconds (defaults to 30).",
    ),
) -> None:
    """Start the HTTP API with the background tick driver."""
    settings = EngineSettings.from_intervals(
        tick_seconds=tick_seconds,
        flush_seconds=flush_seconds,
    )
    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
    )
