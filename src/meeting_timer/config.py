"""Configuration models and helpers for the meeting timer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class EngineSettings:
    """Runtime configuration for the agenda engine and its tick driver."""

    tick_interval: timedelta = timedelta(seconds=1)
    flush_interval: timedelta = timedelta(seconds=30)
    auto_transition_delay: timedelta = timedelta(seconds=1)
    warning_threshold: int = 300
    overtime_interval: int = 60
    progress_cap: float = 150.0

    @classmethod
    def from_intervals(
        cls,
        tick_seconds: float,
        flush_seconds: float | None = None,
        auto_transition_seconds: float | None = None,
    ) -> "EngineSettings":
        flush = flush_seconds if flush_seconds is not None else max(tick_seconds * 30, 30.0)
        delay = auto_transition_seconds if auto_transition_seconds is not None else 1.0
        return cls(
            tick_interval=timedelta(seconds=tick_seconds),
            flush_interval=timedelta(seconds=flush),
            auto_transition_delay=timedelta(seconds=delay),
        )
