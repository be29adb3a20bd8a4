"""Domain models for meetings and their agenda items."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class MeetingStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class AgendaStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    OVERTIME = "overtime"


class SoundType(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    LOOP = "loop"
    COMPLETE = "complete"
    WARNING = "warning"
    START = "start"


@dataclass(slots=True)
class BellSettings:
    """Which timing events ring the bell, and with which sound."""

    start: bool = True
    five_min_warning: bool = True
    end: bool = True
    overtime: bool = True
    sound_type: SoundType = SoundType.SINGLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "five_min_warning": self.five_min_warning,
            "end": self.end,
            "overtime": self.overtime,
            "sound_type": self.sound_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BellSettings":
        return cls(
            start=bool(data.get("start", True)),
            five_min_warning=bool(data.get("five_min_warning", True)),
            end=bool(data.get("end", True)),
            overtime=bool(data.get("overtime", True)),
            sound_type=SoundType(data.get("sound_type", SoundType.SINGLE.value)),
        )


@dataclass(slots=True)
class MeetingSettings:
    auto_transition: bool = False
    silent_mode: bool = False
    bell_settings: BellSettings = field(default_factory=BellSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "auto_transition": self.auto_transition,
            "silent_mode": self.silent_mode,
            "bell_settings": self.bell_settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MeetingSettings":
        return cls(
            auto_transition=bool(data.get("auto_transition", False)),
            silent_mode=bool(data.get("silent_mode", False)),
            bell_settings=BellSettings.from_dict(data.get("bell_settings") or {}),
        )


@dataclass(slots=True)
class AgendaItem:
    """A single timed segment of a meeting.

    Durations are whole seconds. ``remaining_time`` goes negative once the
    item runs past its planned duration.
    """

    id: str
    title: str
    planned_duration: int
    order: int = 0
    memo: Optional[str] = None
    actual_duration: int = 0
    remaining_time: int = 0
    status: AgendaStatus = AgendaStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in (
            AgendaStatus.RUNNING,
            AgendaStatus.PAUSED,
            AgendaStatus.OVERTIME,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "memo": self.memo,
            "order": self.order,
            "planned_duration": self.planned_duration,
            "actual_duration": self.actual_duration,
            "remaining_time": self.remaining_time,
            "status": self.status.value,
            "start_time": _format_datetime(self.start_time),
            "end_time": _format_datetime(self.end_time),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgendaItem":
        planned = int(data["planned_duration"])
        actual = int(data.get("actual_duration", 0))
        return cls(
            id=data["id"],
            title=data["title"],
            memo=data.get("memo"),
            order=int(data.get("order", 0)),
            planned_duration=planned,
            actual_duration=actual,
            remaining_time=int(data.get("remaining_time", planned - actual)),
            status=AgendaStatus(data.get("status", AgendaStatus.PENDING.value)),
            start_time=_parse_datetime(data.get("start_time")),
            end_time=_parse_datetime(data.get("end_time")),
        )


@dataclass(slots=True)
class Meeting:
    """A timed session made of ordered agenda items."""

    id: str
    title: str
    agenda: list[AgendaItem] = field(default_factory=list)
    total_planned_duration: int = 0
    total_actual_duration: int = 0
    status: MeetingStatus = MeetingStatus.NOT_STARTED
    current_agenda_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    settings: MeetingSettings = field(default_factory=MeetingSettings)

    def find_agenda(self, agenda_id: Optional[str]) -> Optional[AgendaItem]:
        if agenda_id is None:
            return None
        for item in self.agenda:
            if item.id == agenda_id:
                return item
        return None

    def sorted_agenda(self) -> list[AgendaItem]:
        return sorted(self.agenda, key=lambda item: item.order)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "agenda": [item.to_dict() for item in self.agenda],
            "total_planned_duration": self.total_planned_duration,
            "total_actual_duration": self.total_actual_duration,
            "status": self.status.value,
            "current_agenda_id": self.current_agenda_id,
            "start_time": _format_datetime(self.start_time),
            "end_time": _format_datetime(self.end_time),
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Meeting":
        agenda = [AgendaItem.from_dict(item) for item in data.get("agenda", [])]
        return cls(
            id=data["id"],
            title=data["title"],
            agenda=agenda,
            total_planned_duration=sum(item.planned_duration for item in agenda),
            total_actual_duration=sum(item.actual_duration for item in agenda),
            status=MeetingStatus(data.get("status", MeetingStatus.NOT_STARTED.value)),
            current_agenda_id=data.get("current_agenda_id"),
            start_time=_parse_datetime(data.get("start_time")),
            end_time=_parse_datetime(data.get("end_time")),
            settings=MeetingSettings.from_dict(data.get("settings") or {}),
        )


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
