"""
Shared fixtures for the agenda engine tests.

The engine never reads the wall clock or spawns timer threads here: time comes
from FakeClock and deferred transitions sit in ManualScheduler until a test
fires them.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

import pytest

from meeting_timer.engine import AgendaTimerEngine


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def set(self, ms: int) -> None:
        self.now_ms = ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


@dataclass
class Notification:
    title: str
    body: str
    sound: Optional[str]
    silent: bool


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[Notification] = []

    def notify(self, title, body, *, sound=None, silent=False) -> None:
        self.sent.append(Notification(title, body, sound, silent))

    @property
    def bodies(self) -> list[str]:
        return [n.body for n in self.sent]


class FailingNotifier:
    def __init__(self) -> None:
        self.calls = 0

    def notify(self, title, body, *, sound=None, silent=False) -> None:
        self.calls += 1
        raise RuntimeError("notification backend unavailable")


@dataclass
class ManualTask:
    delay: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    tasks: list[ManualTask] = field(default_factory=list)

    def call_later(self, delay, callback) -> ManualTask:
        task = ManualTask(delay, callback)
        self.tasks.append(task)
        return task

    @property
    def pending(self) -> list[ManualTask]:
        return [task for task in self.tasks if not task.cancelled]

    def fire_all(self) -> None:
        """Run every task, including cancelled ones, like a racing timer would."""
        for task in list(self.tasks):
            task.callback()
        self.tasks.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def engine(clock, notifier, scheduler):
    return AgendaTimerEngine(notifier, clock=clock, scheduler=scheduler)


@pytest.fixture
def meeting(engine):
    """A meeting with three agenda items: 30s, 20s and 10s."""
    created = engine.create_meeting("Weekly sync")
    engine.add_agenda(created.id, "Item 1", 30)
    engine.add_agenda(created.id, "Item 2", 20)
    engine.add_agenda(created.id, "Item 3", 10)
    return created


def titles(meeting) -> list[str]:
    return [item.title for item in meeting.sorted_agenda()]


def by_title(meeting, title):
    return next(item for item in meeting.agenda if item.title == title)
