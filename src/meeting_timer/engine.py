"""Agenda timer engine: drives a meeting's agenda items through their timing states."""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any, Callable, Iterable, Mapping, Optional

from .config import EngineSettings
from .lifecycle import MeetingLifecycle, generate_id
from .models import AgendaItem, AgendaStatus, Meeting, MeetingStatus
from .navigator import get_current_agenda, next_pending
from .notifications import LogNotifier, NotificationTrigger, Notifier
from .reporting import meeting_report
from .scheduler import ScheduledTask, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)

Clock = Callable[[], int]

TIMED_STATUSES = (AgendaStatus.RUNNING, AgendaStatus.OVERTIME)


def system_clock() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


def progress_level(percentage: float) -> str:
    if percentage > 100:
        return "overtime"
    if percentage >= 90:
        return "warning"
    return "running"


@dataclass(slots=True)
class EngineState:
    """Transient timer state; never persisted."""

    is_running: bool = False
    current_time: int = 0
    last_tick_time: Optional[int] = None
    meeting_start_time: Optional[datetime] = None

    def reset(self) -> None:
        self.is_running = False
        self.current_time = 0
        self.last_tick_time = None
        self.meeting_start_time = None


class AgendaTimerEngine:
    """Owns the meetings of one application session and times their agendas.

    Every public method is safe to call from the tick driver, HTTP handlers
    and deferred transitions; they serialize on a re-entrant lock. Operations
    on unknown meetings or items are silent no-ops.
    """

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        *,
        settings: Optional[EngineSettings] = None,
        clock: Clock = system_clock,
        scheduler: Optional[Scheduler] = None,
        id_factory: Callable[[], str] = generate_id,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.state = EngineState()
        self.lifecycle = MeetingLifecycle(id_factory=id_factory)
        self.trigger = NotificationTrigger(
            notifier or LogNotifier(),
            warning_threshold=self.settings.warning_threshold,
            overtime_interval=self.settings.overtime_interval,
        )
        self._clock = clock
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.RLock()
        self._pending_transition: Optional[ScheduledTask] = None
        self._transition_target: Optional[tuple[str, str]] = None
        # Called after a deferred auto-start changes state off the caller's thread.
        self.on_change = on_change

    @property
    def meetings(self) -> list[Meeting]:
        return self.lifecycle.meetings

    @property
    def current_meeting(self) -> Optional[Meeting]:
        return self.lifecycle.current_meeting

    @property
    def auto_transition_pending(self) -> bool:
        return self._transition_target is not None

    # Meetings

    def create_meeting(self, title: str) -> Meeting:
        with self._lock:
            self._pause_for_switch()
            return self.lifecycle.create_meeting(title)

    def delete_meeting(self, meeting_id: str) -> Optional[Meeting]:
        with self._lock:
            was_current = (
                self.current_meeting is not None and self.current_meeting.id == meeting_id
            )
            deleted = self.lifecycle.delete_meeting(meeting_id)
            if deleted is not None and was_current:
                self._cancel_auto_transition()
                self.state.reset()
            return deleted

    def set_current_meeting(self, meeting_id: str) -> Optional[Meeting]:
        with self._lock:
            meeting = self.lifecycle.find_meeting(meeting_id)
            if meeting is None:
                return None
            if meeting is not self.current_meeting:
                self._pause_for_switch()
            return self.lifecycle.set_current_meeting(meeting_id)

    def update_meeting_title(self, meeting_id: str, title: str) -> Optional[Meeting]:
        with self._lock:
            return self.lifecycle.update_meeting_title(meeting_id, title)

    def update_meeting_settings(
        self,
        meeting_id: str,
        *,
        auto_transition: Optional[bool] = None,
        silent_mode: Optional[bool] = None,
        bell_settings: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Meeting]:
        with self._lock:
            return self.lifecycle.update_meeting_settings(
                meeting_id,
                auto_transition=auto_transition,
                silent_mode=silent_mode,
                bell_settings=bell_settings,
            )

    # Agenda items

    def add_agenda(
        self,
        meeting_id: str,
        title: str,
        planned_duration: float,
        memo: Optional[str] = None,
    ) -> Optional[AgendaItem]:
        with self._lock:
            return self.lifecycle.add_agenda(meeting_id, title, planned_duration, memo)

    def update_agenda(
        self, meeting_id: str, agenda_id: str, **changes: Any
    ) -> Optional[AgendaItem]:
        with self._lock:
            return self.lifecycle.update_agenda(meeting_id, agenda_id, **changes)

    def delete_agenda(self, meeting_id: str, agenda_id: str) -> Optional[AgendaItem]:
        with self._lock:
            meeting = self.lifecycle.find_meeting(meeting_id)
            timing_it = (
                meeting is not None
                and meeting is self.current_meeting
                and meeting.current_agenda_id == agenda_id
            )
            deleted = self.lifecycle.delete_agenda(meeting_id, agenda_id)
            if deleted is not None and timing_it:
                self._cancel_auto_transition()
                if self.state.is_running:
                    logger.info("Running agenda item deleted; timer stopped.")
                self.state.is_running = False
                self.state.last_tick_time = None
                successor = meeting.find_agenda(meeting.current_agenda_id)
                self.state.current_time = successor.actual_duration if successor else 0
            return deleted

    def reorder_agendas(
        self, meeting_id: str, agenda_ids: Iterable[str]
    ) -> Optional[Meeting]:
        with self._lock:
            return self.lifecycle.reorder_agendas(meeting_id, agenda_ids)

    def select_agenda(self, meeting_id: str, agenda_id: str) -> Optional[AgendaItem]:
        """Make ``agenda_id`` the current item.

        Switching away from the item being timed pauses it and stops the
        clock so no time is counted against two items.
        """
        with self._lock:
            meeting = self.lifecycle.find_meeting(meeting_id)
            selected = meeting.find_agenda(agenda_id) if meeting else None
            if meeting is None or selected is None:
                return None

            self._cancel_auto_transition()
            if meeting is not self.current_meeting:
                meeting.current_agenda_id = agenda_id
                return selected

            previous_id = meeting.current_agenda_id
            state = self.state
            if not state.is_running or previous_id is None or previous_id == agenda_id:
                meeting.current_agenda_id = agenda_id
                state.current_time = selected.actual_duration
                if state.is_running:
                    state.last_tick_time = self._clock()
                return selected

            previous = meeting.find_agenda(previous_id)
            if previous is not None and previous.status in TIMED_STATUSES:
                elapsed = max(previous.actual_duration, state.current_time)
                self.lifecycle.update_agenda(
                    meeting.id,
                    previous.id,
                    actual_duration=elapsed,
                    remaining_time=previous.planned_duration - elapsed,
                    status=AgendaStatus.PAUSED,
                )
            meeting.current_agenda_id = agenda_id
            if meeting.status is MeetingStatus.IN_PROGRESS:
                meeting.status = MeetingStatus.PAUSED
            state.is_running = False
            state.current_time = selected.actual_duration
            state.last_tick_time = None
            logger.info(
                "Switched agenda during run; timer paused: meeting=%s agenda=%s",
                meeting.id,
                selected.title,
            )
            return selected

    # Timer

    def start_timer(self) -> bool:
        with self._lock:
            self._cancel_auto_transition()
            return self._start()

    def pause_timer(self) -> None:
        with self._lock:
            self._cancel_auto_transition()
            meeting = self.current_meeting
            item = get_current_agenda(meeting)
            if meeting is not None and item is not None and (
                item.status in TIMED_STATUSES or item.status is AgendaStatus.PAUSED
            ):
                elapsed = max(item.actual_duration, self.state.current_time)
                self.lifecycle.update_agenda(
                    meeting.id,
                    item.id,
                    actual_duration=elapsed,
                    remaining_time=item.planned_duration - elapsed,
                    status=AgendaStatus.PAUSED,
                )
                self.state.current_time = elapsed
                if meeting.status is MeetingStatus.IN_PROGRESS:
                    meeting.status = MeetingStatus.PAUSED
                logger.info("Agenda timer paused: agenda=%s elapsed=%ss", item.title, elapsed)
            self.state.is_running = False

    def stop_timer(self) -> Optional[AgendaItem]:
        """Finish the current item early and move on to the next one."""
        with self._lock:
            self._cancel_auto_transition()
            was_running = self.state.is_running
            if was_running:
                self.state.is_running = False
                self.state.last_tick_time = None
                logger.info("Agenda timer stopped.")
            return self._advance(resume=was_running)

    def next_agenda(self) -> Optional[AgendaItem]:
        with self._lock:
            self._cancel_auto_transition()
            return self._advance(resume=False)

    def tick(self) -> None:
        with self._lock:
            state = self.state
            if not state.is_running:
                return
            meeting = self.current_meeting
            item = get_current_agenda(meeting)
            if meeting is None or item is None:
                return

            now = self._clock()
            if state.last_tick_time is None:
                delta = 1
            else:
                delta = _round_half_up((now - state.last_tick_time) / 1000)
            if delta <= 0:
                return

            base = max(item.actual_duration, state.current_time)
            elapsed = base + delta
            previous_remaining = item.planned_duration - base
            remaining = item.planned_duration - elapsed

            state.current_time = elapsed
            state.last_tick_time = now
            self.lifecycle.update_agenda(
                meeting.id,
                item.id,
                actual_duration=elapsed,
                remaining_time=remaining,
                status=AgendaStatus.OVERTIME if remaining <= 0 else AgendaStatus.RUNNING,
            )
            logger.debug("Tick: agenda=%s delta=%ss remaining=%ss", item.id, delta, remaining)
            self.trigger.evaluate(item, meeting.settings, previous_remaining, remaining)

    def sync_time(self) -> None:
        """Fold in wall-clock time missed while the host was in the background."""
        with self._lock:
            if not self.state.is_running or self.state.last_tick_time is None:
                return
            self.tick()

    # Accessors

    def get_current_agenda(self) -> Optional[AgendaItem]:
        with self._lock:
            return get_current_agenda(self.current_meeting)

    def get_progress_percentage(self) -> float:
        with self._lock:
            item = get_current_agenda(self.current_meeting)
            if item is None or item.planned_duration <= 0:
                return 0.0
            return min(
                item.actual_duration / item.planned_duration * 100,
                self.settings.progress_cap,
            )

    def get_total_progress_percentage(self) -> float:
        with self._lock:
            meeting = self.current_meeting
            if meeting is None or meeting.total_planned_duration == 0:
                return 0.0
            return min(
                meeting.total_actual_duration / meeting.total_planned_duration * 100,
                self.settings.progress_cap,
            )

    # Read models
    #
    # Serialized under the lock so a concurrent tick or reorder is never seen
    # half-applied.

    def contains(self, meeting_id: str, agenda_id: Optional[str] = None) -> bool:
        with self._lock:
            meeting = self.lifecycle.find_meeting(meeting_id)
            if meeting is None:
                return False
            return agenda_id is None or meeting.find_agenda(agenda_id) is not None

    def meetings_payload(self) -> dict[str, Any]:
        with self._lock:
            current = self.current_meeting
            return {
                "meetings": [_meeting_payload(meeting) for meeting in self.meetings],
                "current_meeting_id": current.id if current else None,
            }

    def meeting_payload(self, meeting_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            meeting = self.lifecycle.find_meeting(meeting_id)
            return _meeting_payload(meeting) if meeting else None

    def agenda_payload(self, meeting_id: str, agenda_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            meeting = self.lifecycle.find_meeting(meeting_id)
            item = meeting.find_agenda(agenda_id) if meeting else None
            return item.to_dict() if item else None

    def report(self, meeting_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            meeting = self.lifecycle.find_meeting(meeting_id)
            return meeting_report(meeting) if meeting else None

    def state_payload(self) -> dict[str, Any]:
        """Current meeting, timer state and progress for display."""
        with self._lock:
            current = self.current_meeting
            agenda = get_current_agenda(current)
            progress = self.get_progress_percentage()
            state = self.state
            return {
                "current_meeting": current.to_dict() if current else None,
                "current_agenda": agenda.to_dict() if agenda else None,
                "timer": {
                    "is_running": state.is_running,
                    "current_time": state.current_time,
                    "meeting_start_time": (
                        state.meeting_start_time.isoformat()
                        if state.meeting_start_time
                        else None
                    ),
                    "auto_transition_pending": self.auto_transition_pending,
                },
                "progress": {
                    "agenda_percentage": progress,
                    "total_percentage": self.get_total_progress_percentage(),
                    "level": progress_level(progress),
                },
            }

    # Persistence

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            current = self.current_meeting
            return {
                "current_meeting": current.to_dict() if current else None,
                "meetings": [meeting.to_dict() for meeting in self.meetings],
            }

    def restore(self, snapshot: Mapping[str, Any]) -> None:
        """Rehydrate meetings from a snapshot; the timer always comes back stopped."""
        with self._lock:
            self._cancel_auto_transition()
            meetings = [Meeting.from_dict(data) for data in snapshot.get("meetings") or []]
            current_data = snapshot.get("current_meeting")
            current = Meeting.from_dict(current_data) if current_data else None
            self.lifecycle.replace(meetings, current)
            for meeting in self.meetings:
                _suspend(meeting)
            self.state.reset()
            logger.info("Restored %d meetings.", len(self.meetings))

    # Internals

    def _start(self) -> bool:
        meeting = self.current_meeting
        item = get_current_agenda(meeting)
        if meeting is None or item is None:
            return False
        if item.status is AgendaStatus.COMPLETED or meeting.status is MeetingStatus.COMPLETED:
            return False

        now = self._clock()
        stamp = _to_datetime(now)
        state = self.state
        if state.meeting_start_time is None:
            state.meeting_start_time = stamp
        if meeting.start_time is None:
            meeting.start_time = stamp
        meeting.status = MeetingStatus.IN_PROGRESS
        state.is_running = True
        state.current_time = item.actual_duration
        state.last_tick_time = now

        self.lifecycle.update_agenda(
            meeting.id,
            item.id,
            status=AgendaStatus.RUNNING,
            start_time=item.start_time or stamp,
        )
        logger.info(
            "Agenda timer started: meeting=%s agenda=%s planned=%ss",
            meeting.title,
            item.title,
            item.planned_duration,
        )
        self.trigger.agenda_started(item, meeting.settings)
        return True

    def _advance(self, *, resume: bool) -> Optional[AgendaItem]:
        meeting = self.current_meeting
        state = self.state
        if meeting is None:
            return None
        if state.is_running:
            logger.debug("Advance rejected while the timer is running.")
            return None
        item = get_current_agenda(meeting)
        if item is None or not item.is_active:
            return None

        elapsed = max(item.actual_duration, state.current_time)
        self.lifecycle.update_agenda(meeting.id, item.id, actual_duration=elapsed)
        self.lifecycle.complete_agenda(meeting, item, _to_datetime(self._clock()))

        following = next_pending(meeting, exclude_id=item.id)
        if following is None:
            self.lifecycle.complete_meeting(meeting, _to_datetime(self._clock()))
            state.reset()
            return None

        meeting.current_agenda_id = following.id
        state.current_time = 0
        logger.info("Advanced to agenda item: %s", following.title)
        if resume and meeting.settings.auto_transition:
            self._schedule_auto_transition(meeting, following)
        return following

    def _schedule_auto_transition(self, meeting: Meeting, item: AgendaItem) -> None:
        self._cancel_auto_transition()
        delay = self.settings.auto_transition_delay.total_seconds()
        self._transition_target = (meeting.id, item.id)
        self._pending_transition = self._scheduler.call_later(
            delay, partial(self._run_auto_transition, meeting.id, item.id)
        )
        logger.debug("Auto-transition to %s scheduled in %.1fs", item.id, delay)

    def _run_auto_transition(self, meeting_id: str, agenda_id: str) -> None:
        with self._lock:
            started = self._start_transition_target(meeting_id, agenda_id)
        if started and self.on_change is not None:
            self.on_change()

    def _start_transition_target(self, meeting_id: str, agenda_id: str) -> bool:
        if self._transition_target != (meeting_id, agenda_id):
            return False
        self._pending_transition = None
        self._transition_target = None

        meeting = self.current_meeting
        if meeting is None or meeting.id != meeting_id:
            logger.debug("Auto-transition dropped: meeting %s no longer current.", meeting_id)
            return False
        if self.lifecycle.find_meeting(meeting_id) is None or self.state.is_running:
            return False
        item = get_current_agenda(meeting)
        if item is None or item.id != agenda_id or item.status is not AgendaStatus.PENDING:
            logger.debug("Auto-transition dropped: agenda %s no longer next.", agenda_id)
            return False
        return self._start()

    def _cancel_auto_transition(self) -> None:
        if self._pending_transition is not None:
            self._pending_transition.cancel()
        self._pending_transition = None
        self._transition_target = None

    def _pause_for_switch(self) -> None:
        if self.state.is_running:
            self.pause_timer()
        self._cancel_auto_transition()
        self.state.reset()


def _meeting_payload(meeting: Meeting) -> dict[str, Any]:
    # Heal a stale current_agenda_id before it is written out.
    get_current_agenda(meeting)
    return meeting.to_dict()


def _suspend(meeting: Meeting) -> None:
    for item in meeting.agenda:
        if item.status is AgendaStatus.RUNNING:
            item.status = AgendaStatus.PAUSED
    if meeting.status is MeetingStatus.IN_PROGRESS:
        meeting.status = MeetingStatus.PAUSED


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _to_datetime(milliseconds: int) -> datetime:
    return datetime.fromtimestamp(milliseconds / 1000)
