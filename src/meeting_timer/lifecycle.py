"""Creation, editing and completion of meetings and agenda items."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from .models import (
    AgendaItem,
    AgendaStatus,
    BellSettings,
    Meeting,
    MeetingStatus,
    SoundType,
)
from .navigator import reselect_after_delete
from .normalization import normalize_duration, normalize_memo, normalize_title

logger = logging.getLogger(__name__)

AGENDA_FIELDS = frozenset(
    {
        "title",
        "memo",
        "planned_duration",
        "actual_duration",
        "remaining_time",
        "status",
        "start_time",
        "end_time",
    }
)
FROZEN_WHEN_COMPLETED = frozenset({"actual_duration", "remaining_time", "end_time"})


def generate_id() -> str:
    return uuid.uuid4().hex


def recalculate_totals(meeting: Meeting) -> None:
    """Recompute the meeting aggregates from the full agenda."""
    meeting.total_planned_duration = sum(item.planned_duration for item in meeting.agenda)
    meeting.total_actual_duration = sum(item.actual_duration for item in meeting.agenda)


def recompact_order(meeting: Meeting) -> None:
    meeting.agenda.sort(key=lambda item: item.order)
    for index, item in enumerate(meeting.agenda):
        item.order = index


class MeetingLifecycle:
    """Owns the meeting collection and every structural mutation on it."""

    def __init__(self, id_factory: Callable[[], str] = generate_id) -> None:
        self._id_factory = id_factory
        self.meetings: list[Meeting] = []
        self.current_meeting: Optional[Meeting] = None

    def find_meeting(self, meeting_id: Optional[str]) -> Optional[Meeting]:
        if meeting_id is None:
            return None
        for meeting in self.meetings:
            if meeting.id == meeting_id:
                return meeting
        return None

    def replace(self, meetings: list[Meeting], current: Optional[Meeting]) -> None:
        self.meetings = meetings
        if current is not None:
            # Keep a single object per meeting id.
            current = self.find_meeting(current.id) or current
            if current not in self.meetings:
                self.meetings.append(current)
        self.current_meeting = current

    # Meetings

    def create_meeting(self, title: str) -> Meeting:
        meeting = Meeting(
            id=self._id_factory(),
            title=normalize_title(title, fallback="Untitled meeting"),
        )
        self.meetings.append(meeting)
        self.current_meeting = meeting
        logger.info("Meeting created: id=%s title=%s", meeting.id, meeting.title)
        return meeting

    def delete_meeting(self, meeting_id: str) -> Optional[Meeting]:
        meeting = self.find_meeting(meeting_id)
        if meeting is None:
            return None
        self.meetings.remove(meeting)
        if self.current_meeting is meeting:
            self.current_meeting = None
        logger.info("Meeting deleted: id=%s title=%s", meeting.id, meeting.title)
        return meeting

    def set_current_meeting(self, meeting_id: str) -> Optional[Meeting]:
        meeting = self.find_meeting(meeting_id)
        if meeting is not None:
            self.current_meeting = meeting
        return meeting

    def update_meeting_title(self, meeting_id: str, title: str) -> Optional[Meeting]:
        meeting = self.find_meeting(meeting_id)
        if meeting is None:
            return None
        meeting.title = normalize_title(title, fallback=meeting.title)
        logger.info("Meeting title updated: id=%s title=%s", meeting.id, meeting.title)
        return meeting

    def update_meeting_settings(
        self,
        meeting_id: str,
        *,
        auto_transition: Optional[bool] = None,
        silent_mode: Optional[bool] = None,
        bell_settings: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Meeting]:
        meeting = self.find_meeting(meeting_id)
        if meeting is None:
            return None
        settings = meeting.settings
        if auto_transition is not None:
            settings.auto_transition = auto_transition
        if silent_mode is not None:
            settings.silent_mode = silent_mode
        if bell_settings:
            _merge_bell_settings(settings.bell_settings, bell_settings)
        return meeting

    # Agenda items

    def add_agenda(
        self,
        meeting_id: str,
        title: str,
        planned_duration: float,
        memo: Optional[str] = None,
    ) -> Optional[AgendaItem]:
        meeting = self.find_meeting(meeting_id)
        if meeting is None:
            return None
        planned = normalize_duration(planned_duration)
        item = AgendaItem(
            id=self._id_factory(),
            title=normalize_title(title, fallback="Untitled agenda item"),
            memo=normalize_memo(memo),
            planned_duration=planned,
            remaining_time=planned,
        )
        recompact_order(meeting)
        item.order = len(meeting.agenda)
        meeting.agenda.append(item)
        recalculate_totals(meeting)
        logger.debug("Agenda added to meeting %s: %s (%ss)", meeting.id, item.title, planned)
        return item

    def update_agenda(
        self, meeting_id: str, agenda_id: str, **changes: Any
    ) -> Optional[AgendaItem]:
        meeting = self.find_meeting(meeting_id)
        if meeting is None:
            return None
        item = meeting.find_agenda(agenda_id)
        if item is None:
            return None

        unknown = set(changes) - AGENDA_FIELDS
        if unknown:
            logger.warning("Ignoring unknown agenda fields: %s", ", ".join(sorted(unknown)))
        if item.status is AgendaStatus.COMPLETED:
            frozen = FROZEN_WHEN_COMPLETED.intersection(changes)
            if frozen:
                logger.debug("Agenda %s is completed; keeping %s", item.id, sorted(frozen))
        else:
            frozen = set()

        for name in AGENDA_FIELDS.intersection(changes) - frozen:
            value = changes[name]
            if name == "title":
                value = normalize_title(value, fallback=item.title)
            elif name == "memo":
                value = normalize_memo(value)
            elif name in ("planned_duration", "actual_duration"):
                value = normalize_duration(value)
            elif name == "status":
                value = AgendaStatus(value)
            setattr(item, name, value)

        if (
            "planned_duration" in changes
            and "remaining_time" not in changes
            and item.status is not AgendaStatus.COMPLETED
        ):
            item.remaining_time = item.planned_duration - item.actual_duration

        recalculate_totals(meeting)
        return item

    def delete_agenda(self, meeting_id: str, agenda_id: str) -> Optional[AgendaItem]:
        meeting = self.find_meeting(meeting_id)
        if meeting is None:
            return None
        item = meeting.find_agenda(agenda_id)
        if item is None:
            return None

        was_current = meeting.current_agenda_id == agenda_id
        meeting.agenda.remove(item)
        if was_current:
            successor = reselect_after_delete(meeting, item.order)
            meeting.current_agenda_id = successor.id if successor else None
        recompact_order(meeting)
        recalculate_totals(meeting)
        logger.debug("Agenda deleted from meeting %s: %s", meeting.id, item.title)
        return item

    def reorder_agendas(
        self, meeting_id: str, agenda_ids: Iterable[str]
    ) -> Optional[Meeting]:
        meeting = self.find_meeting(meeting_id)
        if meeting is None:
            return None
        by_id = {item.id: item for item in meeting.agenda}
        reordered: list[AgendaItem] = []
        for agenda_id in agenda_ids:
            item = by_id.pop(agenda_id, None)
            if item is not None:
                reordered.append(item)
        reordered.extend(sorted(by_id.values(), key=lambda item: item.order))
        for index, item in enumerate(reordered):
            item.order = index
        meeting.agenda = reordered
        recalculate_totals(meeting)
        return meeting

    # Completion

    def complete_agenda(self, meeting: Meeting, item: AgendaItem, when: datetime) -> None:
        item.remaining_time = item.planned_duration - item.actual_duration
        item.end_time = when
        item.status = AgendaStatus.COMPLETED
        recalculate_totals(meeting)
        logger.info("Agenda completed: meeting=%s agenda=%s", meeting.id, item.title)

    def complete_meeting(self, meeting: Meeting, when: datetime) -> None:
        if meeting.status is MeetingStatus.COMPLETED:
            return
        meeting.status = MeetingStatus.COMPLETED
        meeting.end_time = when
        logger.info("Meeting completed: id=%s title=%s", meeting.id, meeting.title)


def _merge_bell_settings(bells: BellSettings, changes: Mapping[str, Any]) -> None:
    for name, value in changes.items():
        if value is None:
            continue
        if name == "sound_type":
            bells.sound_type = SoundType(value)
        elif name in ("start", "five_min_warning", "end", "overtime"):
            setattr(bells, name, bool(value))
        else:
            logger.warning("Ignoring unknown bell setting: %s", name)
