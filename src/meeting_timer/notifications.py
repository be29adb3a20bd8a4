"""Threshold notifications for running agenda items."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Protocol

from .models import AgendaItem, MeetingSettings

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "Agenda Timer"


class NotificationKind(str, Enum):
    START = "start"
    WARNING = "warning"
    END = "end"
    OVERTIME = "overtime"


class Notifier(Protocol):
    def notify(
        self, title: str, body: str, *, sound: Optional[str] = None, silent: bool = False
    ) -> None: ...


class LogNotifier:
    """Notifier that writes every event to the application log."""

    def notify(
        self, title: str, body: str, *, sound: Optional[str] = None, silent: bool = False
    ) -> None:
        logger.info("%s: %s (sound=%s silent=%s)", title, body, sound, silent)


class NotificationTrigger:
    """Decides which timing events fire and forwards them to a notifier."""

    def __init__(
        self,
        notifier: Notifier,
        *,
        warning_threshold: int = 300,
        overtime_interval: int = 60,
    ) -> None:
        self._notifier = notifier
        self.warning_threshold = warning_threshold
        self.overtime_interval = overtime_interval

    def agenda_started(self, item: AgendaItem, settings: MeetingSettings) -> None:
        self.emit(
            NotificationKind.START, settings, f'Agenda item "{item.title}" started.'
        )

    def evaluate(
        self,
        item: AgendaItem,
        settings: MeetingSettings,
        previous_remaining: int,
        remaining: int,
    ) -> list[NotificationKind]:
        """Fire every threshold crossed between two remaining-time readings.

        A threshold counts as crossed when the previous reading was above it
        and the new one is at or below it, so each fires once per crossing.
        """
        fired: list[NotificationKind] = []
        if remaining >= previous_remaining:
            return fired

        warning = self.warning_threshold
        if previous_remaining > warning >= remaining and remaining > 0:
            self.emit(
                NotificationKind.WARNING,
                settings,
                f'Agenda item "{item.title}" has {warning // 60} minutes left.',
            )
            fired.append(NotificationKind.WARNING)

        if previous_remaining > 0 >= remaining:
            self.emit(
                NotificationKind.END,
                settings,
                f'Planned time for agenda item "{item.title}" is up.',
            )
            fired.append(NotificationKind.END)

        overtime_units = self._overtime_units(remaining)
        if overtime_units > 0 and overtime_units > self._overtime_units(previous_remaining):
            minutes = overtime_units * self.overtime_interval // 60
            self.emit(
                NotificationKind.OVERTIME,
                settings,
                f'Agenda item "{item.title}" is {minutes} minutes over time.',
            )
            fired.append(NotificationKind.OVERTIME)
        return fired

    def emit(self, kind: NotificationKind, settings: MeetingSettings, body: str) -> None:
        bells = settings.bell_settings
        enabled = {
            NotificationKind.START: bells.start,
            NotificationKind.WARNING: bells.five_min_warning,
            NotificationKind.END: bells.end,
            NotificationKind.OVERTIME: bells.overtime,
        }[kind]
        sound = bells.sound_type.value if enabled else None
        logger.debug("Emitting %s notification (sound=%s)", kind.value, sound)
        try:
            self._notifier.notify(
                NOTIFICATION_TITLE, body, sound=sound, silent=settings.silent_mode
            )
        except Exception:
            logger.exception("Notifier failed for %s notification.", kind.value)

    def _overtime_units(self, remaining: int) -> int:
        if remaining >= 0:
            return 0
        return -remaining // self.overtime_interval
