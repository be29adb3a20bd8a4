"""Selection of the current agenda item, with repair of stale references."""

from __future__ import annotations

import logging
from typing import Optional

from .models import AgendaItem, AgendaStatus, Meeting

logger = logging.getLogger(__name__)


def first_pending(meeting: Meeting) -> Optional[AgendaItem]:
    """Return the lowest-order pending item, if any."""
    return next_pending(meeting, exclude_id=None)


def next_pending(meeting: Meeting, exclude_id: Optional[str]) -> Optional[AgendaItem]:
    for item in meeting.sorted_agenda():
        if item.status is AgendaStatus.PENDING and item.id != exclude_id:
            return item
    return None


def validate_current(meeting: Meeting) -> bool:
    """Repair ``current_agenda_id`` when it is unset or dangling.

    Returns True when the stored reference was rewritten.
    """
    if meeting.find_agenda(meeting.current_agenda_id) is not None:
        return False

    candidate = first_pending(meeting)
    if candidate is None:
        return False

    logger.debug(
        "Repaired current agenda for meeting %s: %s -> %s",
        meeting.id,
        meeting.current_agenda_id,
        candidate.id,
    )
    meeting.current_agenda_id = candidate.id
    return True


def get_current_agenda(meeting: Optional[Meeting]) -> Optional[AgendaItem]:
    """Return the current item, healing the stored reference first."""
    if meeting is None:
        return None
    validate_current(meeting)
    return meeting.find_agenda(meeting.current_agenda_id)


def reselect_after_delete(
    meeting: Meeting, deleted_order: int
) -> Optional[AgendaItem]:
    """Pick the successor of a deleted current item.

    Prefers the nearest item after the deleted position, then the first
    remaining item.
    """
    remaining = meeting.sorted_agenda()
    for item in remaining:
        if item.order > deleted_order:
            return item
    return remaining[0] if remaining else None
