"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from typing import Any

from .models import AgendaStatus, Meeting
from .navigator import get_current_agenda


class SummaryPrinter:
    """Render human-readable meeting summaries in the console."""

    def print_meeting_summary(self, meeting: Meeting) -> None:
        report = meeting_report(meeting)
        print(f"Summary for {report['title']} ({report['status']})")
        print("-" * 60)
        if not report["items"]:
            print("No agenda items in this meeting.")
            return

        for entry in report["items"]:
            marker = "*" if entry["is_current"] else " "
            print(
                f"{marker} {entry['order'] + 1:>2}. {entry['title'][:30]:<30} "
                f"{format_duration(entry['actual_duration'])} / "
                f"{format_duration(entry['planned_duration'])}  {entry['status']}"
            )
        print()
        print(f"Planned: {format_duration(report['total_planned_duration'])}")
        print(f"Actual:  {format_duration(report['total_actual_duration'])}")
        print(f"Progress: {report['progress_percentage']:.0f}%")
        overtime = report["overtime_items"]
        if overtime:
            print(f"Over time: {', '.join(overtime)}")

    def print_meeting_list(self, meetings: list[Meeting]) -> None:
        if not meetings:
            print("No meetings saved yet.")
            return
        for meeting in meetings:
            print(
                f"{meeting.id}  {meeting.title[:30]:<30} {meeting.status.value:<12} "
                f"{len(meeting.agenda)} items  {format_duration(meeting.total_planned_duration)}"
            )


def meeting_report(meeting: Meeting) -> dict[str, Any]:
    """Planned-versus-actual breakdown of a meeting."""
    current = get_current_agenda(meeting)
    current_id = current.id if current else None
    items = [
        {
            "id": item.id,
            "order": item.order,
            "title": item.title,
            "status": item.status.value,
            "planned_duration": item.planned_duration,
            "actual_duration": item.actual_duration,
            "difference": item.actual_duration - item.planned_duration,
            "is_current": item.id == current_id,
        }
        for item in meeting.sorted_agenda()
    ]
    planned = meeting.total_planned_duration
    progress = meeting.total_actual_duration / planned * 100 if planned else 0.0
    return {
        "id": meeting.id,
        "title": meeting.title,
        "status": meeting.status.value,
        "start_time": meeting.start_time.isoformat() if meeting.start_time else None,
        "end_time": meeting.end_time.isoformat() if meeting.end_time else None,
        "total_planned_duration": planned,
        "total_actual_duration": meeting.total_actual_duration,
        "progress_percentage": progress,
        "completed_items": sum(
            1 for item in meeting.agenda if item.status is AgendaStatus.COMPLETED
        ),
        "overtime_items": [
            item.title for item in meeting.sorted_agenda() if item.actual_duration > item.planned_duration
        ],
        "items": items,
    }


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
