"""
Tests for meeting and agenda-item management.

Covers:
- meeting create / rename / settings / delete
- aggregate totals after every mutation
- dense ordering after add / delete / reorder
- current-item reselection on delete
- self-healing current-item lookup
"""

import pytest

from conftest import by_title, titles
from meeting_timer.lifecycle import MeetingLifecycle
from meeting_timer.models import AgendaStatus, SoundType
from meeting_timer.navigator import get_current_agenda, validate_current


def assert_consistent(meeting):
    assert meeting.total_planned_duration == sum(i.planned_duration for i in meeting.agenda)
    assert meeting.total_actual_duration == sum(i.actual_duration for i in meeting.agenda)
    assert sorted(i.order for i in meeting.agenda) == list(range(len(meeting.agenda)))


# =============================================================================
# MEETINGS
# =============================================================================


class TestMeetings:
    def test_create_meeting_becomes_current(self, engine):
        meeting = engine.create_meeting("  Planning   review ")

        assert engine.current_meeting is meeting
        assert meeting.title == "Planning review"
        assert meeting.agenda == []
        assert meeting.settings.auto_transition is False
        assert meeting.settings.bell_settings.sound_type is SoundType.SINGLE

    def test_update_title(self, engine, meeting):
        engine.update_meeting_title(meeting.id, "Renamed")

        assert engine.current_meeting.title == "Renamed"
        assert engine.meetings[0].title == "Renamed"

    def test_blank_title_keeps_previous(self, engine, meeting):
        engine.update_meeting_title(meeting.id, "   ")

        assert meeting.title == "Weekly sync"

    def test_update_settings_merges_partially(self, engine, meeting):
        engine.update_meeting_settings(
            meeting.id,
            silent_mode=True,
            bell_settings={"overtime": False, "sound_type": "double"},
        )

        settings = meeting.settings
        assert settings.silent_mode is True
        assert settings.auto_transition is False
        assert settings.bell_settings.overtime is False
        assert settings.bell_settings.start is True
        assert settings.bell_settings.sound_type is SoundType.DOUBLE

    def test_delete_other_meeting_keeps_current(self, engine, meeting):
        other = engine.create_meeting("Other")
        engine.set_current_meeting(meeting.id)

        engine.delete_meeting(other.id)

        assert engine.current_meeting is meeting
        assert engine.meetings == [meeting]

    def test_unknown_ids_are_ignored(self, engine, meeting):
        assert engine.update_meeting_title("missing", "x") is None
        assert engine.delete_meeting("missing") is None
        assert engine.add_agenda("missing", "x", 10) is None
        assert engine.update_agenda(meeting.id, "missing", title="x") is None
        assert engine.delete_agenda(meeting.id, "missing") is None
        assert len(meeting.agenda) == 3


# =============================================================================
# AGENDA ITEMS
# =============================================================================


class TestAgendaItems:
    def test_add_agenda_stamps_order_and_totals(self, engine, meeting):
        item = engine.add_agenda(meeting.id, "Item 4", 45, memo=" bring numbers ")

        assert item.order == 3
        assert item.remaining_time == 45
        assert item.status is AgendaStatus.PENDING
        assert item.memo == "bring numbers"
        assert meeting.total_planned_duration == 105
        assert_consistent(meeting)

    def test_update_planned_duration_recomputes(self, engine, meeting, clock):
        engine.start_timer()
        clock.advance(10)
        engine.tick()
        first = by_title(meeting, "Item 1")

        engine.update_agenda(meeting.id, first.id, planned_duration=90)

        assert first.remaining_time == 80
        assert meeting.total_planned_duration == 120
        assert_consistent(meeting)

    def test_completed_item_keeps_frozen_fields(self, engine, meeting, clock):
        engine.start_timer()
        clock.advance(8)
        engine.tick()
        engine.stop_timer()
        first = by_title(meeting, "Item 1")

        engine.update_agenda(meeting.id, first.id, actual_duration=500, title="Intro")

        assert first.actual_duration == 8
        assert first.title == "Intro"
        assert_consistent(meeting)

    def test_unknown_fields_are_ignored(self, engine, meeting):
        first = by_title(meeting, "Item 1")

        engine.update_agenda(meeting.id, first.id, colour="red")

        assert not hasattr(first, "colour")

    def test_delete_recompacts_order(self, engine, meeting):
        engine.delete_agenda(meeting.id, by_title(meeting, "Item 1").id)

        assert titles(meeting) == ["Item 2", "Item 3"]
        assert [i.order for i in meeting.sorted_agenda()] == [0, 1]
        assert meeting.total_planned_duration == 30
        assert_consistent(meeting)

    def test_delete_with_elapsed_time_recomputes_actual_total(self, engine, meeting, clock):
        engine.start_timer()
        clock.advance(9)
        engine.tick()
        engine.stop_timer()

        engine.delete_agenda(meeting.id, by_title(meeting, "Item 1").id)

        assert meeting.total_actual_duration == 0
        assert_consistent(meeting)

    def test_reorder(self, engine, meeting):
        third = by_title(meeting, "Item 3")
        first = by_title(meeting, "Item 1")

        engine.reorder_agendas(meeting.id, [third.id, "missing", first.id])

        assert titles(meeting) == ["Item 3", "Item 1", "Item 2"]
        assert_consistent(meeting)

    def test_consistency_through_mixed_mutations(self, engine, meeting, clock):
        engine.add_agenda(meeting.id, "Item 4", 40)
        engine.start_timer()
        clock.advance(12)
        engine.tick()
        assert_consistent(meeting)
        engine.delete_agenda(meeting.id, by_title(meeting, "Item 2").id)
        assert_consistent(meeting)
        engine.update_agenda(meeting.id, by_title(meeting, "Item 4").id, planned_duration=5)
        assert_consistent(meeting)
        engine.add_agenda(meeting.id, "Item 5", 15)
        assert_consistent(meeting)
        assert titles(meeting) == ["Item 1", "Item 3", "Item 4", "Item 5"]


# =============================================================================
# CURRENT ITEM SELECTION
# =============================================================================


class TestDeletionReselection:
    def test_deleting_current_prefers_next_then_first(self, engine, meeting):
        second = by_title(meeting, "Item 2")
        third = by_title(meeting, "Item 3")
        first = by_title(meeting, "Item 1")
        engine.select_agenda(meeting.id, second.id)

        engine.delete_agenda(meeting.id, second.id)
        assert meeting.current_agenda_id == third.id

        engine.delete_agenda(meeting.id, third.id)
        assert meeting.current_agenda_id == first.id

    def test_deleting_current_after_advance(self, engine, meeting):
        engine.start_timer()
        engine.pause_timer()
        engine.next_agenda()
        second = by_title(meeting, "Item 2")
        assert meeting.current_agenda_id == second.id

        engine.delete_agenda(meeting.id, second.id)

        assert titles(meeting) == ["Item 1", "Item 3"]
        assert meeting.current_agenda_id == by_title(meeting, "Item 3").id

    def test_deleting_non_current_keeps_reference(self, engine, meeting):
        current = engine.get_current_agenda()

        engine.delete_agenda(meeting.id, by_title(meeting, "Item 3").id)

        assert meeting.current_agenda_id == current.id

    def test_deleting_last_item_clears_reference(self, engine):
        meeting = engine.create_meeting("Solo")
        item = engine.add_agenda(meeting.id, "Only", 10)
        engine.get_current_agenda()

        engine.delete_agenda(meeting.id, item.id)

        assert meeting.current_agenda_id is None
        assert engine.get_current_agenda() is None


class TestSelfHealing:
    def test_dangling_reference_is_repaired(self, engine, meeting):
        first = engine.get_current_agenda()
        meeting.current_agenda_id = "broken-id"

        recovered = engine.get_current_agenda()

        assert recovered.id == first.id
        assert meeting.current_agenda_id == first.id
        assert engine.current_meeting.current_agenda_id == first.id

    def test_unset_reference_selects_lowest_order_pending(self, engine, meeting):
        engine.reorder_agendas(meeting.id, [by_title(meeting, "Item 2").id])
        meeting.current_agenda_id = None

        assert engine.get_current_agenda().title == "Item 2"

    def test_repair_skips_non_pending_items(self, engine, meeting):
        engine.start_timer()
        engine.stop_timer()
        meeting.current_agenda_id = "broken-id"

        assert engine.get_current_agenda().title == "Item 2"

    def test_lookup_is_idempotent(self, engine, meeting):
        meeting.current_agenda_id = "broken-id"

        first = engine.get_current_agenda()
        stored = meeting.current_agenda_id
        second = engine.get_current_agenda()

        assert first is second
        assert meeting.current_agenda_id == stored
        assert validate_current(meeting) is False

    def test_no_pending_items_returns_none(self):
        lifecycle = MeetingLifecycle()
        meeting = lifecycle.create_meeting("Done")
        item = lifecycle.add_agenda(meeting.id, "Only", 10)
        item.status = AgendaStatus.COMPLETED
        meeting.current_agenda_id = "gone"

        assert get_current_agenda(meeting) is None
        assert meeting.current_agenda_id == "gone"

    def test_no_meeting_returns_none(self):
        assert get_current_agenda(None) is None


class TestIdFactory:
    @pytest.fixture
    def counter_lifecycle(self):
        counter = iter(range(100))
        return MeetingLifecycle(id_factory=lambda: f"id-{next(counter)}")

    def test_ids_come_from_factory(self, counter_lifecycle):
        meeting = counter_lifecycle.create_meeting("M")
        item = counter_lifecycle.add_agenda(meeting.id, "A", 5)

        assert meeting.id == "id-0"
        assert item.id == "id-1"
