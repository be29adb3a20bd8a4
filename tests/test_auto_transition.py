"""
Tests for the delayed auto-start of the next agenda item.
"""

import threading

import pytest

from conftest import by_title
from meeting_timer.models import AgendaStatus
from meeting_timer.scheduler import ThreadingScheduler


@pytest.fixture
def auto_meeting(engine, meeting):
    engine.update_meeting_settings(meeting.id, auto_transition=True)
    return meeting


class TestAutoTransition:
    def test_stop_while_running_schedules_next_start(
        self, engine, auto_meeting, clock, scheduler
    ):
        engine.start_timer()
        clock.advance(5)
        engine.tick()

        engine.stop_timer()

        assert engine.state.is_running is False
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay == pytest.approx(1.0)

        scheduler.fire_all()

        assert engine.state.is_running is True
        assert engine.get_current_agenda().title == "Item 2"
        assert engine.get_current_agenda().status is AgendaStatus.RUNNING

    def test_no_schedule_when_disabled(self, engine, meeting, scheduler):
        engine.start_timer()
        engine.stop_timer()

        assert scheduler.tasks == []

    def test_no_schedule_when_advancing_from_pause(self, engine, auto_meeting, scheduler):
        engine.start_timer()
        engine.pause_timer()
        engine.next_agenda()

        assert scheduler.tasks == []

    def test_no_schedule_when_meeting_completes(self, engine, scheduler):
        meeting = engine.create_meeting("Single")
        engine.add_agenda(meeting.id, "Only", 10)
        engine.update_meeting_settings(meeting.id, auto_transition=True)
        engine.start_timer()

        engine.stop_timer()

        assert scheduler.tasks == []

    def test_selecting_another_item_cancels_pending_start(
        self, engine, auto_meeting, scheduler
    ):
        engine.start_timer()
        engine.stop_timer()
        third = by_title(auto_meeting, "Item 3")

        engine.select_agenda(auto_meeting.id, third.id)
        scheduler.fire_all()

        assert engine.state.is_running is False
        assert by_title(auto_meeting, "Item 2").status is AgendaStatus.PENDING
        assert third.status is AgendaStatus.PENDING

    def test_stale_task_revalidates_target(self, engine, auto_meeting, scheduler):
        engine.start_timer()
        engine.stop_timer()
        task = scheduler.tasks[0]
        second = by_title(auto_meeting, "Item 2")

        # Simulate the item being edited away behind the engine's back.
        auto_meeting.current_agenda_id = by_title(auto_meeting, "Item 3").id
        task.callback()

        assert engine.state.is_running is False
        assert second.status is AgendaStatus.PENDING

    def test_deleted_meeting_drops_pending_start(self, engine, auto_meeting, scheduler):
        engine.start_timer()
        engine.stop_timer()

        engine.delete_meeting(auto_meeting.id)
        scheduler.fire_all()

        assert engine.state.is_running is False

    def test_manual_start_supersedes_pending_task(self, engine, auto_meeting, clock, scheduler):
        engine.start_timer()
        engine.stop_timer()
        engine.start_timer()
        clock.advance(3)
        engine.tick()

        scheduler.fire_all()

        assert engine.get_current_agenda().title == "Item 2"
        assert engine.get_current_agenda().actual_duration == 3
        assert engine.state.last_tick_time == clock()


class TestThreadingScheduler:
    def test_runs_callback_after_delay(self):
        fired = threading.Event()

        ThreadingScheduler().call_later(0.01, fired.set)

        assert fired.wait(2.0)

    def test_cancelled_callback_does_not_run(self):
        fired = threading.Event()

        task = ThreadingScheduler().call_later(0.2, fired.set)
        task.cancel()

        assert not fired.wait(0.4)

    def test_failing_callback_is_contained(self):
        done = threading.Event()

        def explode():
            done.set()
            raise RuntimeError("boom")

        ThreadingScheduler().call_later(0.01, explode)

        assert done.wait(2.0)


class TestChangeHook:
    def test_hook_runs_after_deferred_start(self, engine, auto_meeting, scheduler):
        calls = []
        engine.on_change = lambda: calls.append(engine.state.is_running)
        engine.start_timer()
        engine.stop_timer()

        scheduler.fire_all()

        assert calls == [True]

    def test_hook_skipped_when_start_is_dropped(self, engine, auto_meeting, scheduler):
        calls = []
        engine.on_change = lambda: calls.append(True)
        engine.start_timer()
        engine.stop_timer()
        engine.pause_timer()

        scheduler.fire_all()

        assert calls == []
