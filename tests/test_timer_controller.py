"""
Tests for the timer controller.

Tests cover:
- One active timer per operator (local check, repository check, racing sessions)
- Pause/resume transitions and rejected transitions
- Wall-clock duration on stop
- Repository failures leave local state untouched
- Restore after restart, including reminder realignment
- Reminder prompts: continue, stop, overlap suppression, async answers, failures
- Reminder release on stop/close
- Session correlation id around reminder callbacks
"""

import asyncio
import concurrent.futures
import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from backoffice.observability import get_correlation_id
from backoffice.time_tracking import (
    DuplicateActiveTimer,
    InMemoryTimeEntryRepository,
    InvalidTransition,
    PersistenceError,
    RepositoryError,
    SqliteTimeEntryRepository,
    StartConflict,
    StaticConfirmation,
    TimeEntry,
    TimerController,
    TimerState,
)
from backoffice.time_tracking import confirmation
from backoffice.time_tracking.confirmation import resolve_answer
from tests.fixtures import T0

INTERVAL = timedelta(minutes=30)


def make_controller(repo, clock, scheduler, confirmation=None, operator="alice", **kwargs):
    return TimerController(
        operator,
        repo,
        confirmation or StaticConfirmation(),
        scheduler=scheduler,
        clock=clock,
        reminder_interval=INTERVAL,
        min_reminder_delay=1,
        **kwargs,
    )


class FailingRepository(InMemoryTimeEntryRepository):
    """In-memory repository whose operations can be made to fail."""

    def __init__(self):
        super().__init__()
        self.fail_insert = False
        self.fail_update = False
        self.fail_find = False

    def insert(self, entry):
        if self.fail_insert:
            raise RepositoryError("disk full")
        super().insert(entry)

    def update(self, entry_id, fields):
        if self.fail_update:
            raise RepositoryError("disk full")
        return super().update(entry_id, fields)

    def find_active(self, operator_id):
        if self.fail_find:
            raise RepositoryError("database is locked")
        return super().find_active(operator_id)


class FuturePort:
    """Confirmation port that answers later through concurrent futures."""

    def __init__(self):
        self.prompts = []
        self.futures: list[concurrent.futures.Future] = []

    def ask(self, context):
        self.prompts.append(context)
        fut = concurrent.futures.Future()
        self.futures.append(fut)
        return fut


@pytest.fixture
def repo():
    return FailingRepository()


@pytest.fixture
def controller(repo, clock, scheduler):
    ctl = make_controller(repo, clock, scheduler)
    yield ctl
    ctl.close()


# =============================================================================
# Start / one active timer
# =============================================================================


class TestStart:
    def test_start_creates_active_entry(self, controller, repo, scheduler):
        entry = controller.start("c1", "VAT return")

        assert controller.state == TimerState.RUNNING
        assert entry.active and entry.end_time is None
        assert entry.start_time == T0
        assert entry.entry_date == T0.date()
        assert entry.entry_method == "timer"
        assert entry.status == "draft"
        assert repo.find_active("alice") == entry
        assert scheduler.current.first_delay == INTERVAL.total_seconds()

    def test_client_is_required(self, controller):
        with pytest.raises(ValueError):
            controller.start("")

    def test_second_start_in_same_session_conflicts(self, controller, repo):
        first = controller.start("c1")
        with pytest.raises(StartConflict) as exc_info:
            controller.start("c2")
        assert exc_info.value.entry_id == first.id
        assert repo.list_active() == [first]

    def test_start_conflicts_with_other_session(self, repo, clock, scheduler):
        # Scenario: a stale session has an active timer for the same operator
        first = make_controller(repo, clock, scheduler).start("c1")
        other = make_controller(repo, clock, scheduler, restore=False)

        with pytest.raises(StartConflict) as exc_info:
            other.start("c2")

        assert exc_info.value.entry_id == first.id
        assert other.state == TimerState.IDLE
        assert repo.list_active() == [first]

    def test_other_operators_are_independent(self, repo, clock, scheduler):
        make_controller(repo, clock, scheduler, operator="alice").start("c1")
        make_controller(repo, clock, scheduler, operator="bob").start("c1")
        assert {e.operator_id for e in repo.list_active()} == {"alice", "bob"}

    def test_start_failure_leaves_idle(self, controller, repo, scheduler):
        repo.fail_insert = True
        with pytest.raises(PersistenceError):
            controller.start("c1")
        assert controller.state == TimerState.IDLE
        assert controller.active_entry is None
        assert scheduler.reminders == []

    def test_start_after_close_is_rejected(self, controller):
        controller.close()
        with pytest.raises(InvalidTransition):
            controller.start("c1")


# =============================================================================
# Pause / resume
# =============================================================================


class TestPauseResume:
    def test_pause_then_resume(self, controller, repo, clock):
        entry = controller.start("c1")
        clock.advance(minutes=10)
        paused = controller.pause()

        assert controller.state == TimerState.PAUSED
        assert controller.is_paused
        assert paused.paused_at == clock.now
        assert repo.get(entry.id).is_paused

        clock.advance(minutes=5)
        resumed = controller.resume()
        assert controller.state == TimerState.RUNNING
        assert not resumed.is_paused
        assert resumed.resumed_at == clock.now
        assert not repo.get(entry.id).is_paused

    def test_pause_when_idle_is_rejected(self, controller):
        with pytest.raises(InvalidTransition):
            controller.pause()

    def test_pause_twice_is_rejected(self, controller):
        controller.start("c1")
        controller.pause()
        with pytest.raises(InvalidTransition):
            controller.pause()
        assert controller.state == TimerState.PAUSED

    def test_resume_while_running_is_rejected(self, controller):
        controller.start("c1")
        with pytest.raises(InvalidTransition):
            controller.resume()

    def test_pause_failure_keeps_running(self, controller, repo, scheduler):
        entry = controller.start("c1")
        repo.fail_update = True

        with pytest.raises(PersistenceError):
            controller.pause()

        assert controller.state == TimerState.RUNNING
        assert controller.active_entry == entry
        assert scheduler.current is not None

    def test_elapsed_keeps_counting_while_paused(self, controller, clock):
        controller.start("c1")
        clock.advance(minutes=10)
        controller.pause()
        clock.advance(minutes=20)
        assert controller.elapsed() == timedelta(minutes=30)


# =============================================================================
# Stop
# =============================================================================


class TestStop:
    def test_stop_records_wall_clock_duration(self, controller, repo, clock):
        entry = controller.start("c1")
        clock.advance(minutes=30)
        controller.pause()
        clock.advance(minutes=60)
        controller.resume()
        clock.advance(minutes=30)

        finished = controller.stop()

        assert finished.duration_hours == Decimal("2.00")
        assert finished.end_time == clock.now
        assert not finished.active
        assert controller.state == TimerState.IDLE
        assert repo.find_active("alice") is None
        assert repo.get(entry.id).end_time == clock.now

    def test_duration_is_rounded_to_two_places(self, controller, clock):
        controller.start("c1")
        clock.advance(hours=1, minutes=30, seconds=45)
        assert controller.stop().duration_hours == Decimal("1.51")

    def test_stop_while_paused(self, controller, clock):
        controller.start("c1")
        controller.pause()
        clock.advance(hours=1)
        assert controller.stop().duration_hours == Decimal("1.00")

    def test_stop_when_idle_is_noop(self, controller, repo):
        assert controller.stop() is None
        assert repo.list_active() == []

    def test_stop_failure_keeps_timer(self, controller, repo, scheduler):
        entry = controller.start("c1")
        repo.fail_update = True

        with pytest.raises(PersistenceError):
            controller.stop()

        assert controller.state == TimerState.RUNNING
        assert controller.active_entry == entry
        assert not scheduler.current.cancelled

    def test_stop_when_entry_vanished(self, controller, repo):
        entry = controller.start("c1")
        repo._entries.pop(entry.id)
        with pytest.raises(PersistenceError):
            controller.stop()
        assert controller.state == TimerState.RUNNING

    def test_new_timer_after_stop(self, controller, clock):
        first = controller.start("c1")
        controller.stop()
        clock.advance(minutes=1)
        second = controller.start("c2")
        assert second.id != first.id


# =============================================================================
# Restore
# =============================================================================


def _stored_entry(operator="alice", started=T0, **kwargs):
    return TimeEntry(
        id=f"entry-{operator}",
        operator_id=operator,
        client_id="c1",
        start_time=started,
        entry_date=started.date(),
        **kwargs,
    )


class TestRestore:
    def test_restores_running_timer(self, repo, clock, scheduler):
        repo.insert(_stored_entry(started=T0 - timedelta(minutes=45)))

        ctl = make_controller(repo, clock, scheduler)

        assert ctl.state == TimerState.RUNNING
        assert ctl.active_entry.id == "entry-alice"
        assert ctl.elapsed() == timedelta(minutes=45)
        # Next boundary is start + 60m, 15 minutes from now
        assert scheduler.current.first_delay == 15 * 60

    def test_restores_paused_timer(self, repo, clock, scheduler):
        repo.insert(_stored_entry(is_paused=True, paused_at=T0 - timedelta(minutes=5)))
        ctl = make_controller(repo, clock, scheduler)
        assert ctl.state == TimerState.PAUSED
        assert len(scheduler.live) == 1

    def test_restore_on_boundary_respects_minimum_delay(self, repo, clock, scheduler):
        repo.insert(_stored_entry(started=T0 - INTERVAL + timedelta(milliseconds=500)))
        make_controller(repo, clock, scheduler)
        assert scheduler.current.first_delay == 1

    def test_nothing_to_restore(self, controller, scheduler):
        assert controller.state == TimerState.IDLE
        assert scheduler.reminders == []

    def test_restore_failure_is_reported(self, repo, clock, scheduler):
        repo.fail_find = True
        with pytest.raises(PersistenceError):
            make_controller(repo, clock, scheduler)

    def test_restored_timer_can_stop(self, repo, clock, scheduler):
        repo.insert(_stored_entry(started=T0 - timedelta(hours=3)))
        ctl = make_controller(repo, clock, scheduler)
        assert ctl.stop().duration_hours == Decimal("3.00")


# =============================================================================
# Reminder release
# =============================================================================


class TestReminderLifecycle:
    def test_stop_cancels_reminder_once(self, controller, scheduler):
        controller.start("c1")
        reminder = scheduler.current
        controller.stop()
        controller.close()
        assert reminder.cancel_calls == 1
        assert not controller.reminder_armed

    def test_close_cancels_reminder_once(self, controller, scheduler):
        controller.start("c1")
        reminder = scheduler.current
        controller.close()
        controller.stop()
        assert reminder.cancel_calls == 1

    def test_close_leaves_entry_active(self, repo, clock, scheduler):
        with make_controller(repo, clock, scheduler) as ctl:
            entry = ctl.start("c1")
        assert scheduler.live == []
        assert repo.find_active("alice") == entry

    def test_pause_keeps_single_reminder(self, controller, scheduler):
        controller.start("c1")
        controller.pause()
        controller.resume()
        assert len(scheduler.reminders) == 1
        assert len(scheduler.live) == 1


# =============================================================================
# Reminder prompts
# =============================================================================


class TestReminderPrompts:
    def test_continue_answer_keeps_running(self, repo, clock, scheduler):
        port = StaticConfirmation(True)
        ctl = make_controller(
            repo, clock, scheduler, port, client_name_lookup=lambda cid: "Acme (Pty) Ltd"
        )
        ctl.start("c1", "Payroll")
        clock.advance(minutes=30)

        scheduler.current.fire()

        assert ctl.state == TimerState.RUNNING
        [prompt] = port.prompts
        assert prompt.prompt_number == 1
        assert prompt.elapsed == timedelta(minutes=30)
        assert "Acme (Pty) Ltd" in prompt.message
        assert "00:30:00" in prompt.message

    def test_stop_answer_stops_timer(self, repo, clock, scheduler):
        ctl = make_controller(repo, clock, scheduler, StaticConfirmation(False))
        entry = ctl.start("c1")
        reminder = scheduler.current
        clock.advance(minutes=30)

        reminder.fire()

        assert ctl.state == TimerState.IDLE
        assert repo.get(entry.id).duration_hours == Decimal("0.50")
        assert reminder.cancelled

    def test_no_prompt_while_paused(self, repo, clock, scheduler):
        port = StaticConfirmation(False)
        ctl = make_controller(repo, clock, scheduler, port)
        ctl.start("c1")
        ctl.pause()

        scheduler.current.fire()

        assert port.prompts == []
        assert ctl.state == TimerState.PAUSED

    def test_overlapping_prompts_are_suppressed(self, repo, clock, scheduler):
        port = FuturePort()
        ctl = make_controller(repo, clock, scheduler, port)
        ctl.start("c1")

        scheduler.current.fire()
        scheduler.current.fire()
        assert len(port.prompts) == 1

        port.futures[0].set_result(True)
        scheduler.current.fire()
        assert len(port.prompts) == 2
        assert port.prompts[1].prompt_number == 2

    def test_late_stop_answer_ignores_newer_timer(self, repo, clock, scheduler):
        port = FuturePort()
        ctl = make_controller(repo, clock, scheduler, port)
        ctl.start("c1")
        scheduler.current.fire()

        ctl.stop()
        newer = ctl.start("c2")
        port.futures[0].set_result(False)

        assert ctl.state == TimerState.RUNNING
        assert ctl.active_entry.id == newer.id

    def test_async_port(self, repo, clock, scheduler):
        class AsyncPort:
            async def ask(self, context):
                await asyncio.sleep(0)
                return False

        ctl = make_controller(repo, clock, scheduler, AsyncPort())
        ctl.start("c1")
        scheduler.current.fire()
        assert ctl.state == TimerState.IDLE

    def test_port_exception_is_recorded(self, repo, clock, scheduler):
        class BrokenPort:
            calls = 0

            def ask(self, context):
                self.calls += 1
                raise RuntimeError("dialog crashed")

        port = BrokenPort()
        ctl = make_controller(repo, clock, scheduler, port)
        ctl.start("c1")

        scheduler.current.fire()
        assert isinstance(ctl.last_reminder_error, RuntimeError)
        assert ctl.state == TimerState.RUNNING

        # the failed prompt does not block the next one
        scheduler.current.fire()
        assert port.calls == 2

    def test_failed_future_is_recorded(self, repo, clock, scheduler):
        port = FuturePort()
        ctl = make_controller(repo, clock, scheduler, port)
        ctl.start("c1")
        scheduler.current.fire()

        port.futures[0].set_exception(TimeoutError("no answer"))

        assert isinstance(ctl.last_reminder_error, TimeoutError)
        assert ctl.state == TimerState.RUNNING

    def test_client_lookup_failure_still_prompts(self, repo, clock, scheduler):
        def lookup(client_id):
            raise KeyError(client_id)

        port = StaticConfirmation(True)
        ctl = make_controller(repo, clock, scheduler, port, client_name_lookup=lookup)
        ctl.start("c1")
        scheduler.current.fire()
        assert port.prompts[0].client_name is None
        assert "this client" in port.prompts[0].message

    def test_prompt_task_is_held_until_answered(self):
        answers = []

        async def slow_answer():
            await asyncio.sleep(0.01)
            return False

        async def scenario():
            resolve_answer(slow_answer(), lambda answer, error: answers.append((answer, error)))
            held = len(confirmation._pending_prompts)
            for _ in range(100):
                if answers:
                    break
                await asyncio.sleep(0.01)
            return held

        assert asyncio.run(scenario()) == 1
        assert answers == [(False, None)]
        assert not confirmation._pending_prompts


class TestSessionCorrelation:
    """Reminder callbacks log under the operator session's correlation id."""

    class RecordingPort:
        def __init__(self):
            self.seen = []

        def ask(self, context):
            self.seen.append(get_correlation_id())
            return True

    def test_prompt_runs_under_session_id(self, repo, clock, scheduler):
        port = self.RecordingPort()
        ctl = make_controller(repo, clock, scheduler, port, session_id="desk-7")
        ctl.start("c1")

        scheduler.current.fire()

        assert port.seen == ["desk-7"]
        assert get_correlation_id() is None

    def test_generated_session_id(self, repo, clock, scheduler):
        ctl = make_controller(repo, clock, scheduler)
        other = make_controller(FailingRepository(), clock, scheduler)
        assert ctl.session_id.startswith("timer-alice-")
        assert ctl.session_id != other.session_id

    def test_late_answer_finishes_under_session_id(self, repo, clock, scheduler):
        port = FuturePort()
        ctl = make_controller(repo, clock, scheduler, port, session_id="desk-7")
        ctl.start("c1")
        scheduler.current.fire()

        seen = []
        original = ctl._settle_prompt

        def settle(*args):
            seen.append(get_correlation_id())
            original(*args)

        ctl._settle_prompt = settle
        port.futures[0].set_result(False)

        assert seen == ["desk-7"]
        assert ctl.state == TimerState.IDLE


# =============================================================================
# SQLite repository
# =============================================================================


class TestSqliteRepository:
    def test_entry_survives_storage(self, store, clock, scheduler):
        repo = SqliteTimeEntryRepository(store)
        ctl = make_controller(repo, clock, scheduler)
        entry = ctl.start("c1", "Audit prep", hourly_rate=Decimal("850.00"))

        loaded = repo.get(entry.id)
        assert loaded.start_time == entry.start_time
        assert loaded.hourly_rate == Decimal("850.00")
        assert loaded.is_billable is True
        assert loaded.active is True

        clock.advance(minutes=45)
        ctl.stop()
        stored = repo.get(entry.id)
        assert stored.duration_hours == Decimal("0.75")
        assert stored.end_time == clock.now

    def test_storage_rejects_second_active_entry(self, store):
        repo = SqliteTimeEntryRepository(store)
        repo.insert(_stored_entry())
        with pytest.raises(DuplicateActiveTimer):
            repo.insert(
                TimeEntry(
                    id="another",
                    operator_id="alice",
                    client_id="c2",
                    start_time=T0,
                    entry_date=T0.date(),
                )
            )

    def test_restore_from_storage(self, store, clock, scheduler):
        repo = SqliteTimeEntryRepository(store)
        first = make_controller(repo, clock, scheduler)
        entry = first.start("c1")
        first.close()

        clock.advance(minutes=50)
        second = make_controller(repo, clock, scheduler)
        assert second.active_entry.id == entry.id
        assert scheduler.current.first_delay == 10 * 60

    def test_racing_sessions_start_only_one_timer(self, store, clock, scheduler):
        repo = SqliteTimeEntryRepository(store)
        sessions = [make_controller(repo, clock, scheduler, restore=False) for _ in range(4)]
        barrier = threading.Barrier(len(sessions))

        def attempt(ctl):
            barrier.wait()
            try:
                ctl.start("c1")
                return "started"
            except StartConflict:
                return "conflict"

        with concurrent.futures.ThreadPoolExecutor(len(sessions)) as pool:
            outcomes = list(pool.map(attempt, sessions))

        assert outcomes.count("started") == 1
        assert outcomes.count("conflict") == len(sessions) - 1
        assert len(repo.list_active()) == 1
