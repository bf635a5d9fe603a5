"""
Integration tests for the check-in lifecycle.

Each test drives SessionStateMachine (and the InviteCoordinator and
WorkoutPlanScheduler it owns) through a user flow with an injected clock.
Async behaviour runs inside asyncio.run() with detection delays and tick
intervals of a few milliseconds.
"""

import asyncio
import math
from datetime import date, datetime, timedelta

import pytest

from gymly.core.calendar_grid import build_month
from gymly.core.clock import SessionClock
from gymly.core.config import EARTH_RADIUS_M
from gymly.core.errors import ValidationError
from gymly.core.models import (
    ActiveContext,
    Found,
    Gym,
    Location,
    Missing,
    PendingContext,
    PlanContext,
    Searching,
    muscles_or_default,
)
from gymly.core.notifications import RecordingNotifier, muscle_summary
from gymly.core.scheduler import WorkoutPlanScheduler
from gymly.core.session import SessionStateMachine


# ===========================================================================
# Helpers
# ===========================================================================

METRES_PER_DEGREE = EARTH_RADIUS_M * math.pi / 180


class FakeNow:
    """Callable time source that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def _gym(gym_id: int, lat: float = 55.6761, lon: float = 12.5683) -> Gym:
    return Gym(id=gym_id, name=f"Gym {gym_id}", latitude=lat, longitude=lon)


def _north_of(gym: Gym, metres: float) -> Location:
    return Location(gym.latitude + metres / METRES_PER_DEGREE, gym.longitude)


G1 = _gym(1)
G2 = _gym(2, lat=55.70, lon=12.60)  # a few km from G1


def _machine(
    gyms=(G1, G2),
    now: FakeNow | None = None,
    notifier: RecordingNotifier | None = None,
    scheduler: WorkoutPlanScheduler | None = None,
    delay: float = 0.0,
) -> SessionStateMachine:
    now = now or FakeNow(datetime(2025, 1, 10, 17, 0))
    return SessionStateMachine(
        list(gyms),
        scheduler=scheduler,
        notifier=notifier,
        now=now,
        radius_m=100,
        detection_delay_s=delay,
    )


def _checked_in(machine: SessionStateMachine, muscles=("bryst",)) -> SessionStateMachine:
    """Machine with a pending session at G1."""
    asyncio.run(machine.detect(_north_of(G1, 40)))
    machine.set_muscles(muscles)
    machine.attempt_check_in()
    return machine


# ===========================================================================
# 1. Happy path: detect, check in, tick, finish
# ===========================================================================

class TestHappyPath:
    """
    G1 is 40 m away, radius 100 m, muscles {bryst}.
    Confirm at 17:00:00, finish 65 s later.
    Expected: display "00:01:05", history entry with duration 65000 ms.
    """

    def test_detect_check_in_and_finish(self):
        now = FakeNow(datetime(2025, 1, 10, 17, 0))
        machine = _machine(now=now)

        state = asyncio.run(machine.detect(_north_of(G1, 40)))
        assert isinstance(state, Found)
        assert state.gym is G1
        assert state.distance_m == pytest.approx(40, abs=1e-6)
        assert not state.manual

        machine.set_muscles(["bryst"])
        pending = machine.attempt_check_in()
        assert machine.phase == "pending"
        assert pending.gym is G1

        active = machine.confirm()
        assert machine.phase == "active"
        assert active.start_time == datetime(2025, 1, 10, 17, 0)
        assert machine.clock.ticker.display == "00:00:00"

        now.advance(seconds=65)
        machine.clock.ticker.refresh()
        assert machine.clock.ticker.display == "00:01:05"
        assert machine.elapsed_ms() == 65_000

        entry = machine.finish_workout()
        assert entry is not None
        assert entry.duration_ms == 65_000
        assert entry.gym is G1
        assert entry.muscles == ["bryst"]
        assert entry.completed_at == datetime(2025, 1, 10, 17, 1, 5)
        assert entry.accepted_friends == []

        assert machine.phase == "none"
        assert machine.scheduler.history[0] is entry
        assert machine.muscles == set()
        assert machine.clock.ticker is None

    def test_history_muscles_in_canonical_order(self):
        machine = _checked_in(_machine(), muscles=("mave", "bryst", "triceps"))
        machine.confirm()
        entry = machine.finish_workout()
        assert entry.muscles == ["bryst", "triceps", "mave"]

    def test_clock_running_backwards_gives_zero_duration(self):
        now = FakeNow(datetime(2025, 1, 10, 17, 0))
        machine = _checked_in(_machine(now=now))
        active = machine.confirm()
        now.advance(seconds=-10)
        entry = machine.finish_workout()
        assert entry.duration_ms == 0
        assert entry.completed_at == active.start_time


# ===========================================================================
# 2. Detection
# ===========================================================================

class TestDetection:

    def test_initial_state_is_searching(self):
        assert _machine().detection == Searching(generation=0)

    def test_no_gym_nearby_blocks_check_in(self):
        machine = _machine()
        state = asyncio.run(machine.detect(_north_of(G1, 500)))
        assert state == Missing("no_gym_nearby")

        machine.set_muscles(["bryst"])
        with pytest.raises(ValidationError):
            machine.attempt_check_in()
        assert machine.phase == "none"

    def test_no_location_fix(self):
        machine = _machine()
        assert asyncio.run(machine.detect(None)) == Missing("no_location")

    def test_manual_pick_overrides_distance(self):
        machine = _machine()
        asyncio.run(machine.detect(_north_of(G1, 5000)))
        machine.select_gym(G2)
        assert machine.detection == Found(gym=G2, distance_m=None, manual=True)

        machine.set_muscles(["ben"])
        assert machine.attempt_check_in().gym is G2

    def test_search_gyms_uses_directory(self):
        machine = _machine()
        assert machine.search_gyms("gym 2") == [G2]

    def test_stale_lookup_does_not_overwrite_newer_result(self):
        machine = _machine(delay=0.01)

        async def scenario():
            first = asyncio.create_task(machine.detect(_north_of(G1, 10)))
            second = asyncio.create_task(machine.detect(_north_of(G2, 10)))
            return await asyncio.gather(first, second)

        _, newest = asyncio.run(scenario())
        assert isinstance(newest, Found) and newest.gym is G2
        assert machine.detection.gym is G2

    def test_manual_pick_during_lookup_wins(self):
        machine = _machine(delay=0.01)

        async def scenario():
            lookup = asyncio.create_task(machine.detect(_north_of(G1, 10)))
            await asyncio.sleep(0)
            machine.select_gym(G2)
            return await lookup

        asyncio.run(scenario())
        assert machine.detection == Found(gym=G2, distance_m=None, manual=True)

    def test_begin_detection_cancels_previous_lookup(self):
        machine = _machine(delay=0.01)

        async def scenario():
            first = machine.begin_detection(_north_of(G1, 10))
            second = machine.begin_detection(_north_of(G2, 10))
            result = await second
            await asyncio.sleep(0)
            return first, result

        first, result = asyncio.run(scenario())
        assert first.cancelled()
        assert result.gym is G2

    def test_unmount_discards_lookup_in_flight(self):
        machine = _machine(delay=0.01)

        async def scenario():
            machine.begin_detection(_north_of(G1, 10))
            await asyncio.sleep(0)
            machine.unmount()
            await asyncio.sleep(0.02)

        asyncio.run(scenario())
        assert isinstance(machine.detection, Searching)


# ===========================================================================
# 3. Session guards
# ===========================================================================

class TestSessionGuards:

    def test_finish_without_session_is_noop(self):
        machine = _machine()
        assert machine.finish_workout() is None
        assert machine.scheduler.history == []

    def test_check_in_requires_muscles(self):
        machine = _machine()
        asyncio.run(machine.detect(_north_of(G1, 10)))
        with pytest.raises(ValidationError):
            machine.attempt_check_in()

    def test_check_in_twice_is_rejected(self):
        machine = _checked_in(_machine())
        with pytest.raises(ValidationError):
            machine.attempt_check_in()
        machine.confirm()
        with pytest.raises(ValidationError):
            machine.attempt_check_in()

    def test_muscles_frozen_while_session_exists(self):
        machine = _checked_in(_machine())
        assert machine.set_muscles(["ben"]) is False
        assert machine.pending.muscles == frozenset({"bryst"})

    def test_unknown_muscle_is_rejected(self):
        with pytest.raises(ValidationError):
            _machine().set_muscles(["arme"])

    def test_toggle_muscle(self):
        machine = _machine()
        machine.toggle_muscle("ryg")
        machine.toggle_muscle("ben")
        machine.toggle_muscle("ryg")
        assert machine.muscles == {"ben"}

    def test_confirm_with_extra_members(self):
        machine = _checked_in(_machine())
        machine.invites.open(PendingContext())
        machine.invites.invite(["1"])
        active = machine.confirm(members=["2", "1"])
        assert active.invited_friend_ids == ["1", "2"]

    def test_confirm_without_pending_is_noop(self):
        assert _machine().confirm() is None

    def test_discard_pending(self):
        machine = _checked_in(_machine())
        assert machine.discard_pending() is True
        assert machine.phase == "none"
        assert machine.discard_pending() is False

    def test_abandon_records_nothing(self):
        machine = _checked_in(_machine())
        machine.confirm()
        assert machine.abandon() is True
        assert machine.phase == "none"
        assert machine.scheduler.history == []

    def test_snapshot(self):
        machine = _checked_in(_machine())
        machine.confirm()
        snap = machine.snapshot()
        assert snap.phase == "active"
        assert snap.gym is G1
        assert snap.muscles == frozenset({"bryst"})
        assert snap.start_time is not None
        assert snap.invite_context is None


# ===========================================================================
# 4. Session clock
# ===========================================================================

class TestSessionClock:

    def test_first_snapshot_is_synchronous(self):
        now = FakeNow(datetime(2025, 1, 10, 17, 0, 30))
        clock = SessionClock(now=now)
        seen: list[int] = []
        ticker = clock.start(datetime(2025, 1, 10, 17, 0), seen.append)
        assert seen == [30_000]
        assert ticker.display == "00:00:30"

    def test_ticks_stop_after_stop(self):
        now = FakeNow(datetime(2025, 1, 10, 17, 0))
        seen: list[int] = []

        async def scenario():
            clock = SessionClock(now=now, interval_s=0.005)
            clock.start(now(), seen.append)
            now.advance(seconds=2)
            await asyncio.sleep(0.03)
            clock.stop()
            count = len(seen)
            await asyncio.sleep(0.02)
            return count

        count = asyncio.run(scenario())
        assert seen[0] == 0
        assert seen[-1] == 2_000
        assert len(seen) == count
        assert len(seen) > 1

    def test_restart_retires_old_ticker(self):
        now = FakeNow(datetime(2025, 1, 10, 17, 0))
        clock = SessionClock(now=now)
        old = clock.start(now())
        new = clock.start(now())
        assert not old.running
        assert new.running
        now.advance(seconds=5)
        assert old.refresh() == 0
        assert new.refresh() == 5_000

    def test_tick_after_finish_is_noop(self):
        now = FakeNow(datetime(2025, 1, 10, 17, 0))
        machine = _checked_in(_machine(now=now))
        machine.confirm()
        ticker = machine.clock.ticker
        now.advance(seconds=10)
        ticker.refresh()
        machine.finish_workout()

        now.advance(seconds=50)
        assert ticker.refresh() == 10_000
        assert ticker.display == "00:00:10"
        assert machine.elapsed_ms() == 0

    def test_remount_resumes_ticker_from_start(self):
        now = FakeNow(datetime(2025, 1, 10, 17, 0))
        machine = _checked_in(_machine(now=now))
        machine.confirm()
        now.advance(seconds=30)
        machine.unmount()
        assert machine.clock.ticker is None
        assert machine.elapsed_ms() == 30_000

        async def scenario():
            await machine.begin_detection(_north_of(G1, 40))

        asyncio.run(scenario())
        assert machine.clock.ticker is not None
        now.advance(seconds=35)
        snap = machine.snapshot()
        assert snap.phase == "active"
        assert snap.elapsed_ms == 65_000

    def test_mount_without_session_starts_nothing(self):
        machine = _machine()
        machine.mount()
        assert machine.clock.ticker is None
        assert machine.elapsed_ms() == 0


# ===========================================================================
# 5. Invites
# ===========================================================================

class TestInvites:
    """
    Invite lists are append-only sets: [A, A, B] then [B] leaves {A, B}
    and each friend is notified exactly once.
    """

    def test_pending_invites_are_idempotent(self):
        notifier = RecordingNotifier()
        machine = _checked_in(_machine(notifier=notifier))

        assert machine.invites.open(PendingContext()) is True
        assert machine.invites.invite(["A", "A", "B"]) == ["A", "B"]
        assert machine.invites.invite(["B"]) == []

        assert machine.pending.invited_friend_ids == ["A", "B"]
        assert len(notifier.for_recipient("A")) == 1
        assert len(notifier.for_recipient("B")) == 1

    def test_closing_pending_context_starts_session(self):
        notifier = RecordingNotifier()
        machine = _checked_in(_machine(notifier=notifier))
        machine.invites.open(PendingContext())
        machine.invites.invite(["1", "2"])

        active = machine.invites.close()
        assert active is not None
        assert machine.phase == "active"
        assert active.invited_friend_ids == ["1", "2"]
        assert machine.invites.current is None

    def test_active_invites_reach_history(self):
        notifier = RecordingNotifier()
        machine = _checked_in(_machine(notifier=notifier))
        machine.invites.open(PendingContext())
        machine.invites.invite(["1"])
        machine.invites.close()

        assert machine.invites.open(ActiveContext()) is True
        assert machine.invites.invite_all(["1", "2", "3"]) == ["2", "3"]
        entry = machine.finish_workout()

        assert entry.invited_friends == ["1", "2", "3"]
        assert machine.invites.current is None
        assert machine.invites.open(ActiveContext()) is False

    def test_invite_without_context_is_noop(self):
        notifier = RecordingNotifier()
        machine = _checked_in(_machine(notifier=notifier))
        assert machine.invites.invite(["A"]) == []
        assert notifier.sent == []

    def test_cannot_open_context_for_missing_target(self):
        machine = _machine()
        assert machine.invites.open(PendingContext()) is False
        assert machine.invites.open(PlanContext("plan_missing")) is False
        assert machine.invites.current is None

    def test_notification_wording(self):
        notifier = RecordingNotifier()
        machine = _checked_in(_machine(notifier=notifier), muscles=("triceps", "bryst"))
        machine.invites.open(PendingContext())
        machine.invites.invite(["2"])

        (sent,) = notifier.sent
        assert sent.type == "workout_invite"
        assert sent.title == "Du inviterer dig"
        assert "Bryst & Triceps" in sent.message
        assert sent.recipient_id == "2"
        assert sent.gym_id == G1.id


# ===========================================================================
# 6. Plans
# ===========================================================================

class TestPlans:
    """
    now = 2025-01-01 09:00.
    Plan for 2025-01-10 18:07 is stored at 18:00 and marks Jan 10.
    """

    @pytest.fixture
    def now(self):
        return FakeNow(datetime(2025, 1, 1, 9, 0))

    @pytest.fixture
    def notifier(self):
        return RecordingNotifier()

    @pytest.fixture
    def scheduler(self, now, notifier):
        return WorkoutPlanScheduler(notifier=notifier, now=now)

    def test_plan_round_trip_through_calendar(self, scheduler):
        plan_id = scheduler.create_plan(G1, ["bryst", "triceps"], datetime(2025, 1, 10, 18, 7))
        plan = scheduler.get_plan(plan_id)
        assert plan_id.startswith("plan_")
        assert plan.scheduled_at == datetime(2025, 1, 10, 18, 0)

        days = {d.date: d for d in build_month(date(2025, 1, 1), scheduler.plans, [])}
        assert days[date(2025, 1, 10)].has_upcoming
        assert not days[date(2025, 1, 9)].has_upcoming

    def test_new_plans_are_prepended(self, scheduler):
        first = scheduler.create_plan(G1, ["ben"], datetime(2025, 1, 5, 8, 0))
        second = scheduler.create_plan(G2, ["ryg"], datetime(2025, 1, 3, 8, 0))
        assert [p.id for p in scheduler.plans] == [second, first]
        assert [p.id for p in scheduler.upcoming()] == [second, first]

    @pytest.mark.parametrize("gym,muscles,when", [
        (None, ["bryst"], datetime(2025, 1, 10, 18, 0)),
        (G1, [], datetime(2025, 1, 10, 18, 0)),
        (G1, ["arme"], datetime(2025, 1, 10, 18, 0)),
        (G1, ["bryst"], None),
    ])
    def test_invalid_plans_are_rejected(self, scheduler, gym, muscles, when):
        with pytest.raises(ValidationError):
            scheduler.create_plan(gym, muscles, when)
        assert scheduler.plans == []

    def test_past_time_is_accepted(self, scheduler):
        plan_id = scheduler.create_plan(G1, ["bryst"], datetime(2024, 12, 31, 18, 7))
        assert scheduler.get_plan(plan_id).scheduled_at == datetime(2024, 12, 31, 18, 0)
        assert scheduler.upcoming() == []

    def test_default_clock_accepts_any_time(self):
        scheduler = WorkoutPlanScheduler()
        plan_id = scheduler.create_plan(G1, ["ben"], datetime(2025, 1, 10, 18, 7))
        assert scheduler.get_plan(plan_id).scheduled_at == datetime(2025, 1, 10, 18, 0)

    def test_plan_invites_notify_with_plan_details(self, scheduler, notifier, now):
        machine = _machine(now=now, notifier=notifier, scheduler=scheduler)
        plan_id = scheduler.create_plan(G1, ["triceps", "bryst"], datetime(2025, 1, 10, 18, 7))

        assert machine.invites.open(PlanContext(plan_id)) is True
        assert machine.invites.invite(["1", "2", "1"]) == ["1", "2"]
        assert machine.invites.invite(["2"]) == []

        plan = scheduler.get_plan(plan_id)
        assert plan.invited_friends == ["1", "2"]
        assert len(notifier.sent) == 2
        for n in notifier.sent:
            assert n.plan_id == plan_id
            assert n.scheduled_at == datetime(2025, 1, 10, 18, 0)
            assert n.muscles == ["triceps", "bryst"]

    def test_removed_plan_closes_context(self, scheduler, notifier, now):
        machine = _machine(now=now, notifier=notifier, scheduler=scheduler)
        plan_id = scheduler.create_plan(G1, ["bryst"], datetime(2025, 1, 10, 18, 0))
        machine.invites.open(PlanContext(plan_id))

        assert scheduler.remove_plan(plan_id) is True
        assert machine.invites.invite(["3"]) == []
        assert machine.invites.current is None
        assert notifier.sent == []

    def test_accept_invite(self, scheduler, notifier):
        plan_id = scheduler.create_plan(G1, ["bryst"], datetime(2025, 1, 10, 18, 0))

        assert scheduler.accept_invite(plan_id, "2") is True
        assert scheduler.accept_invite(plan_id, "2") is True

        plan = scheduler.get_plan(plan_id)
        assert plan.invited_friends == ["2"]
        assert plan.accepted_friends == ["2"]
        (sent,) = notifier.sent
        assert sent.type == "invite_response"
        assert sent.title == "Marie joiner din træning"

    def test_accept_unknown_plan_returns_false(self, scheduler, notifier):
        assert scheduler.accept_invite("plan_gone", "1") is False
        assert notifier.sent == []

    def test_finished_session_recorded_once(self, scheduler, now):
        machine = _checked_in(_machine(now=now, scheduler=scheduler))
        machine.confirm()
        entry = machine.finish_workout()
        with pytest.raises(ValidationError):
            scheduler.record_completed(entry)
        assert scheduler.history == [entry]


class TestMuscleHelpers:

    def test_summary(self):
        assert muscle_summary(["bryst", "triceps", "mave"]) == "Bryst, Triceps & Mave"
        assert muscle_summary(["ben"]) == "Ben"
        assert muscle_summary([]) == ""

    def test_default_is_whole_body(self):
        assert muscles_or_default([]) == ["hele_kroppen"]
        assert muscles_or_default(["mave", "bryst"]) == ["bryst", "mave"]
