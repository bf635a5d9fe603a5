"""
Check-in lifecycle state machine.

Two orthogonal pieces of state live here:

- detection: Searching -> Found | Missing, re-entered on every lookup
- session:   none -> pending -> active -> (finished) none

All transitions run on the event loop thread.  The only suspension point
is the simulated location lookup; each lookup carries a generation number
and its result is dropped if a newer lookup, a manual gym choice or an
unmount happened meanwhile.  The elapsed-time ticker is owned by the
SessionClock and is stopped whenever the session leaves the active state.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Literal

from .clock import SessionClock
from .config import DEFAULT_DISPLAY_NAME, DETECTION_DELAY_S, DETECTION_RADIUS_M
from .directory import GymDirectory
from .errors import StaleResultError, ValidationError
from .geo import find_nearest_with_distance
from .invites import InviteCoordinator
from .models import (
    MUSCLE_GROUPS,
    ActiveSession,
    DetectionState,
    Found,
    Gym,
    InviteContext,
    Location,
    Missing,
    PendingSession,
    Searching,
    WorkoutHistoryEntry,
    validate_muscles,
)
from .notifications import Notifier
from .scheduler import WorkoutPlanScheduler, new_history_id

SessionPhase = Literal["none", "pending", "active"]


@dataclass(frozen=True)
class MachineSnapshot:
    """Everything a renderer needs, copied out of the machine."""

    detection: DetectionState
    phase: SessionPhase
    gym: Gym | None
    muscles: frozenset[str]
    invited_friend_ids: tuple[str, ...]
    start_time: datetime | None
    elapsed_ms: int
    invite_context: InviteContext | None


class SessionStateMachine:
    """
    Owner of gym detection and the check-in session.

    Args:
        directory: Gyms to match against, in tie-break order
        scheduler: Plan/history owner; finished sessions are recorded here
        notifier: Invite notification collaborator
        clock: Elapsed-time clock (one is created on `now` if omitted)
        now: Time source
        radius_m: Detection radius
        detection_delay_s: Simulated lookup latency
        display_name: Sender name on invitations
    """

    def __init__(
        self,
        directory: GymDirectory | Iterable[Gym],
        scheduler: WorkoutPlanScheduler | None = None,
        notifier: Notifier | None = None,
        clock: SessionClock | None = None,
        now: Callable[[], datetime] = datetime.now,
        radius_m: float = DETECTION_RADIUS_M,
        detection_delay_s: float = DETECTION_DELAY_S,
        display_name: str = DEFAULT_DISPLAY_NAME,
    ):
        self.directory = (
            directory if isinstance(directory, GymDirectory) else GymDirectory(directory)
        )
        self.now = now
        self.scheduler = scheduler or WorkoutPlanScheduler(notifier=notifier, now=now)
        self.clock = clock or SessionClock(now=now)
        self.radius_m = radius_m
        self.detection_delay_s = detection_delay_s
        self.invites = InviteCoordinator(self, self.scheduler, notifier, display_name)

        self.detection: DetectionState = Searching(generation=0)
        self.muscles: set[str] = set()
        self._generation = 0
        self._detect_task: asyncio.Task | None = None
        self._pending: PendingSession | None = None
        self._active: ActiveSession | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def pending(self) -> PendingSession | None:
        return self._pending

    @property
    def active(self) -> ActiveSession | None:
        return self._active

    @property
    def phase(self) -> SessionPhase:
        if self._active is not None:
            return "active"
        if self._pending is not None:
            return "pending"
        return "none"

    @property
    def selected_gym(self) -> Gym | None:
        """Gym from the current detection state, detected or picked."""
        return self.detection.gym if isinstance(self.detection, Found) else None

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def _invalidate_lookup(self) -> int:
        """Bump the generation and cancel any lookup in flight."""
        self._generation += 1
        if self._detect_task is not None and not self._detect_task.done():
            self._detect_task.cancel()
        self._detect_task = None
        return self._generation

    def _resolve(self, generation: int, location: Location) -> DetectionState:
        if generation != self._generation:
            raise StaleResultError(generation, self._generation)
        match = find_nearest_with_distance(location, self.directory, self.radius_m)
        if match is None:
            self.detection = Missing("no_gym_nearby")
        else:
            self.detection = Found(gym=match[0], distance_m=match[1])
        return self.detection

    async def detect(self, location: Location | None) -> DetectionState:
        """
        Run one detection cycle.

        A missing position fix resolves to Missing("no_location") at once,
        without consulting the directory.  A lookup that is superseded while
        waiting leaves the newer state untouched.
        """
        self._generation += 1
        generation = self._generation
        if location is None:
            self.detection = Missing("no_location")
            return self.detection
        self.detection = Searching(generation=generation)
        await asyncio.sleep(self.detection_delay_s)
        try:
            return self._resolve(generation, location)
        except StaleResultError:
            return self.detection

    def begin_detection(self, location: Location | None) -> asyncio.Task:
        """
        Start a detection cycle on the running loop, cancelling the previous one.

        Must be called from inside a running event loop (screen mount,
        gym picker opened).
        """
        self._invalidate_lookup()
        task = asyncio.get_running_loop().create_task(self.detect(location))
        self._detect_task = task
        self.mount()
        return task

    def select_gym(self, gym: Gym) -> None:
        """Manual override: use this gym regardless of distance."""
        self._invalidate_lookup()
        self.detection = Found(gym=gym, distance_m=None, manual=True)

    def search_gyms(self, query: str) -> list[Gym]:
        return self.directory.search(query)

    # ------------------------------------------------------------------
    # Muscle selection
    # ------------------------------------------------------------------

    def set_muscles(self, muscles: Iterable[str]) -> bool:
        """
        Replace the muscle selection.

        Returns:
            False if a session is pending or active (its selection is frozen)
        """
        chosen = set(muscles)
        try:
            validate_muscles(chosen)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if self.phase != "none":
            return False
        self.muscles = chosen
        return True

    def toggle_muscle(self, muscle: str) -> bool:
        if muscle in self.muscles:
            return self.set_muscles(self.muscles - {muscle})
        return self.set_muscles(self.muscles | {muscle})

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def attempt_check_in(self) -> PendingSession:
        """
        Turn the current gym + muscle selection into a pending session.

        Raises:
            ValidationError: No gym found or picked, no muscle group chosen,
                or a session already exists.  State is left unchanged.
        """
        if self.phase != "none":
            raise ValidationError("A workout is already in progress.")
        gym = self.selected_gym
        if gym is None:
            raise ValidationError(
                "You are not at a gym. Move within range of a gym or pick one from the list."
            )
        if not self.muscles:
            raise ValidationError("Choose at least one muscle group.")
        self._pending = PendingSession(gym=gym, muscles=frozenset(self.muscles))
        return self._pending

    def confirm(self, members: Iterable[str] = ()) -> ActiveSession | None:
        """
        Promote the pending session to an active one starting now.

        Friends invited while pending, followed by any extra members not
        already among them, become the starting members.
        """
        pending = self._pending
        if pending is None:
            return None
        self._pending = None
        self.invites.drop("pending")
        self._active = ActiveSession(
            gym=pending.gym,
            muscles=pending.muscles,
            start_time=self.now(),
            invited_friend_ids=list(dict.fromkeys([*pending.invited_friend_ids, *members])),
        )
        self.clock.start(self._active.start_time)
        return self._active

    def discard_pending(self) -> bool:
        if self._pending is None:
            return False
        self._pending = None
        self.invites.drop("pending")
        return True

    def finish_workout(self) -> WorkoutHistoryEntry | None:
        """
        End the active session and record it in history.

        Returns:
            The new history entry, or None when no session is active
        """
        active = self._active
        if active is None:
            return None
        now = self.now()
        completed_at = max(now, active.start_time)
        entry = WorkoutHistoryEntry(
            id=new_history_id(),
            gym=active.gym,
            muscles=[m for m in MUSCLE_GROUPS if m in active.muscles],
            duration_ms=active.elapsed_ms(completed_at),
            completed_at=completed_at,
            invited_friends=list(active.invited_friend_ids),
            # Acceptance arrives asynchronously from the invitees' side
            accepted_friends=[],
        )
        self._end_active()
        self.scheduler.record_completed(entry)
        self.muscles = set()
        return entry

    def abandon(self) -> bool:
        """Drop the active session without recording history."""
        if self._active is None:
            return False
        self._end_active()
        return True

    def _end_active(self) -> None:
        self._active = None
        self.clock.stop()
        self.invites.drop("active")

    def mount(self) -> None:
        """
        Screen is shown again: resume the ticker of a still-active session.

        The first snapshot after resuming is taken at once, from the
        original start time.
        """
        if self._active is not None and self.clock.ticker is None:
            self.clock.start(self._active.start_time)

    def unmount(self) -> None:
        """Screen went away: cancel the lookup and release the ticker."""
        self._invalidate_lookup()
        self.clock.stop()

    # ------------------------------------------------------------------

    def elapsed_ms(self) -> int:
        """
        Fresh elapsed time of the active session, or 0.

        Read from the ticker while one runs, otherwise computed from the
        start time so a released ticker never shows a stale zero.
        """
        if self._active is None:
            return 0
        ticker = self.clock.ticker
        if ticker is not None:
            return ticker.refresh()
        return self._active.elapsed_ms(self.now())

    def snapshot(self) -> MachineSnapshot:
        session = self._active or self._pending
        return MachineSnapshot(
            detection=self.detection,
            phase=self.phase,
            gym=session.gym if session is not None else self.selected_gym,
            muscles=session.muscles if session is not None else frozenset(self.muscles),
            invited_friend_ids=tuple(session.invited_friend_ids) if session is not None else (),
            start_time=self._active.start_time if self._active is not None else None,
            elapsed_ms=self.elapsed_ms(),
            invite_context=self.invites.current,
        )
