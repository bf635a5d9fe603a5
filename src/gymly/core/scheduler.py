"""
Workout plan scheduling and workout history.

Owns the two collections worth persisting: future WorkoutPlanEntry records
and finished WorkoutHistoryEntry records.  Newest entries come first, the
way the list screens show them.
"""

import uuid
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable

from .config import (
    DEFAULT_DISPLAY_NAME,
    HISTORY_ID_PREFIX,
    PLAN_ID_PREFIX,
    QUARTER_MINUTES,
    ROUND_UP_REMAINDER,
    friend_name,
)
from .errors import ValidationError
from .models import Gym, WorkoutHistoryEntry, WorkoutPlanEntry, validate_muscles
from .notifications import Notifier


def new_plan_id() -> str:
    return f"{PLAN_ID_PREFIX}{uuid.uuid4().hex[:12]}"


def new_history_id() -> str:
    return f"{HISTORY_ID_PREFIX}{uuid.uuid4().hex[:12]}"


def round_to_quarter_hour(moment: datetime) -> datetime:
    """
    Round a picked time to the nearest quarter hour.

    Within each quarter, 8 or more minutes in rounds up to the next
    quarter, fewer rounds down: 18:07 -> 18:00, 18:08 -> 18:15,
    18:53 -> 19:00.  Seconds and microseconds are dropped.
    """
    remainder = moment.minute % QUARTER_MINUTES
    rounded = moment.replace(second=0, microsecond=0) - timedelta(minutes=remainder)
    if remainder >= ROUND_UP_REMAINDER:
        rounded += timedelta(minutes=QUARTER_MINUTES)
    return rounded


def default_plan_time(now: datetime) -> datetime:
    """Start of the next full hour, the pre-filled time for a new plan."""
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def combine_day_and_time(day: date, time_of_day: datetime | time) -> datetime:
    """Move a picked time of day onto a picked calendar day (seconds dropped)."""
    t = time_of_day.time() if isinstance(time_of_day, datetime) else time_of_day
    return datetime.combine(day, t.replace(second=0, microsecond=0))


class WorkoutPlanScheduler:
    """
    Plan and history owner.

    Args:
        notifier: Receives invite-accepted notifications for the organizer
        now: Time source for upcoming()
        organizer_name: Display name of the local user
        plans: Initial plans (e.g. loaded from a WorkoutStore)
        history: Initial history entries
    """

    def __init__(
        self,
        notifier: Notifier | None = None,
        now: Callable[[], datetime] = datetime.now,
        organizer_name: str = DEFAULT_DISPLAY_NAME,
        plans: Iterable[WorkoutPlanEntry] = (),
        history: Iterable[WorkoutHistoryEntry] = (),
    ):
        self.notifier = notifier
        self.now = now
        self.organizer_name = organizer_name
        self.plans: list[WorkoutPlanEntry] = list(plans)
        self.history: list[WorkoutHistoryEntry] = list(history)

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def create_plan(
        self,
        gym: Gym | None,
        muscles: Iterable[str],
        scheduled_at: datetime | None,
    ) -> str:
        """
        Schedule a new workout.

        Returns:
            The new plan id, ready for an invite context

        Raises:
            ValidationError: No gym, no muscle groups, or no time.  Past
                times are accepted; the calendar shows them like any other.
        """
        muscle_list = list(dict.fromkeys(muscles))
        if gym is None:
            raise ValidationError("Choose which gym the workout will take place at.")
        if not muscle_list:
            raise ValidationError("Choose at least one muscle group for the planned workout.")
        try:
            validate_muscles(muscle_list)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if scheduled_at is None:
            raise ValidationError("Choose a time for the planned workout.")

        plan = WorkoutPlanEntry(
            id=new_plan_id(),
            gym=gym,
            muscles=muscle_list,
            scheduled_at=round_to_quarter_hour(scheduled_at),
        )
        self.plans.insert(0, plan)
        return plan.id

    def get_plan(self, plan_id: str) -> WorkoutPlanEntry | None:
        for plan in self.plans:
            if plan.id == plan_id:
                return plan
        return None

    def add_invites(self, plan_id: str, friend_ids: Iterable[str]) -> list[str]:
        """
        Append friends to a plan's invite list.

        Returns:
            Ids that were not already invited (empty for an unknown plan)
        """
        plan = self.get_plan(plan_id)
        if plan is None:
            return []
        added: list[str] = []
        for friend_id in friend_ids:
            if friend_id not in plan.invited_friends:
                plan.invited_friends.append(friend_id)
                added.append(friend_id)
        return added

    def accept_invite(
        self,
        plan_id: str,
        friend_id: str,
        accepter_name: str | None = None,
    ) -> bool:
        """
        Record that an invitee accepted.

        Called from the invitee's side, so the plan may already be gone;
        an unknown plan id is a no-op.

        Returns:
            True if the plan exists (whether or not this is a repeat)
        """
        plan = self.get_plan(plan_id)
        if plan is None:
            return False
        if friend_id not in plan.invited_friends:
            plan.invited_friends.append(friend_id)
        if friend_id in plan.accepted_friends:
            return True
        plan.accepted_friends.append(friend_id)
        if self.notifier is not None:
            self.notifier.notify_invite_accepted(
                self.organizer_name,
                accepter_name or friend_name(friend_id),
                plan.gym.name,
            )
        return True

    def remove_plan(self, plan_id: str) -> bool:
        plan = self.get_plan(plan_id)
        if plan is None:
            return False
        self.plans.remove(plan)
        return True

    def upcoming(self, after: datetime | None = None) -> list[WorkoutPlanEntry]:
        """Plans at or after a moment (default: now), soonest first."""
        cutoff = after if after is not None else self.now()
        return sorted(
            (p for p in self.plans if p.scheduled_at >= cutoff),
            key=lambda p: p.scheduled_at,
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def record_completed(self, entry: WorkoutHistoryEntry) -> None:
        """Add a finished workout to history (newest first)."""
        if any(h.id == entry.id for h in self.history):
            raise ValidationError(f"History entry {entry.id} already recorded")
        self.history.insert(0, entry)
