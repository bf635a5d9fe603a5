"""
Friend invitations for the pending check-in, the running session, or a
scheduled plan.

Only one invite context is open at a time; opening another replaces it.
Invite lists are append-only and never hold the same friend twice.
"""

from typing import Iterable, Protocol

from .config import DEFAULT_DISPLAY_NAME
from .models import (
    MUSCLE_GROUPS,
    ActiveContext,
    ActiveSession,
    Gym,
    InviteContext,
    PendingContext,
    PendingSession,
    PlanContext,
)
from .notifications import Notifier, muscle_summary
from .scheduler import WorkoutPlanScheduler


class SessionHost(Protocol):
    """The parts of the session state machine the coordinator needs."""

    @property
    def pending(self) -> PendingSession | None: ...

    @property
    def active(self) -> ActiveSession | None: ...

    def confirm(self) -> ActiveSession | None: ...


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


class InviteCoordinator:
    """
    Routes invitations to whichever entity the open context points at.

    Args:
        sessions: Source of the pending/active session
        scheduler: Owner of workout plans
        notifier: Receives one invite notification per new invitee
        from_display_name: Sender name shown in notifications
    """

    def __init__(
        self,
        sessions: SessionHost,
        scheduler: WorkoutPlanScheduler,
        notifier: Notifier | None = None,
        from_display_name: str = DEFAULT_DISPLAY_NAME,
    ):
        self._sessions = sessions
        self._scheduler = scheduler
        self.notifier = notifier
        self.from_display_name = from_display_name
        self.current: InviteContext | None = None

    def _exists(self, context: InviteContext) -> bool:
        if isinstance(context, PendingContext):
            return self._sessions.pending is not None
        if isinstance(context, ActiveContext):
            return self._sessions.active is not None
        return self._scheduler.get_plan(context.plan_id) is not None

    def open(self, context: InviteContext) -> bool:
        """
        Make context the invite target.

        Returns:
            False (and leaves the current context alone) if the pending
            session, active session or plan it refers to does not exist
        """
        if not self._exists(context):
            return False
        self.current = context
        return True

    def invited(self) -> list[str]:
        """Friends already invited to the current target."""
        context = self.current
        if isinstance(context, PendingContext) and self._sessions.pending is not None:
            return list(self._sessions.pending.invited_friend_ids)
        if isinstance(context, ActiveContext) and self._sessions.active is not None:
            return list(self._sessions.active.invited_friend_ids)
        if isinstance(context, PlanContext):
            plan = self._scheduler.get_plan(context.plan_id)
            if plan is not None:
                return list(plan.invited_friends)
        return []

    def invite(self, friend_ids: Iterable[str]) -> list[str]:
        """
        Invite friends to the current target.

        Friends already on the list are skipped and get no new notification.

        Returns:
            Newly invited ids, in call order
        """
        requested = _unique(friend_ids)
        context = self.current
        if not requested or context is None:
            return []
        if not self._exists(context):
            # Target vanished (session finished, plan removed)
            self.current = None
            return []

        if isinstance(context, PlanContext):
            added = self._scheduler.add_invites(context.plan_id, requested)
            plan = self._scheduler.get_plan(context.plan_id)
            if added and plan is not None:
                self._notify(
                    plan.gym,
                    plan.muscles,
                    added,
                    plan_id=plan.id,
                    scheduled_at=plan.scheduled_at,
                )
            return added

        session = (
            self._sessions.pending
            if isinstance(context, PendingContext)
            else self._sessions.active
        )
        added = [f for f in requested if f not in session.invited_friend_ids]
        session.invited_friend_ids.extend(added)
        if added:
            self._notify(
                session.gym, [m for m in MUSCLE_GROUPS if m in session.muscles], added
            )
        return added

    def invite_all(self, candidate_pool: Iterable[str]) -> list[str]:
        """Invite everyone in the pool who is not invited yet."""
        already = set(self.invited())
        return self.invite(f for f in candidate_pool if f not in already)

    def close(self) -> ActiveSession | None:
        """
        Close the current context.

        Closing a pending context is the "let's go" step: the pending
        session is promoted to an active one with its invitees as starting
        members.

        Returns:
            The new ActiveSession when a pending session was promoted
        """
        context, self.current = self.current, None
        if isinstance(context, PendingContext) and self._sessions.pending is not None:
            return self._sessions.confirm()
        return None

    def drop(self, kind: str) -> None:
        """Forget the current context if it is of the given kind."""
        if self.current is not None and self.current.kind == kind:
            self.current = None

    def _notify(
        self,
        gym: Gym,
        muscles: list[str],
        friend_ids: list[str],
        plan_id: str | None = None,
        scheduled_at=None,
    ) -> None:
        if self.notifier is None:
            return
        self.notifier.send_workout_invite(
            self.from_display_name,
            gym,
            muscle_summary(muscles),
            friend_ids,
            plan_id=plan_id,
            scheduled_at=scheduled_at,
            muscles=list(muscles) if plan_id is not None else None,
        )
