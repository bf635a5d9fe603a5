"""
Notification dispatch interface.

The core only calls a Notifier; delivery is fire-and-forget.  The
RecordingNotifier keeps every notification in memory, standing in for the
push backend in tests and in the CLI.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Literal, Protocol

from .config import MUSCLE_LABELS, friend_name
from .models import Gym

NotificationType = Literal["workout_invite", "invite_response"]


def muscle_summary(muscles: Iterable[str]) -> str:
    """
    Human-readable summary of a muscle selection.

    ["bryst", "triceps", "mave"] -> "Bryst, Triceps & Mave"
    """
    labels = [MUSCLE_LABELS.get(m, m) for m in muscles]
    if not labels:
        return ""
    if len(labels) == 1:
        return labels[0]
    return ", ".join(labels[:-1]) + " & " + labels[-1]


@dataclass
class Notification:
    """One delivered notification."""

    type: NotificationType
    title: str
    message: str
    recipient_id: str | None
    gym_id: int | None = None
    gym_name: str | None = None
    plan_id: str | None = None
    scheduled_at: datetime | None = None
    muscles: list[str] = field(default_factory=list)


class Notifier(Protocol):
    """Outbound notification collaborator."""

    def send_workout_invite(
        self,
        from_display_name: str,
        gym: Gym,
        muscle_summary: str,
        friend_ids: list[str],
        plan_id: str | None = None,
        scheduled_at: datetime | None = None,
        muscles: list[str] | None = None,
    ) -> None: ...

    def notify_invite_accepted(
        self, organizer_name: str, accepter_name: str, gym_name: str
    ) -> None: ...


class RecordingNotifier:
    """Notifier that records one Notification per recipient."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    def send_workout_invite(
        self,
        from_display_name: str,
        gym: Gym,
        muscle_summary: str,
        friend_ids: list[str],
        plan_id: str | None = None,
        scheduled_at: datetime | None = None,
        muscles: list[str] | None = None,
    ) -> None:
        workout_text = muscle_summary or "en træning"
        for friend_id in friend_ids:
            self.sent.append(
                Notification(
                    type="workout_invite",
                    title=f"{from_display_name} inviterer dig",
                    message=f"{from_display_name} træner {workout_text} på {gym.name}",
                    recipient_id=friend_id,
                    gym_id=gym.id,
                    gym_name=gym.name,
                    plan_id=plan_id,
                    scheduled_at=scheduled_at,
                    muscles=list(muscles or []),
                )
            )

    def notify_invite_accepted(
        self, organizer_name: str, accepter_name: str, gym_name: str
    ) -> None:
        self.sent.append(
            Notification(
                type="invite_response",
                title=f"{accepter_name} joiner din træning",
                message=f"{accepter_name} deltager på {gym_name}",
                recipient_id=None,
                gym_name=gym_name,
            )
        )

    def for_recipient(self, friend_id: str) -> list[Notification]:
        """All notifications addressed to one friend."""
        return [n for n in self.sent if n.recipient_id == friend_id]

    def clear(self) -> None:
        self.sent.clear()


def recipient_names(friend_ids: Iterable[str]) -> list[str]:
    """Display names for a list of friend ids."""
    return [friend_name(f) for f in friend_ids]
