"""
Data models for gymly.

All core dataclasses for gyms, check-in sessions, workout plans, history
and calendar cells.  Instants are naive local datetimes (device timezone),
the same way datetime.now() returns them.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Union

from .config import FREE_TRAINING_MUSCLE, MUSCLE_LABELS

MuscleGroup = Literal[
    "bryst", "triceps", "skulder", "ben", "biceps", "mave", "ryg", "hele_kroppen"
]
MUSCLE_GROUPS: tuple[str, ...] = tuple(MUSCLE_LABELS)
FriendId = str
Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
WEEKDAYS: tuple[str, ...] = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)


def validate_muscles(muscles) -> None:
    """Raise ValueError if any entry is not one of the eight muscle groups."""
    for m in muscles:
        if m not in MUSCLE_LABELS:
            raise ValueError(f"Invalid muscle group: {m!r}")


def muscles_or_default(muscles) -> list[str]:
    """Return the selection in canonical order, or whole-body for free training."""
    selected = set(muscles)
    chosen = [m for m in MUSCLE_GROUPS if m in selected]
    return chosen or [FREE_TRAINING_MUSCLE]


@dataclass(frozen=True)
class DayHours:
    """Opening hours for one weekday as 'HH:MM' strings."""

    open: str
    close: str

    def __post_init__(self) -> None:
        for value in (self.open, self.close):
            parts = value.split(":")
            if len(parts) != 2 or not all(p.isdigit() for p in parts):
                raise ValueError(f"Invalid time: {value!r}. Expected HH:MM")


@dataclass(frozen=True)
class GymHours:
    """
    Weekly opening hours for a gym.

    Weekdays without an entry are closed.  is_open_24_hours overrides
    everything else.
    """

    days: tuple[tuple[str, DayHours], ...] = ()
    is_open_24_hours: bool = False

    def for_weekday(self, weekday: int) -> DayHours | None:
        """Hours for a weekday index (Monday=0) or None when closed."""
        name = WEEKDAYS[weekday]
        for day, hours in self.days:
            if day == name:
                return hours
        return None


@dataclass(frozen=True)
class Gym:
    """A fitness centre from the static directory."""

    id: int
    name: str
    latitude: float
    longitude: float
    brand: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    region: str | None = None
    hours: GymHours | None = None

    def __post_init__(self) -> None:
        """Validate gym data."""
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class Location:
    """A position fix from the location provider."""

    latitude: float
    longitude: float


@dataclass
class PendingSession:
    """
    A check-in awaiting final confirmation.

    Friends invited while the session is pending are collected here and
    become the starting members of the active session.
    """

    gym: Gym
    muscles: frozenset[str]
    invited_friend_ids: list[FriendId] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.muscles:
            raise ValueError("a pending session needs at least one muscle group")
        validate_muscles(self.muscles)


@dataclass
class ActiveSession:
    """A confirmed, running workout."""

    gym: Gym
    muscles: frozenset[str]
    start_time: datetime
    invited_friend_ids: list[FriendId] = field(default_factory=list)

    def elapsed_ms(self, now: datetime) -> int:
        """Milliseconds since start, clamped at zero."""
        return max(0, int((now - self.start_time).total_seconds() * 1000))


@dataclass
class WorkoutPlanEntry:
    """A future-dated, pre-scheduled workout."""

    id: str
    gym: Gym
    muscles: list[str]
    scheduled_at: datetime
    invited_friends: list[FriendId] = field(default_factory=list)
    accepted_friends: list[FriendId] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate plan data."""
        if not self.id:
            raise ValueError("plan id must be non-empty")
        validate_muscles(self.muscles)


@dataclass
class WorkoutHistoryEntry:
    """A finished workout.  Append-only once recorded."""

    id: str
    gym: Gym
    muscles: list[str]
    duration_ms: int
    completed_at: datetime
    invited_friends: list[FriendId] = field(default_factory=list)
    accepted_friends: list[FriendId] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate history data."""
        if self.duration_ms < 0:
            raise ValueError("duration_ms must be non-negative")
        validate_muscles(self.muscles)

    @property
    def duration_minutes(self) -> int:
        """Duration rounded to whole minutes, as shown in lists."""
        return round(self.duration_ms / 60000)


# ---------------------------------------------------------------------------
# Invite contexts: at most one is open, so the coordinator holds a single
# InviteContext | None.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PendingContext:
    """Invites go to the pending check-in."""

    kind: Literal["pending"] = "pending"


@dataclass(frozen=True)
class ActiveContext:
    """Invites go to the running session."""

    kind: Literal["active"] = "active"


@dataclass(frozen=True)
class PlanContext:
    """Invites go to one scheduled plan."""

    plan_id: str
    kind: Literal["plan"] = "plan"


InviteContext = Union[PendingContext, ActiveContext, PlanContext]


# ---------------------------------------------------------------------------
# Gym detection states
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Searching:
    """A location lookup is in flight."""

    generation: int
    kind: Literal["searching"] = "searching"


@dataclass(frozen=True)
class Found:
    """
    A gym is selected.

    distance_m is None when the user picked the gym manually from the
    directory instead of being detected nearby.
    """

    gym: Gym
    distance_m: float | None = None
    manual: bool = False
    kind: Literal["found"] = "found"


@dataclass(frozen=True)
class Missing:
    """No gym within the detection radius, or no position fix."""

    reason: Literal["no_gym_nearby", "no_location"] = "no_gym_nearby"
    kind: Literal["missing"] = "missing"


DetectionState = Union[Searching, Found, Missing]


@dataclass(frozen=True)
class CalendarDay:
    """One cell of the month grid."""

    date: date
    is_current_month: bool
    has_upcoming: bool
    has_history: bool
