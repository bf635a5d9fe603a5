"""
Month calendar grid with workout markers.

build_month() always emits 42 cells (6 Monday-first weeks) covering the
display month plus padding days from the neighbouring months.  Markers are
looked up from a day -> markers map built once per call.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable

from .config import CALENDAR_CELLS
from .models import CalendarDay, WorkoutHistoryEntry, WorkoutPlanEntry


@dataclass
class DayMarkers:
    has_upcoming: bool = False
    has_history: bool = False


@dataclass
class DayEntries:
    """Plans and history entries that fall on one calendar day."""

    upcoming: list[WorkoutPlanEntry] = field(default_factory=list)
    history: list[WorkoutHistoryEntry] = field(default_factory=list)


def day_key(moment: datetime | date) -> date:
    """
    Local calendar day of an instant.

    Aware datetimes are converted to the device timezone first, so an
    evening workout in UTC+1 is not filed under the next UTC day.
    """
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone().replace(tzinfo=None)
        return moment.date()
    return moment


def month_start(anchor: datetime | date) -> date:
    """First day of the anchor's month."""
    return day_key(anchor).replace(day=1)


def shift_month(anchor: datetime | date, delta: int) -> date:
    """First day of the month delta months away from the anchor."""
    start = month_start(anchor)
    index = start.year * 12 + (start.month - 1) + delta
    return date(index // 12, index % 12 + 1, 1)


def build_day_markers(
    plans: Iterable[WorkoutPlanEntry],
    history: Iterable[WorkoutHistoryEntry],
) -> dict[date, DayMarkers]:
    """Precompute which days carry an upcoming plan and/or a finished workout."""
    markers: dict[date, DayMarkers] = {}
    for plan in plans:
        markers.setdefault(day_key(plan.scheduled_at), DayMarkers()).has_upcoming = True
    for entry in history:
        markers.setdefault(day_key(entry.completed_at), DayMarkers()).has_history = True
    return markers


def build_month(
    month_anchor: datetime | date,
    plans: Iterable[WorkoutPlanEntry],
    history: Iterable[WorkoutHistoryEntry],
) -> list[CalendarDay]:
    """
    Build the 42-cell grid for the anchor's month.

    Args:
        month_anchor: Any instant inside the month to display
        plans: Scheduled workouts (mark has_upcoming)
        history: Finished workouts (mark has_history)

    Returns:
        42 CalendarDay cells, the first on or before the 1st, Monday-first
    """
    first = month_start(month_anchor)
    first_visible = first - timedelta(days=first.weekday())
    markers = build_day_markers(plans, history)
    empty = DayMarkers()

    days: list[CalendarDay] = []
    for offset in range(CALENDAR_CELLS):
        current = first_visible + timedelta(days=offset)
        m = markers.get(current, empty)
        days.append(
            CalendarDay(
                date=current,
                is_current_month=(current.year, current.month) == (first.year, first.month),
                has_upcoming=m.has_upcoming,
                has_history=m.has_history,
            )
        )
    return days


def entries_for_day(
    day: datetime | date,
    plans: Iterable[WorkoutPlanEntry],
    history: Iterable[WorkoutHistoryEntry],
) -> DayEntries:
    """Plans (by time of day) and history entries for a selected day."""
    key = day_key(day)
    result = DayEntries(
        upcoming=[p for p in plans if day_key(p.scheduled_at) == key],
        history=[h for h in history if day_key(h.completed_at) == key],
    )
    result.upcoming.sort(key=lambda p: p.scheduled_at)
    return result
