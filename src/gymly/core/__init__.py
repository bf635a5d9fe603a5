"""
Check-in core for gymly.

Gym detection, the session state machine, friend invitations, the plan
scheduler and the month calendar.
"""

from .calendar_grid import build_month, entries_for_day
from .clock import SessionClock, Ticker, format_duration
from .directory import GymDirectory, format_gym_display_name
from .errors import GymlyError, NotFoundError, StaleResultError, ValidationError
from .geo import find_nearest, find_nearest_with_distance, haversine_m
from .invites import InviteCoordinator
from .scheduler import WorkoutPlanScheduler, round_to_quarter_hour
from .session import MachineSnapshot, SessionStateMachine

__all__ = [
    "build_month",
    "entries_for_day",
    "SessionClock",
    "Ticker",
    "format_duration",
    "GymDirectory",
    "format_gym_display_name",
    "GymlyError",
    "NotFoundError",
    "StaleResultError",
    "ValidationError",
    "find_nearest",
    "find_nearest_with_distance",
    "haversine_m",
    "InviteCoordinator",
    "WorkoutPlanScheduler",
    "round_to_quarter_hour",
    "MachineSnapshot",
    "SessionStateMachine",
]
