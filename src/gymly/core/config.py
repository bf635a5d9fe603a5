"""
Configuration constants for the check-in and planning core.

All adjustable parameters are centralized here for easy tuning.
User overrides for the check-in timings are read by settings.py.
"""

from typing import Final

# =============================================================================
# GYM DETECTION
# =============================================================================

EARTH_RADIUS_M: Final[float] = 6_371_000.0  # Mean Earth radius for Haversine
DETECTION_RADIUS_M: Final[float] = 100.0  # A gym within this distance counts as "here"
DETECTION_DELAY_S: Final[float] = 0.6  # Simulated location lookup latency

# =============================================================================
# SESSION CLOCK
# =============================================================================

TICK_INTERVAL_S: Final[float] = 1.0  # Elapsed-time refresh while a session is active

# =============================================================================
# CALENDAR
# =============================================================================

CALENDAR_WEEKS: Final[int] = 6
CALENDAR_CELLS: Final[int] = CALENDAR_WEEKS * 7  # Always a full 6x7 grid
WEEKDAY_LABELS: Final[tuple[str, ...]] = ("Man", "Tir", "Ons", "Tor", "Fre", "Lør", "Søn")

# =============================================================================
# PLAN SCHEDULING
# =============================================================================

QUARTER_MINUTES: Final[int] = 15
ROUND_UP_REMAINDER: Final[int] = 8  # Minutes into a quarter at which we round up
PLAN_ID_PREFIX: Final[str] = "plan_"
HISTORY_ID_PREFIX: Final[str] = "history_"

# =============================================================================
# MUSCLE GROUPS
# =============================================================================

MUSCLE_LABELS: Final[dict[str, str]] = {
    "bryst": "Bryst",
    "triceps": "Triceps",
    "skulder": "Skulder",
    "ben": "Ben",
    "biceps": "Biceps",
    "mave": "Mave",
    "ryg": "Ryg",
    "hele_kroppen": "Hele kroppen",
}

FREE_TRAINING_MUSCLE: Final[str] = "hele_kroppen"

# =============================================================================
# DIRECTORY / DISPLAY
# =============================================================================

SEARCH_RESULT_LIMIT: Final[int] = 6  # Suggestions shown while typing a gym name
UNKNOWN_GYM_NAME: Final[str] = "Ubekendt center"
DEFAULT_DISPLAY_NAME: Final[str] = "Du"  # Sender name when the profile has none

# Mock friend names used by the recording notifier and the CLI
MOCK_FRIENDS: Final[dict[str, str]] = {
    "1": "Jeff",
    "2": "Marie",
    "3": "Lars",
    "4": "Sofia",
    "5": "Patti",
}


def friend_name(friend_id: str) -> str:
    """Return a display name for a friend id, falling back to 'Ven <id>'."""
    return MOCK_FRIENDS.get(friend_id, f"Ven {friend_id}")
