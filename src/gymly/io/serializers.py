"""
JSON serialization for plans and workout history.

Handles conversion between dataclasses and JSON-compatible dicts.  Gyms
are stored by id and resolved against the directory on load.
"""

import json
from datetime import datetime
from typing import Any

from ..core.directory import GymDirectory
from ..core.errors import ValidationError
from ..core.models import WorkoutHistoryEntry, WorkoutPlanEntry


def validate_datetime(value: Any, name: str) -> datetime:
    """
    Parse an ISO-8601 timestamp.

    Raises:
        ValidationError: If the value is missing or not ISO-8601
    """
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an ISO-8601 string, got {value!r}")
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {name}: {value}") from e


def validate_id_list(value: Any, name: str) -> list[str]:
    """Friend id list; duplicates are dropped keeping first occurrence."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{name} must be a list, got {type(value).__name__}")
    return list(dict.fromkeys(str(v) for v in value))


def _resolve_gym(data: dict[str, Any], directory: GymDirectory):
    try:
        gym_id = int(data["gym_id"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Missing or invalid gym_id: {data.get('gym_id')!r}") from e
    gym = directory.find(gym_id)
    if gym is None:
        raise ValidationError(f"Unknown gym_id: {gym_id}")
    return gym


def plan_to_dict(plan: WorkoutPlanEntry) -> dict[str, Any]:
    """Convert WorkoutPlanEntry to a JSON-compatible dict."""
    return {
        "type": "plan",
        "id": plan.id,
        "gym_id": plan.gym.id,
        "muscles": list(plan.muscles),
        "scheduled_at": plan.scheduled_at.isoformat(),
        "invited_friends": list(plan.invited_friends),
        "accepted_friends": list(plan.accepted_friends),
    }


def dict_to_plan(data: dict[str, Any], directory: GymDirectory) -> WorkoutPlanEntry:
    """
    Convert dict to WorkoutPlanEntry.

    Raises:
        ValidationError: If data is invalid or the gym is unknown
    """
    if not data.get("id"):
        raise ValidationError("Plan record without id")
    try:
        return WorkoutPlanEntry(
            id=str(data["id"]),
            gym=_resolve_gym(data, directory),
            muscles=list(data.get("muscles", [])),
            scheduled_at=validate_datetime(data.get("scheduled_at"), "scheduled_at"),
            invited_friends=validate_id_list(data.get("invited_friends"), "invited_friends"),
            accepted_friends=validate_id_list(data.get("accepted_friends"), "accepted_friends"),
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


def history_to_dict(entry: WorkoutHistoryEntry) -> dict[str, Any]:
    """Convert WorkoutHistoryEntry to a JSON-compatible dict."""
    return {
        "type": "history",
        "id": entry.id,
        "gym_id": entry.gym.id,
        "muscles": list(entry.muscles),
        "duration_ms": entry.duration_ms,
        "completed_at": entry.completed_at.isoformat(),
        "invited_friends": list(entry.invited_friends),
        "accepted_friends": list(entry.accepted_friends),
    }


def dict_to_history(data: dict[str, Any], directory: GymDirectory) -> WorkoutHistoryEntry:
    """
    Convert dict to WorkoutHistoryEntry.

    Raises:
        ValidationError: If data is invalid or the gym is unknown
    """
    if not data.get("id"):
        raise ValidationError("History record without id")
    try:
        return WorkoutHistoryEntry(
            id=str(data["id"]),
            gym=_resolve_gym(data, directory),
            muscles=list(data.get("muscles", [])),
            duration_ms=int(data.get("duration_ms", 0)),
            completed_at=validate_datetime(data.get("completed_at"), "completed_at"),
            invited_friends=validate_id_list(data.get("invited_friends"), "invited_friends"),
            accepted_friends=validate_id_list(data.get("accepted_friends"), "accepted_friends"),
        )
    except (TypeError, ValueError) as e:
        raise ValidationError(str(e)) from e


def record_to_json_line(record: WorkoutPlanEntry | WorkoutHistoryEntry) -> str:
    """Serialize one plan or history entry to a single JSON line."""
    if isinstance(record, WorkoutPlanEntry):
        data = plan_to_dict(record)
    else:
        data = history_to_dict(record)
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)
