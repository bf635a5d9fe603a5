"""
JSONL-based storage for workout plans and history.

Handles reading, writing, and managing the workout file.
"""

import json
from pathlib import Path

from ..core.directory import GymDirectory
from ..core.errors import ValidationError
from ..core.models import WorkoutHistoryEntry, WorkoutPlanEntry
from .serializers import dict_to_history, dict_to_plan, record_to_json_line


class WorkoutStore:
    """
    Manages plans and history stored in JSONL format.

    One JSON object per line, each with a "type" of "plan" or "history".
    Plans are rewritten as a block whenever they change (invites mutate
    them); history lines are only ever appended.
    """

    def __init__(self, path: str | Path, directory: GymDirectory):
        """
        Initialize the store.

        Args:
            path: Path to the JSONL file
            directory: Gym directory used to resolve stored gym ids
        """
        self.path = Path(path)
        self.directory = directory

    def exists(self) -> bool:
        """Check if the workout file exists."""
        return self.path.exists()

    def init(self) -> None:
        """
        Create an empty workout file if it doesn't exist.

        Creates parent directories if needed.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()

    def _load_records(self) -> tuple[list[WorkoutPlanEntry], list[WorkoutHistoryEntry]]:
        if not self.path.exists():
            raise FileNotFoundError(f"Workout file not found: {self.path}. Run 'init' first.")

        plans: list[WorkoutPlanEntry] = []
        history: list[WorkoutHistoryEntry] = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                    kind = data.get("type")
                    if kind == "plan":
                        plans.append(dict_to_plan(data, self.directory))
                    elif kind == "history":
                        history.append(dict_to_history(data, self.directory))
                    else:
                        raise ValidationError(f"Unknown record type: {kind!r}")
                except (json.JSONDecodeError, AttributeError, ValidationError) as e:
                    raise ValidationError(
                        f"Error parsing line {line_num} in {self.path}: {e}"
                    ) from e
        return plans, history

    def load_plans(self) -> list[WorkoutPlanEntry]:
        """
        Load all plans in stored order.

        save_plans() writes them in the order it is given, so the
        scheduler's newest-created-first list survives a reload.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValidationError: If a line is invalid
        """
        plans, _ = self._load_records()
        return plans

    def load_history(self) -> list[WorkoutHistoryEntry]:
        """Load all history entries, most recent first."""
        _, history = self._load_records()
        history.sort(key=lambda h: h.completed_at, reverse=True)
        return history

    def _write(self, plans: list[WorkoutPlanEntry], history: list[WorkoutHistoryEntry]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            for plan in plans:
                f.write(record_to_json_line(plan) + "\n")
            for entry in sorted(history, key=lambda h: h.completed_at):
                f.write(record_to_json_line(entry) + "\n")

    def save_plans(self, plans: list[WorkoutPlanEntry]) -> None:
        """Replace all stored plans, keeping history as it is."""
        _, history = self._load_records()
        self._write(plans, history)

    def append_history(self, entry: WorkoutHistoryEntry) -> None:
        """
        Append a finished workout.

        Raises:
            ValidationError: If an entry with the same id is already stored
        """
        _, history = self._load_records()
        if any(h.id == entry.id for h in history):
            raise ValidationError(f"History entry {entry.id} already stored")
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(record_to_json_line(entry) + "\n")


def get_default_store_path() -> Path:
    """Default workout file: ~/.gymly/workouts.jsonl."""
    return Path.home() / ".gymly" / "workouts.jsonl"
