"""Shared Typer app object, shared option types, and store utilities."""

from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer

from ..core.directory import GymDirectory
from ..core.notifications import Notifier
from ..core.scheduler import WorkoutPlanScheduler
from ..core.settings import Settings
from ..io.workout_store import WorkoutStore, get_default_store_path

# Shared --store-path option type used across all commands
StorePathOption = Annotated[
    Optional[Path],
    typer.Option("--store-path", "-p", help="Path to the workouts JSONL file"),
]

app = typer.Typer(
    name="gymly",
    help="Check in at the gym, plan workouts and invite friends.",
    no_args_is_help=True,
)


def get_store(store_path: Path | None, directory: GymDirectory) -> WorkoutStore:
    """Get workout store from path or default location, creating the file if needed."""
    store = WorkoutStore(store_path or get_default_store_path(), directory)
    store.init()
    return store


def load_scheduler(
    store: WorkoutStore,
    settings: Settings,
    notifier: Notifier | None = None,
    now=datetime.now,
) -> WorkoutPlanScheduler:
    """Scheduler pre-filled with the stored plans and history."""
    return WorkoutPlanScheduler(
        notifier=notifier,
        now=now,
        organizer_name=settings.display_name,
        plans=store.load_plans(),
        history=store.load_history(),
    )


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated option into trimmed, non-empty parts."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]
