"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of gyms, plans, history and the
month calendar.
"""

from datetime import date, datetime

from rich.console import Console
from rich.table import Table

from ..core.calendar_grid import month_start
from ..core.clock import format_duration
from ..core.config import MUSCLE_LABELS, WEEKDAY_LABELS
from ..core.directory import format_gym_display_name, gym_status
from ..core.models import CalendarDay, Gym, WorkoutHistoryEntry, WorkoutPlanEntry
from ..core.notifications import recipient_names

console = Console()

MONTH_NAMES = (
    "januar", "februar", "marts", "april", "maj", "juni",
    "juli", "august", "september", "oktober", "november", "december",
)


def format_muscles(muscles) -> str:
    return ", ".join(MUSCLE_LABELS.get(m, m) for m in muscles)


def _friends_cell(friend_ids: list[str]) -> str:
    return ", ".join(recipient_names(friend_ids)) if friend_ids else "—"


def print_gyms(gyms: list[Gym], at: datetime) -> None:
    """Print a table of gyms with their open/closed status at a time."""
    table = Table(title="Gyms")
    table.add_column("ID", justify="right")
    table.add_column("Centre")
    table.add_column("Address")
    table.add_column("Status")

    for gym in gyms:
        status = gym_status(gym, at)
        if gym.hours is not None and gym.hours.is_open_24_hours:
            status_cell = "[green]open 24h[/green]"
        elif status.is_open and status.current_hours is not None:
            status_cell = f"[green]open[/green] {status.current_hours.open}–{status.current_hours.close}"
        else:
            status_cell = "[red]closed[/red]"
        table.add_row(
            str(gym.id),
            format_gym_display_name(gym),
            ", ".join(p for p in (gym.address, gym.postal_code) if p) or "—",
            status_cell,
        )

    console.print(table)


def print_calendar(days: list[CalendarDay], anchor: date, selected: date | None = None) -> None:
    """
    Print the 6-week month grid.

    ★ marks a day with an upcoming plan, 🔥 a day with a finished workout.
    Padding days from neighbouring months are dimmed.
    """
    start = month_start(anchor)
    table = Table(title=f"{MONTH_NAMES[start.month - 1]} {start.year}", show_lines=False)
    for label in WEEKDAY_LABELS:
        table.add_column(label, justify="center")

    for week in range(len(days) // 7):
        row: list[str] = []
        for day in days[week * 7:(week + 1) * 7]:
            text = f"{day.date.day:2d}"
            markers = ("🔥" if day.has_history else "") + ("★" if day.has_upcoming else "")
            cell = f"{text}{markers}"
            if not day.is_current_month:
                cell = f"[dim]{cell}[/dim]"
            if selected is not None and day.date == selected:
                cell = f"[reverse]{cell}[/reverse]"
            row.append(cell)
        table.add_row(*row)

    console.print(table)


def print_plans(plans: list[WorkoutPlanEntry]) -> None:
    """Print planned workouts, soonest first."""
    if not plans:
        print_info("No planned workouts.")
        return
    table = Table(title="Planned workouts")
    table.add_column("ID", no_wrap=True)
    table.add_column("When")
    table.add_column("Centre")
    table.add_column("Muscles")
    table.add_column("Invited")
    table.add_column("Joined")

    for plan in plans:
        table.add_row(
            plan.id,
            plan.scheduled_at.strftime("%Y-%m-%d %H:%M"),
            format_gym_display_name(plan.gym),
            format_muscles(plan.muscles),
            _friends_cell(plan.invited_friends),
            _friends_cell(plan.accepted_friends),
        )
    console.print(table)


def print_history(entries: list[WorkoutHistoryEntry]) -> None:
    """Print finished workouts, most recent first."""
    if not entries:
        print_info("No workouts recorded yet.")
        return
    table = Table(title="Workout history")
    table.add_column("Completed")
    table.add_column("Centre")
    table.add_column("Muscles")
    table.add_column("Duration", justify="right")
    table.add_column("Invited")

    for entry in entries:
        table.add_row(
            entry.completed_at.strftime("%Y-%m-%d %H:%M"),
            format_gym_display_name(entry.gym),
            format_muscles(entry.muscles),
            format_duration(entry.duration_ms),
            _friends_cell(entry.invited_friends),
        )
    console.print(table)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")
