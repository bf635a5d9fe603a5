"""
CLI entry point using Typer.

Provides commands around the check-in core:
- init: Create the workouts file
- gyms: Search the gym directory
- check-in: Detect a gym at a position, check in, and record the workout
- plan: Schedule a workout (optionally inviting friends)
- invite: Invite friends to a scheduled workout
- accept: Record that an invited friend accepted
- plans: List upcoming planned workouts
- calendar: Month grid with plan/history markers
- history: List finished workouts
"""

import asyncio
from datetime import date, datetime, time, timedelta
from typing import Annotated, NoReturn, Optional

import typer

from ..core.calendar_grid import build_month, entries_for_day, shift_month
from ..core.clock import SessionClock
from ..core.config import MOCK_FRIENDS
from ..core.directory import GymDirectory, format_gym_display_name
from ..core.errors import GymlyError
from ..core.models import (
    Found,
    Location,
    Missing,
    PendingContext,
    PlanContext,
    muscles_or_default,
)
from ..core.notifications import RecordingNotifier
from ..core.scheduler import (
    WorkoutPlanScheduler,
    combine_day_and_time,
    default_plan_time,
    round_to_quarter_hour,
)
from ..core.session import SessionStateMachine
from ..core.settings import Settings, load_settings
from ..io.workout_store import WorkoutStore
from . import views
from .app import StorePathOption, app, get_store, load_scheduler, parse_csv


def _fail(message: str) -> NoReturn:
    views.print_error(message)
    raise typer.Exit(1)


def _parse_when(value: str | None, label: str) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        _fail(f"Invalid {label}: {value!r}. Expected YYYY-MM-DD HH:MM")


def _open_scheduler(
    store: WorkoutStore,
    settings: Settings,
    notifier: RecordingNotifier | None = None,
    now=datetime.now,
) -> WorkoutPlanScheduler:
    try:
        return load_scheduler(store, settings, notifier, now=now)
    except GymlyError as e:
        _fail(str(e))


@app.command()
def init(store_path: StorePathOption = None) -> None:
    """Create the workouts file if it does not exist."""
    store = get_store(store_path, GymDirectory.load())
    views.print_success(f"Workouts file ready: {store.path}")


@app.command()
def gyms(
    query: Annotated[str, typer.Argument(help="Name, city, brand or postal code")] = "",
) -> None:
    """Search the gym directory (all gyms when no query is given)."""
    directory = GymDirectory.load()
    found = directory.search(query) if query.strip() else list(directory)
    if not found:
        # Street addresses are not part of the token search
        by_address = directory.find_by_query(query)
        found = [by_address] if by_address is not None else []
    if not found:
        views.print_info(f"No gyms match {query!r}.")
        return
    views.print_gyms(found, datetime.now())


@app.command("check-in")
def check_in(
    lat: Annotated[
        Optional[float], typer.Option("--lat", help="Latitude of the current position")
    ] = None,
    lon: Annotated[
        Optional[float], typer.Option("--lon", help="Longitude of the current position")
    ] = None,
    gym_id: Annotated[
        Optional[int], typer.Option("--gym", "-g", help="Pick a gym by id instead of detecting")
    ] = None,
    muscles: Annotated[
        str, typer.Option("--muscles", "-m", help="Comma-separated muscle groups, e.g. bryst,triceps")
    ] = "",
    invite: Annotated[
        Optional[str], typer.Option("--invite", "-i", help="Comma-separated friend ids to invite")
    ] = None,
    minutes: Annotated[
        float, typer.Option("--minutes", help="Simulated workout length before finishing")
    ] = 0.0,
    free: Annotated[
        bool, typer.Option("--free", help="Free training (whole body) when no muscles are given")
    ] = False,
    store_path: StorePathOption = None,
) -> None:
    """
    Check in, run a simulated workout and record it.

      gymly check-in --lat 55.6903 --lon 12.5537 --muscles bryst,triceps --minutes 45
    """
    settings = load_settings()
    directory = GymDirectory.load()
    store = get_store(store_path, directory)
    notifier = RecordingNotifier()

    base = datetime.now()
    offset = [timedelta(0)]

    def clock_now() -> datetime:
        return base + offset[0]

    machine = SessionStateMachine(
        directory,
        scheduler=_open_scheduler(store, settings, notifier, now=clock_now),
        notifier=notifier,
        clock=SessionClock(now=clock_now, interval_s=settings.tick_interval_s),
        now=clock_now,
        radius_m=settings.radius_m,
        detection_delay_s=settings.detection_delay_s,
        display_name=settings.display_name,
    )

    try:
        if gym_id is not None:
            machine.select_gym(directory.get(gym_id))
        else:
            location = Location(lat, lon) if lat is not None and lon is not None else None
            views.print_info("Looking for a gym nearby...")
            state = asyncio.run(machine.detect(location))
            if isinstance(state, Missing):
                if state.reason == "no_location":
                    views.print_warning("No position given; use --lat/--lon or --gym.")
                else:
                    views.print_warning(f"No gym within {settings.radius_m:.0f} m.")
            elif isinstance(state, Found) and state.distance_m is not None:
                views.print_info(
                    f"Found {format_gym_display_name(state.gym)} ({state.distance_m:.0f} m away)"
                )

        chosen = parse_csv(muscles)
        machine.set_muscles(muscles_or_default(chosen) if free else chosen)
        machine.attempt_check_in()

        invitees = parse_csv(invite)
        if invitees:
            machine.invites.open(PendingContext())
            machine.invites.invite(invitees)
            active = machine.invites.close()
        else:
            active = machine.confirm()
    except GymlyError as e:
        _fail(str(e))

    views.print_success(f"Checked in at {format_gym_display_name(active.gym)}")
    if notifier.sent:
        views.print_info(f"Sent {len(notifier.sent)} invitation(s).")

    offset[0] = timedelta(minutes=minutes)
    ticker = machine.clock.ticker
    if ticker is not None:
        ticker.refresh()
        views.print_info(f"Elapsed: {ticker.display}")

    entry = machine.finish_workout()
    if entry is None:
        _fail("No active workout to finish.")
    store.append_history(entry)
    views.print_success(f"Workout recorded ({entry.duration_minutes} min).")


@app.command()
def plan(
    gym_id: Annotated[int, typer.Option("--gym", "-g", help="Gym id (see 'gyms')")],
    muscles: Annotated[
        str, typer.Option("--muscles", "-m", help="Comma-separated muscle groups")
    ],
    at: Annotated[
        Optional[str],
        typer.Option("--at", "-t", help="Start time, YYYY-MM-DD HH:MM (default: next full hour)"),
    ] = None,
    day: Annotated[
        Optional[str],
        typer.Option("--day", "-d", help="Day YYYY-MM-DD; --at is then just the time, HH:MM"),
    ] = None,
    invite: Annotated[
        Optional[str], typer.Option("--invite", "-i", help="Comma-separated friend ids to invite")
    ] = None,
    store_path: StorePathOption = None,
) -> None:
    """
    Schedule a workout. The time is rounded to the nearest quarter hour.

      gymly plan --gym 2 --muscles ben,ryg --at "2025-01-10 18:07" --invite 1,2
      gymly plan --gym 2 --muscles ben --day 2025-01-10 --at 07:30
    """
    settings = load_settings()
    directory = GymDirectory.load()
    store = get_store(store_path, directory)
    notifier = RecordingNotifier()
    scheduler = _open_scheduler(store, settings, notifier)
    machine = SessionStateMachine(
        directory, scheduler=scheduler, notifier=notifier, display_name=settings.display_name
    )

    if day is not None:
        picked_day = _parse_when(day, "day").date()
        try:
            time_of_day = time.fromisoformat(at) if at else default_plan_time(datetime.now()).time()
        except ValueError:
            _fail(f"Invalid time: {at!r}. Expected HH:MM")
        scheduled_at = combine_day_and_time(picked_day, time_of_day)
    else:
        scheduled_at = _parse_when(at, "time") or default_plan_time(datetime.now())
    if round_to_quarter_hour(scheduled_at) < datetime.now():
        _fail("Choose a time in the future.")
    try:
        plan_id = scheduler.create_plan(directory.get(gym_id), parse_csv(muscles), scheduled_at)
    except GymlyError as e:
        _fail(str(e))

    invitees = parse_csv(invite)
    if invitees and machine.invites.open(PlanContext(plan_id)):
        machine.invites.invite(invitees)
        machine.invites.close()

    store.save_plans(scheduler.plans)
    created = scheduler.get_plan(plan_id)
    views.print_success(
        f"Planned {plan_id} at {created.scheduled_at:%Y-%m-%d %H:%M} "
        f"({format_gym_display_name(created.gym)})"
    )
    if notifier.sent:
        views.print_info(f"Sent {len(notifier.sent)} invitation(s).")


@app.command()
def invite(
    plan_id: Annotated[str, typer.Argument(help="Plan id")],
    friends: Annotated[
        Optional[str], typer.Option("--friends", "-f", help="Comma-separated friend ids")
    ] = None,
    everyone: Annotated[
        bool, typer.Option("--all", help="Invite every friend not invited yet")
    ] = False,
    store_path: StorePathOption = None,
) -> None:
    """Invite friends to a planned workout."""
    settings = load_settings()
    directory = GymDirectory.load()
    store = get_store(store_path, directory)
    notifier = RecordingNotifier()
    scheduler = _open_scheduler(store, settings, notifier)
    machine = SessionStateMachine(
        directory, scheduler=scheduler, notifier=notifier, display_name=settings.display_name
    )

    if not machine.invites.open(PlanContext(plan_id)):
        _fail(f"Unknown plan: {plan_id}")
    if everyone:
        added = machine.invites.invite_all(MOCK_FRIENDS)
    else:
        added = machine.invites.invite(parse_csv(friends))
    machine.invites.close()

    store.save_plans(scheduler.plans)
    if added:
        views.print_success(f"Invited {len(added)} friend(s) to {plan_id}.")
    else:
        views.print_info("Nobody new to invite.")


@app.command()
def accept(
    plan_id: Annotated[str, typer.Argument(help="Plan id from the invitation")],
    friend_id: Annotated[str, typer.Argument(help="Id of the friend who accepted")],
    store_path: StorePathOption = None,
) -> None:
    """Record that an invited friend accepted a planned workout."""
    settings = load_settings()
    directory = GymDirectory.load()
    store = get_store(store_path, directory)
    notifier = RecordingNotifier()
    scheduler = _open_scheduler(store, settings, notifier)

    if not scheduler.accept_invite(plan_id, friend_id):
        views.print_warning(f"Plan {plan_id} no longer exists.")
        return
    store.save_plans(scheduler.plans)
    for n in notifier.sent:
        views.print_info(n.title)
    views.print_success(f"Friend {friend_id} joins {plan_id}.")


@app.command()
def plans(store_path: StorePathOption = None) -> None:
    """List upcoming planned workouts."""
    settings = load_settings()
    directory = GymDirectory.load()
    scheduler = _open_scheduler(get_store(store_path, directory), settings)
    views.print_plans(scheduler.upcoming())


@app.command()
def calendar(
    month: Annotated[
        Optional[str], typer.Option("--month", help="Month to show, YYYY-MM (default: current)")
    ] = None,
    day: Annotated[
        Optional[str], typer.Option("--day", help="Also list workouts on this day, YYYY-MM-DD")
    ] = None,
    offset: Annotated[
        int, typer.Option("--offset", help="Months to page forward (negative: back)")
    ] = 0,
    store_path: StorePathOption = None,
) -> None:
    """Show the month calendar with planned (★) and finished (🔥) workouts."""
    settings = load_settings()
    directory = GymDirectory.load()
    scheduler = _open_scheduler(get_store(store_path, directory), settings)

    anchor = date.today()
    if month is not None:
        anchor = _parse_when(f"{month}-01", "month").date()
    anchor = shift_month(anchor, offset)
    selected = _parse_when(day, "day").date() if day is not None else None

    days = build_month(anchor, scheduler.plans, scheduler.history)
    views.print_calendar(days, anchor, selected)

    if selected is not None:
        entries = entries_for_day(selected, scheduler.plans, scheduler.history)
        views.print_plans(entries.upcoming)
        views.print_history(entries.history)


@app.command()
def history(store_path: StorePathOption = None) -> None:
    """List finished workouts, most recent first."""
    directory = GymDirectory.load()
    store = get_store(store_path, directory)
    try:
        entries = store.load_history()
    except GymlyError as e:
        _fail(str(e))
    views.print_history(entries)


def main() -> None:
    app()
