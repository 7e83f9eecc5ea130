"""Reconciliation commands: reconcile, calendar-sync, events."""

import json
from typing import Annotated

import typer

from ...core.models import Calendar, FixedEvent
from ...core.reconciler import apply_calendar_signals, reconcile as reconcile_calendar
from ...core.slots import fixed_events_in_window
from ...io.coach_store import CoachStore
from ...io.intake import IntakeValidationError
from ...io.serializers import ValidationError, event_to_dict
from .. import views
from ..app import JsonOption, RootOption, TodayOption, app, get_store, resolve_today


def _load_calendar_or_exit(store: CoachStore) -> Calendar:
    try:
        calendar = store.load_calendar()
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    if calendar is None:
        views.print_error("No calendar yet. Run 'rolling-coach plan' first.")
        raise typer.Exit(1)
    return calendar


def _fixed_events(store: CoachStore, today: str) -> list[FixedEvent]:
    """Fixed appointments for the projection; none without an intake document."""
    if not store.exists():
        return []
    try:
        intake = store.load_intake()
    except IntakeValidationError as e:
        for msg in e.errors:
            views.print_error(msg)
        raise typer.Exit(1)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    return fixed_events_in_window(intake.constraints, today)


def _print_events(events, json_out: bool, empty_message: str) -> None:
    if json_out:
        print(json.dumps({"events": [event_to_dict(e) for e in events]}, indent=2))
        return
    if not events:
        views.print_info(empty_message)
        return
    views.console.print()
    views.console.print(views.format_events_table(events))


@app.command()
def reconcile(
    root: RootOption = None,
    today: TodayOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Bind completed workouts to planned sessions and apply missed-workout rules.

    Sessions up to today are matched; unmatched sessions before today are
    marked missed or skipped. Run once a day after the activity sync.
    """
    store = get_store(root)
    calendar = _load_calendar_or_exit(store)

    try:
        day = resolve_today(today, calendar.time_zone)
        activities = [a for a in store.load_activities(calendar.time_zone) if a.local_date <= day]
        status = store.load_status()
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    events = reconcile_calendar(calendar, activities, day, status=status)
    store.save_calendar(calendar)
    store.append_events(events)
    store.save_week_projection(calendar, day, _fixed_events(store, day), status)

    _print_events(events, json_out, "Nothing to reconcile.")


@app.command("calendar-sync")
def calendar_sync(
    root: RootOption = None,
    today: TodayOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Follow sessions deleted or moved in the external calendar.

    Reads published_events.json written by the calendar publisher. Without
    that file nothing changes.
    """
    store = get_store(root)
    calendar = _load_calendar_or_exit(store)

    try:
        day = resolve_today(today, calendar.time_zone)
        published = store.load_published_events()
        status = store.load_status()
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if published is None and not json_out:
        views.print_warning(f"{store.published_path} not found; calendar unchanged.")

    events = apply_calendar_signals(calendar, published, day)
    if events:
        store.save_calendar(calendar)
        store.append_events(events)
        store.save_week_projection(calendar, day, _fixed_events(store, day), status)

    _print_events(events, json_out, "Calendar is in sync.")


@app.command()
def events(
    root: RootOption = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Show only the last N events")] = 20,
    json_out: JsonOption = False,
) -> None:
    """
    Show the adaptation log.
    """
    store = get_store(root)
    log = store.load_events()
    if limit > 0:
        log = log[-limit:]
    _print_events(log, json_out, "No adaptation events recorded.")
