"""Planning commands: init, plan, week."""

import json
from datetime import datetime

import typer

from ...core.dates import add_days
from ...core.planner import generate_plan, merge_into_calendar
from ...io.intake import IntakeValidationError
from ...io.serializers import (
    ValidationError,
    activity_to_dict,
    dict_to_session,
    recommendation_to_dict,
    resolve_time_zone,
)
from .. import views
from ..app import JsonOption, RootOption, TodayOption, app, get_store, resolve_today

# Days of activity history stored in the calendar snapshot
HISTORY_DAYS = 28


@app.command()
def init(root: RootOption = None) -> None:
    """
    Create the coach home directory layout.

    The intake document itself is written by the intake collaborator.
    """
    store = get_store(root)
    store.init()
    views.print_success(f"Coach home ready at {store.root}")
    if not store.exists():
        views.print_info(f"Add your goals and availability to {store.intake_path}, then run 'rolling-coach plan'.")


@app.command()
def plan(
    root: RootOption = None,
    today: TodayOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Plan the next 7 days and write the calendar and weekly projection.

    Sessions already completed, missed or cancelled are kept; everything
    still planned from today onward is replaced by the new cycle.
    """
    store = get_store(root)

    try:
        day = resolve_today(today, store.time_zone())
        snapshot = store.snapshot(day)
        previous = store.load_calendar()
    except FileNotFoundError as e:
        views.print_error(str(e))
        views.print_info("Run 'rolling-coach init' and provide intake.json first.")
        raise typer.Exit(1)
    except IntakeValidationError as e:
        for msg in e.errors:
            views.print_error(msg)
        raise typer.Exit(1)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    result = generate_plan(snapshot)
    generated_at = datetime.now(resolve_time_zone(snapshot.time_zone)).isoformat(timespec="seconds")
    calendar = merge_into_calendar(previous, result, snapshot, generated_at)
    history_start = add_days(day, -(HISTORY_DAYS - 1))
    calendar.history = [activity_to_dict(a) for a in snapshot.activities if a.local_date >= history_start]

    store.save_calendar(calendar)
    doc = store.save_week_projection(calendar, day, result.fixed_events, snapshot.status)

    if json_out:
        print(
            json.dumps(
                {
                    "week": doc,
                    "recommendations": [recommendation_to_dict(r) for r in result.recommendations],
                },
                indent=2,
            )
        )
        return

    views.print_plan(result.sessions, result.recommendations, result.fixed_events, title=f"Plan {day} .. {add_days(day, 6)}")
    views.console.print()
    views.print_success(f"Calendar saved to {store.calendar_path}")


@app.command()
def week(
    root: RootOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show the current weekly projection written by the last plan or reconcile.
    """
    store = get_store(root)
    try:
        doc = store.load_week_projection()
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if doc is None:
        views.print_error("No weekly projection yet. Run 'rolling-coach plan' first.")
        raise typer.Exit(1)

    if json_out:
        print(json.dumps(doc, indent=2))
        return

    try:
        sessions = [dict_to_session(s) for s in doc.get("sessions") or []]
    except ValidationError as e:
        views.print_error(f"Malformed projection: {e}")
        raise typer.Exit(1)

    views.console.print()
    views.console.print(
        views.format_session_table(sessions, title=f"Week {doc.get('weekStart')} .. {doc.get('weekEnd')}")
    )
    for fe in doc.get("fixedEvents") or []:
        views.console.print(f"[dim]{fe.get('localDate')}: {fe.get('title')} (fixed)[/dim]")
    status = (doc.get("status") or {}).get("status")
    if status:
        views.print_warning(f"Status '{status}' is active for this week.")
