"""Status commands: signals and the illness/travel window."""

import dataclasses
import json
from typing import Annotated, Optional

import typer

from ...core.adaptation import assess_deload, derive_max_hard
from ...core.config import DISRUPTION_STATUSES
from ...core.models import StatusWindow
from ...core.phase import compute_phase
from ...core.planner import effective_baseline, resolve_goals
from ...core.signals import acwr_risk, collect_signals
from ...io.intake import IntakeValidationError
from ...io.serializers import ValidationError, status_to_dict, validate_date
from .. import views
from ..app import JsonOption, RootOption, TodayOption, app, get_store, resolve_today


@app.command()
def signals(
    root: RootOption = None,
    today: TodayOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show recent training load, ACWR, readiness and marathon phase.
    """
    store = get_store(root)

    try:
        day = resolve_today(today, store.time_zone())
        snapshot = store.snapshot(day)
    except FileNotFoundError as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    except IntakeValidationError as e:
        for msg in e.errors:
            views.print_error(msg)
        raise typer.Exit(1)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    sig = collect_signals(list(snapshot.activities), day, list(snapshot.scores))
    resolution = resolve_goals(snapshot.intake)
    marathon = resolution.marathon_milestone
    training_start = snapshot.intake.training_start_date or (marathon.training_start_date if marathon else None)
    phase = compute_phase(marathon.date_local, day, training_start) if marathon else None
    max_hard = derive_max_hard(effective_baseline(snapshot.intake.baseline, sig), sig)
    deload_reason = assess_deload(sig, phase)

    if json_out:
        readiness = dataclasses.asdict(sig.readiness) if sig.readiness is not None else None
        print(
            json.dumps(
                {
                    "today": day,
                    "mode": resolution.mode,
                    "total_minutes": round(sig.total_minutes),
                    "hard_sessions": sig.hard_count,
                    "hard_dates": sorted(sig.hard_dates),
                    "very_hard_dates": sorted(sig.very_hard_dates),
                    "completed_endurance": sig.completed_endurance,
                    "completed_strength": sig.completed_strength,
                    "yesterday_hard": sig.yesterday_hard,
                    "acwr": sig.acwr,
                    "acwr_source": sig.acwr_source,
                    "acwr_risk": acwr_risk(sig.acwr),
                    "readiness": readiness,
                    "max_hard_per_week": max_hard,
                    "deload_reason": deload_reason,
                    "marathon_phase": dataclasses.asdict(phase) if phase is not None else None,
                },
                indent=2,
            )
        )
        return

    views.console.print()
    views.console.print(views.format_signals_display(sig, phase, max_hard))
    if deload_reason:
        views.print_warning(f"Deload indicated: {deload_reason}")


@app.command()
def status(
    root: RootOption = None,
    set_status: Annotated[
        Optional[str],
        typer.Option("--set", help="Mark a disruption: illness or travel"),
    ] = None,
    since: Annotated[
        Optional[str],
        typer.Option("--since", help="First affected date YYYY-MM-DD"),
    ] = None,
    until: Annotated[
        Optional[str],
        typer.Option("--until", help="Last affected date YYYY-MM-DD"),
    ] = None,
    note: Annotated[
        Optional[str],
        typer.Option("--note", help="Free-text note"),
    ] = None,
    clear: Annotated[
        bool,
        typer.Option("--clear", help="Clear the current status"),
    ] = False,
    json_out: JsonOption = False,
) -> None:
    """
    Show, set or clear the illness/travel window.

    Planned sessions inside the window are marked skipped instead of
    missed by the next reconcile.
    """
    store = get_store(root)

    if clear and set_status:
        views.print_error("Use either --set or --clear, not both.")
        raise typer.Exit(1)

    if clear:
        store.save_status(None)
        if not json_out:
            views.print_success("Status cleared.")
    elif set_status:
        if set_status not in DISRUPTION_STATUSES:
            views.print_error(f"Unknown status: {set_status}. Valid: {', '.join(DISRUPTION_STATUSES)}")
            raise typer.Exit(1)
        try:
            window = StatusWindow(
                status=set_status,
                since=validate_date(since) if since else None,
                until=validate_date(until) if until else None,
                note=note,
            )
        except ValidationError as e:
            views.print_error(str(e))
            raise typer.Exit(1)
        if window.since and window.until and window.since > window.until:
            views.print_error("--since must not be after --until.")
            raise typer.Exit(1)
        if window.since is None or window.until is None:
            views.print_warning("Without both --since and --until no session will be skipped.")
        store.save_status(window)
        if not json_out:
            views.print_success(f"Status set: {set_status}")

    try:
        current = store.load_status()
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        print(json.dumps(status_to_dict(current), indent=2))
        return
    views.console.print(views.format_status_window(current))
