"""Shared Typer app object, shared option types, and store utility."""

from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer

from ..core.logger import setup_logger
from ..io.coach_store import CoachStore, get_default_root
from ..io.serializers import ValidationError, resolve_time_zone, validate_date

# Shared options used across all commands
RootOption = Annotated[
    Optional[Path],
    typer.Option("--root", "-r", help="Coach home directory (default: $COACH_HOME or ~/.rolling-coach)"),
]
TodayOption = Annotated[
    Optional[str],
    typer.Option("--today", help="Evaluation date YYYY-MM-DD (default: today)"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output as JSON for machine processing"),
]

app = typer.Typer(
    name="rolling-coach",
    help="Rolling 7-day endurance + strength planner with daily reconciliation.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging on stderr"),
    ] = False,
) -> None:
    """
    Plan the next 7 days from goals, recent load and readiness; reconcile
    what actually happened every day.
    """
    setup_logger("DEBUG" if verbose else "WARNING")


def get_store(root: Path | None) -> CoachStore:
    """Get the store for an explicit root or the default home directory."""
    return CoachStore(root if root is not None else get_default_root())


def resolve_today(today: str | None, time_zone: str | None = None) -> str:
    """
    Validated ``--today`` value, or the current date in ``time_zone``
    (the default zone when None), never the host's local date.

    Raises:
        typer.BadParameter: If ``--today`` is not a valid date
        ValidationError: If the time zone is unknown
    """
    if today is None:
        return datetime.now(resolve_time_zone(time_zone)).strftime("%Y-%m-%d")
    try:
        return validate_date(today)
    except ValidationError as e:
        raise typer.BadParameter(str(e), param_hint="--today") from e
