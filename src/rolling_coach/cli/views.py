"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of plans, signals and events.
"""

from datetime import datetime

from rich.console import Console
from rich.table import Table

from ..core.models import AdaptationEvent, FixedEvent, PhaseInfo, Recommendation, Session, Signals, StatusWindow
from ..core.signals import acwr_risk

console = Console()

_STATUS_STYLE = {
    "planned": "white",
    "completed": "green",
    "missed": "red",
    "skipped": "yellow",
    "cancelled": "dim",
}

_HARDNESS_STYLE = {"hard": "bold red", "medium": "yellow", "easy": "green"}


def _fmt_date_cell(date_str: str) -> str:
    """``MM.DD(Ddd)`` for compact tables."""
    dt = datetime.strptime(date_str, "%Y-%m-%d")
    return dt.strftime("%m.%d(%a)")


def _fmt_prescription(session: Session) -> str:
    t = session.targets
    parts = [f"{t.duration_minutes}min", t.intensity]
    if t.sets_reps:
        parts.append(t.sets_reps)
    if t.work_bouts:
        parts.append(t.work_bouts)
    return " ".join(parts)


def format_session_table(
    sessions: list[Session],
    fixed_events: list[FixedEvent] | None = None,
    title: str = "Next 7 days",
) -> Table:
    """
    Create a Rich table of sessions (and fixed appointments) by date.

    Args:
        sessions: Sessions to display
        fixed_events: Fixed appointments in the same window
        title: Table title

    Returns:
        Rich Table object
    """
    table = Table(title=title)

    table.add_column("Date", style="cyan", no_wrap=True)
    table.add_column("Session", style="bold")
    table.add_column("Kind", style="magenta")
    table.add_column("Load")
    table.add_column("Prescription")
    table.add_column("Status")

    rows: list[tuple[str, tuple[str, ...]]] = []
    for s in sessions:
        title_cell = s.title + (" [dim](2x)[/dim]" if s.two_a_day else "")
        hardness = f"[{_HARDNESS_STYLE[s.hardness]}]{s.hardness}[/{_HARDNESS_STYLE[s.hardness]}]"
        style = _STATUS_STYLE.get(s.status, "white")
        rows.append(
            (
                s.local_date,
                (
                    _fmt_date_cell(s.local_date),
                    title_cell,
                    s.kind.value,
                    hardness,
                    _fmt_prescription(s),
                    f"[{style}]{s.status}[/{style}]",
                ),
            )
        )
    for e in fixed_events or []:
        style = _HARDNESS_STYLE.get(e.hardness, "white")
        rows.append(
            (
                e.local_date,
                (_fmt_date_cell(e.local_date), e.title, "Fixed", f"[{style}]{e.hardness}[/{style}]", "-", "fixed"),
            )
        )

    for _, cells in sorted(rows, key=lambda r: r[0]):
        table.add_row(*cells)
    return table


def print_plan(
    sessions: list[Session],
    recommendations: list[Recommendation],
    fixed_events: list[FixedEvent] | None = None,
    title: str = "Next 7 days",
) -> None:
    """Print the weekly plan followed by its recommendations."""
    console.print()
    if not sessions and not fixed_events:
        console.print("[yellow]No sessions fit this week. Check available days and recovery.[/yellow]")
    else:
        console.print(format_session_table(sessions, fixed_events, title=title))
    print_recommendations(recommendations)


def print_recommendations(recommendations: list[Recommendation]) -> None:
    if not recommendations:
        return
    console.print()
    for rec in recommendations:
        console.print(f"[bold]{rec.title}[/bold]: {rec.text}")


def format_signals_display(signals: Signals, phase: PhaseInfo | None = None, max_hard: int | None = None) -> str:
    """
    Format training-load signals as a text block.

    Args:
        signals: Signals to display
        phase: Current marathon phase, if any
        max_hard: Hard-session budget per 7 days

    Returns:
        Formatted string
    """
    lines = ["Recent load (7 days)"]
    lines.append(f"- Volume: {round(signals.total_minutes)} min")
    lines.append(
        f"- Hard sessions: {signals.hard_count}"
        + (f" of {max_hard} allowed" if max_hard is not None else "")
        + f" (very hard days: {len(signals.very_hard_dates)})"
    )
    lines.append(f"- Completed: {signals.completed_endurance} endurance, {signals.completed_strength} strength")
    if signals.acwr is not None:
        lines.append(f"- ACWR: {signals.acwr:.2f} ({acwr_risk(signals.acwr)}, {signals.acwr_source})")
    else:
        lines.append("- ACWR: n/a (not enough history)")
    if signals.readiness is not None:
        r = signals.readiness
        label = f" {r.label}" if r.label else ""
        lines.append(f"- Readiness: {r.score:g}{label}")
    else:
        lines.append("- Readiness: n/a")
    if phase is not None:
        week = f", taper week {phase.taper_week}" if phase.taper_week else ""
        lines.append(f"- Phase: {phase.phase} ({phase.weeks_to_race} weeks to race{week})")
    return "\n".join(lines)


def format_events_table(events: list[AdaptationEvent], title: str = "Adaptation events") -> Table:
    """Create a Rich table of adaptation events."""
    table = Table(title=title)

    table.add_column("At", style="dim", no_wrap=True)
    table.add_column("Session", style="cyan")
    table.add_column("Reason", style="magenta")
    table.add_column("Status")
    table.add_column("Rules")

    for e in events:
        status = e.status or (f"{e.from_date} -> {e.to_date}" if e.to_date else "-")
        table.add_row(e.at, e.session_id or "-", e.reason, status, ", ".join(e.rule_refs) or "-")
    return table


def format_status_window(status: StatusWindow | None) -> str:
    if status is None:
        return "No active status (training normally)."
    window = f"{status.since or '?'} .. {status.until or '?'}"
    note = f" - {status.note}" if status.note else ""
    return f"Status: {status.status} ({window}){note}"


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
