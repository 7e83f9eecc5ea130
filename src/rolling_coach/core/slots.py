"""Schedulable dates for the rolling window."""

import re

from .config import WINDOW_DAYS
from .dates import add_days, date_range, day_key
from .models import Constraints, FixedAppointment, FixedEvent, Slot

_CONTACT_SPORTS = re.compile(
    r"volleyball|soccer|basketball|handball|hockey|rugby|tennis|squash|boxing|martial"
)


def blocked_dates(appointments: list[FixedAppointment], dates: list[str]) -> set[str]:
    """Dates covered by a recurring fixed appointment active in its season."""
    blocked: set[str] = set()
    for appt in appointments:
        for d in dates:
            if day_key(d) == appt.day_of_week and appt.is_active_on(d):
                blocked.add(d)
    return blocked


def build_slots(
    today: str,
    constraints: Constraints,
    completed_dates: set[str] | None = None,
) -> list[Slot]:
    """
    Candidate dates in [today, today+6].

    A date qualifies when its weekday is available, it is not a preferred
    rest day and no active fixed appointment covers it. The list is
    truncated to ``max_sessions_per_week``, then dates that already carry a
    completed activity are dropped so a re-run never re-proposes them.

    Args:
        today: First date of the window
        constraints: Intake constraints
        completed_dates: Dates with a completed activity

    Returns:
        Slots in chronological order
    """
    dates = date_range(today, WINDOW_DAYS)
    blocked = blocked_dates(constraints.fixed_appointments, dates)
    available = set(constraints.days_available)
    rest = set(constraints.preferred_rest_days)

    slots = []
    for d in dates:
        key = day_key(d)
        if key in available and key not in rest and d not in blocked:
            slots.append(Slot(local_date=d, day_key=key))

    if constraints.max_sessions_per_week is not None:
        slots = slots[: max(0, constraints.max_sessions_per_week)]

    done = completed_dates or set()
    return [s for s in slots if s.local_date not in done]


def fixed_events_in_window(constraints: Constraints, today: str) -> list[FixedEvent]:
    """Fixed appointments expanded onto the dates of the planning window."""
    dates = date_range(today, WINDOW_DAYS)
    events = []
    for appt in constraints.fixed_appointments:
        title = appt.name or appt.id or "Fixed"
        hardness = "hard" if _CONTACT_SPORTS.search(title.lower()) else "medium"
        for d in dates:
            if day_key(d) == appt.day_of_week and appt.is_active_on(d):
                events.append(FixedEvent(local_date=d, title=title, hardness=hardness))
    return sorted(events, key=lambda e: e.local_date)


def window_end(today: str) -> str:
    return add_days(today, WINDOW_DAYS - 1)
