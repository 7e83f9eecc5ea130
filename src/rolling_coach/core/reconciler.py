"""
Reconciler: bind completed activities to planned sessions and apply the
missed-workout rules.

Runs daily, after the sync collaborator has refreshed the activity cache.
Only sessions still ``planned`` are touched; every transition is recorded
as an AdaptationEvent appended to the calendar's audit log.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

from loguru import logger

from .config import DISRUPTION_STATUSES, MATCH_DURATION_TOLERANCE
from .kinds import activity_matches_kind
from .models import ActivityRecord, AdaptationEvent, Calendar, Session, StatusWindow
from .rules import MissedRule, default_rules, rule_for


def _now(time_zone: str) -> str:
    """Wall-clock time in the calendar's zone."""
    return datetime.now(ZoneInfo(time_zone)).isoformat(timespec="seconds")


def duration_matches(planned_minutes: float | None, actual_minutes: float | None) -> bool:
    """Actual duration within +/-30% of planned; a missing side always matches."""
    if not planned_minutes or not actual_minutes:
        return True
    return abs(actual_minutes - planned_minutes) <= planned_minutes * MATCH_DURATION_TOLERANCE


def find_match(
    session: Session,
    activities: list[ActivityRecord],
    claimed: set[str],
) -> ActivityRecord | None:
    """First unclaimed activity on the session's date that fits its kind and duration."""
    for a in activities:
        if a.id in claimed or a.local_date != session.local_date:
            continue
        if not activity_matches_kind(a.activity_type, session.kind):
            continue
        if duration_matches(session.targets.duration_minutes, a.duration_minutes):
            return a
    return None


def _transition(
    session: Session,
    rule: MissedRule,
    reason: str,
    at: str,
    activity_id: str | None = None,
) -> AdaptationEvent:
    session.status = rule.status  # type: ignore[assignment]
    if activity_id is not None:
        session.actual_activity_id = activity_id
    return AdaptationEvent(
        at=at,
        reason=reason,
        session_id=session.id,
        rule_refs=list(rule.rule_refs),
        evidence_refs=list(rule.evidence_refs),
        actual_activity_id=activity_id,
        status=rule.status,
    )


def reconcile(
    calendar: Calendar,
    activities: list[ActivityRecord],
    today: str,
    status: StatusWindow | None = None,
    rules: dict[str, MissedRule] | None = None,
    at: str | None = None,
) -> list[AdaptationEvent]:
    """
    Run the daily status pass over the calendar.

    Sessions dated on or before today are matched against activities. An
    unmatched session dated before today is skipped when an illness/travel
    window covers its date, otherwise it transitions by its kind's rule.
    Unmatched sessions dated today stay planned until tomorrow.

    The calendar is updated in place and the new events are appended to
    ``calendar.events``.

    Args:
        calendar: Persisted calendar
        activities: Normalized activity records
        today: Evaluation date
        status: Current status window, if any
        rules: Missed-workout rules (defaults to the loaded table)
        at: Event timestamp (defaults to now)

    Returns:
        Events created by this pass
    """
    rules = rules if rules is not None else default_rules()
    at = at or _now(calendar.time_zone)
    claimed = {s.actual_activity_id for s in calendar.sessions if s.actual_activity_id}
    disrupted = status is not None and status.status in DISRUPTION_STATUSES
    events: list[AdaptationEvent] = []

    for session in sorted(calendar.sessions, key=lambda s: (s.local_date, s.id)):
        if session.status != "planned" or session.local_date > today:
            continue

        match = find_match(session, activities, claimed)
        if match is not None:
            claimed.add(match.id)
            events.append(_transition(session, rules["matched"], "matched", at, match.id))
            logger.debug(f"{session.id} completed by activity {match.id}")
            continue

        if session.local_date == today:
            continue

        if disrupted and status.covers(session.local_date):  # type: ignore[union-attr]
            events.append(_transition(session, rules["disruption"], "status_illness_or_travel", at))
            logger.debug(f"{session.id} skipped ({status.status})")  # type: ignore[union-attr]
            continue

        rule = rule_for(session.kind, rules)
        events.append(_transition(session, rule, f"missed_{session.kind.value.lower()}", at))
        logger.info(f"{session.id} marked {rule.status} ({', '.join(rule.rule_refs)})")

    calendar.events.extend(events)
    return events


def apply_calendar_signals(
    calendar: Calendar,
    published: dict[str, str] | None,
    today: str,
    rules: dict[str, MissedRule] | None = None,
    at: str | None = None,
) -> list[AdaptationEvent]:
    """
    Follow edits the user made in the external calendar.

    A published session (one with a calendar handle) dated today or later that
    no longer appears in ``published`` is cancelled; one whose published
    date differs is moved to it. Without a map nothing happens.

    Args:
        calendar: Persisted calendar, updated in place
        published: {session_id: local_date} reported by the calendar collaborator
        today: Evaluation date
        rules: Rule table (defaults to the loaded table)
        at: Event timestamp (defaults to now)

    Returns:
        Events created by this pass
    """
    if published is None:
        return []
    rules = rules if rules is not None else default_rules()
    rule = rules["calendar"]
    at = at or _now(calendar.time_zone)
    events: list[AdaptationEvent] = []

    for session in calendar.sessions:
        if session.status != "planned" or session.local_date < today:
            continue
        is_published = session.calendar_ref.is_published or session.id in published
        if not is_published:
            continue

        if session.id not in published:
            session.status = "cancelled"
            events.append(
                AdaptationEvent(
                    at=at,
                    reason="calendar_deleted",
                    session_id=session.id,
                    rule_refs=list(rule.rule_refs),
                    evidence_refs=list(rule.evidence_refs),
                    status="cancelled",
                )
            )
            logger.info(f"{session.id} cancelled: deleted from calendar")
        elif published[session.id] != session.local_date:
            old = session.local_date
            session.local_date = published[session.id]
            events.append(
                AdaptationEvent(
                    at=at,
                    reason="calendar_moved",
                    session_id=session.id,
                    rule_refs=list(rule.rule_refs),
                    evidence_refs=list(rule.evidence_refs),
                    from_date=old,
                    to_date=session.local_date,
                )
            )
            logger.info(f"{session.id} moved {old} -> {session.local_date}")

    calendar.events.extend(events)
    return events
