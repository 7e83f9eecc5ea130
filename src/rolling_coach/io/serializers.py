"""
JSON serialization for rolling-coach data models.

Handles conversion between dataclasses and the JSON documents shared with
the sync, intake and calendar collaborators (camelCase keys), plus the
normalization boundary for raw workout and score records.
"""

import json
import re
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.config import DEFAULT_TIME_ZONE
from ..core.dates import normalize_day_key
from ..core.kinds import parse_kind
from ..core.models import (
    ActivityRecord,
    AdaptationEvent,
    Baseline,
    Calendar,
    CalendarRef,
    Constraints,
    FixedAppointment,
    FixedEvent,
    Goal,
    Intake,
    Recommendation,
    ScoreRecord,
    Session,
    SessionTargets,
    StatusWindow,
)


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


def validate_date(date_str: str) -> str:
    """
    Validate and normalize date string to ISO format.

    Args:
        date_str: Date string to validate

    Returns:
        Normalized YYYY-MM-DD string

    Raises:
        ValidationError: If date format is invalid
    """
    if not isinstance(date_str, str) or not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        raise ValidationError(f"Invalid date format: {date_str}. Expected YYYY-MM-DD")

    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except ValueError as e:
        raise ValidationError(f"Invalid date: {date_str}") from e

    return date_str


def resolve_time_zone(name: str | None) -> ZoneInfo:
    """ZoneInfo for an IANA name, falling back to the default zone."""
    try:
        return ZoneInfo(name or DEFAULT_TIME_ZONE)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown time zone: {name}") from e


def _first(data: dict[str, Any], *keys: str) -> Any:
    """Value of the first key present with a non-None value."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _optional_float(value: Any, name: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be numeric, got {value!r}") from e


# =============================================================================
# RAW RECORD NORMALIZATION
# =============================================================================

_ZONE_KEY = re.compile(r"^(?:z|zone)?([1-5])$")


def _zone_minutes(value: Any) -> float:
    """Zone entry as minutes: a plain number, or ``{duration_seconds}``."""
    if isinstance(value, dict):
        seconds = _optional_float(_first(value, "duration_seconds", "durationSeconds"), "zone duration")
        return seconds / 60 if seconds is not None else 0.0
    return _optional_float(value, "zone minutes") or 0.0


def parse_zones(raw: dict[str, Any]) -> dict[int, float]:
    """
    Heart-rate zone minutes keyed 1-5.

    Zones may sit in a ``heart_rate_zones``/``heartRateZones`` mapping or at the
    top level, keyed ``z1``, ``zone1`` or ``1``.
    """
    container = _first(raw, "heart_rate_zones", "heartRateZones", "zones")
    source = container if isinstance(container, dict) else raw
    zones: dict[int, float] = {}
    for key, value in source.items():
        m = _ZONE_KEY.match(str(key).lower())
        if m and value is not None:
            zones[int(m.group(1))] = zones.get(int(m.group(1)), 0.0) + _zone_minutes(value)
    return zones


def _local_date_from_start(start: str, time_zone: str | None) -> str:
    try:
        instant = datetime.fromisoformat(start.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"Invalid start time: {start}") from e
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=ZoneInfo("UTC"))
    return instant.astimezone(resolve_time_zone(time_zone)).strftime("%Y-%m-%d")


def normalize_activity(raw: dict[str, Any], time_zone: str | None = None) -> ActivityRecord:
    """
    Normalize one raw workout record from the sync cache.

    Accepts both snake_case and camelCase field spellings. The local date
    comes from ``localDate``/``date``, else from ``startTimeUtc`` converted
    to ``time_zone``. Duration is given in seconds and stored in minutes.

    Args:
        raw: Raw JSON object
        time_zone: IANA zone used when only a UTC start time is present

    Returns:
        ActivityRecord

    Raises:
        ValidationError: If no usable date or a malformed number is found
    """
    activity_type = str(_first(raw, "workout_type", "workoutType", "type") or "Workout").strip().lower()

    start = _first(raw, "startTimeUtc", "start_time_utc", "start_time")
    local_date = _first(raw, "localDate", "local_date", "date")
    if local_date is None and start is not None:
        local_date = _local_date_from_start(str(start), time_zone)
    if local_date is None:
        raise ValidationError(f"Workout has no date: {raw.get('id')!r}")
    local_date = validate_date(str(local_date)[:10])

    seconds = _optional_float(_first(raw, "duration_seconds", "durationSeconds", "duration"), "duration")
    duration = round(seconds / 60) if seconds is not None else 0

    zones = parse_zones(raw)
    high_zone = _optional_float(_first(raw, "hr_zone_high_minutes", "hrZoneHighMinutes"), "hrZoneHighMinutes")
    if high_zone is None and (4 in zones or 5 in zones):
        high_zone = zones.get(4, 0.0) + zones.get(5, 0.0)

    activity_id = _first(raw, "id", "workout_id", "workoutId")
    if activity_id is None:
        activity_id = f"{local_date}_{activity_type}_{start or duration}"

    try:
        return ActivityRecord(
            id=str(activity_id),
            activity_type=activity_type,
            local_date=local_date,
            duration_minutes=float(duration),
            effort_score=_optional_float(_first(raw, "effort_score", "effortScore"), "effortScore"),
            hr_zone_minutes=zones,
            high_zone_minutes=high_zone,
            classification=str(_first(raw, "classification") or "").strip().lower(),
            avg_heart_rate=_optional_float(
                _first(raw, "avg_heart_rate", "avgHeartRate", "average_heart_rate"), "avgHeartRate"
            ),
            max_heart_rate=_optional_float(_first(raw, "max_heart_rate", "maxHeartRate"), "maxHeartRate"),
            distance_meters=_optional_float(_first(raw, "distance_meters", "distanceMeters"), "distanceMeters"),
            start_time=str(start) if start is not None else None,
        )
    except ValueError as e:
        raise ValidationError(f"Invalid workout {activity_id}: {e}") from e


def _nested(raw: dict[str, Any], key: str, field_name: str) -> Any:
    value = raw.get(key)
    return value.get(field_name) if isinstance(value, dict) else None


def normalize_score(raw: dict[str, Any]) -> ScoreRecord:
    """
    Normalize one daily score record.

    Expected shape: ``{localDate, readiness: {score, label}, recovery:
    {score}, sleep: {score}, data_quality, training_load: {ratio, method}}``.
    """
    local_date = _first(raw, "localDate", "local_date", "date")
    if local_date is None:
        raise ValidationError("Score record has no date")
    return ScoreRecord(
        local_date=validate_date(str(local_date)[:10]),
        readiness_score=_optional_float(_nested(raw, "readiness", "score"), "readiness.score"),
        readiness_label=_nested(raw, "readiness", "label"),
        recovery_score=_optional_float(_nested(raw, "recovery", "score"), "recovery.score"),
        sleep_score=_optional_float(_nested(raw, "sleep", "score"), "sleep.score"),
        data_quality=_first(raw, "data_quality", "dataQuality"),
        load_ratio=_optional_float(_nested(raw, "training_load", "ratio"), "training_load.ratio"),
        load_method=_nested(raw, "training_load", "method"),
    )


def activity_to_dict(activity: ActivityRecord) -> dict[str, Any]:
    """Compact history snapshot row stored in the calendar."""
    return {
        "id": activity.id,
        "type": activity.activity_type,
        "localDate": activity.local_date,
        "durationMinutes": activity.duration_minutes,
        "effortScore": activity.effort_score,
        "hrZoneHighMinutes": activity.high_zone_minutes,
        "classification": activity.classification or None,
    }


# =============================================================================
# INTAKE
# =============================================================================

_GOAL_FIELDS = ("id", "kind", "subKind", "dateLocal", "trainingStartDate")


def dict_to_goal(data: dict[str, Any], index: int = 0) -> Goal:
    """Convert an intake goal/milestone object to Goal; unknown keys go to ``details``."""
    kind = data.get("kind")
    if not kind:
        raise ValidationError(f"Goal #{index + 1} has no kind")
    return Goal(
        id=str(data.get("id") or f"{kind}_{index + 1}"),
        kind=str(kind),
        sub_kind=data.get("subKind"),
        date_local=validate_date(data["dateLocal"]) if data.get("dateLocal") else None,
        training_start_date=(
            validate_date(data["trainingStartDate"]) if data.get("trainingStartDate") else None
        ),
        details={k: v for k, v in data.items() if k not in _GOAL_FIELDS},
    )


def goal_to_dict(goal: Goal) -> dict[str, Any]:
    d: dict[str, Any] = {"id": goal.id, "kind": goal.kind}
    if goal.sub_kind:
        d["subKind"] = goal.sub_kind
    if goal.date_local:
        d["dateLocal"] = goal.date_local
    if goal.training_start_date:
        d["trainingStartDate"] = goal.training_start_date
    d.update(goal.details)
    return d


def _day_keys(values: list[Any], field_name: str) -> list[str]:
    keys = []
    for v in values or []:
        key = normalize_day_key(str(v))
        if key is None:
            raise ValidationError(f"Invalid day key in {field_name}: {v}")
        if key not in keys:
            keys.append(key)
    return keys


def dict_to_intake(data: dict[str, Any]) -> Intake:
    """
    Convert a (validated) intake document to Intake.

    Raises:
        ValidationError: If a field cannot be converted
    """
    c = data.get("constraints") or {}
    b = data.get("baseline") or {}

    appointments = []
    for i, fa in enumerate(c.get("fixedAppointments") or []):
        day = normalize_day_key(str(fa.get("dayOfWeek", "")))
        if day is None:
            raise ValidationError(f"Invalid dayOfWeek in fixedAppointment {fa.get('id')}")
        appointments.append(
            FixedAppointment(
                id=str(fa.get("id") or f"fixed_{i + 1}"),
                name=str(fa.get("name") or ""),
                day_of_week=day,
                season_start=fa.get("seasonStart"),
                season_end=fa.get("seasonEnd"),
            )
        )

    try:
        constraints = Constraints(
            days_available=_day_keys(c.get("daysAvailable"), "daysAvailable"),
            preferred_rest_days=_day_keys(c.get("preferredRestDays"), "preferredRestDays"),
            max_minutes_per_day=c.get("maxMinutesPerDay"),
            max_sessions_per_week=c.get("maxSessionsPerWeek"),
            fixed_appointments=appointments,
            allow_two_a_days=bool(c.get("allowTwoADays", False)),
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e

    fitness = b.get("perceivedFitness")
    baseline = Baseline(
        perceived_fitness=str(fitness).lower() if fitness is not None else None,
        strength_frequency_per_week=b.get("strengthFrequencyPerWeek"),
        endurance_frequency_per_week=_first(b, "runningFrequencyPerWeek", "enduranceFrequencyPerWeek"),
        longest_recent_run_minutes=b.get("longestRecentRunMinutes"),
        longest_strength_session_minutes=b.get("longestStrengthSessionMinutes"),
        z2_duration_minutes=b.get("z2DurationMinutes"),
        strength_split_preference=b.get("strengthSplitPreference"),
        max_hard_sessions_per_week=b.get("maxHardSessionsPerWeek"),
    )

    return Intake(
        goals=[dict_to_goal(g, i) for i, g in enumerate(data.get("goals") or [])],
        constraints=constraints,
        baseline=baseline,
        milestones=[dict_to_goal(m, i) for i, m in enumerate(data.get("milestones") or [])],
        training_start_date=data.get("trainingStartDate"),
        time_zone=data.get("timeZone"),
    )


# =============================================================================
# SESSIONS & CALENDAR
# =============================================================================


def targets_to_dict(t: SessionTargets) -> dict[str, Any]:
    d: dict[str, Any] = {"durationMinutes": t.duration_minutes, "intensity": t.intensity}
    if t.sets_reps:
        d["setsReps"] = t.sets_reps
    if t.work_bouts:
        d["workBouts"] = t.work_bouts
    if t.recovery:
        d["recovery"] = t.recovery
    if t.note:
        d["note"] = t.note
    return d


def dict_to_targets(data: dict[str, Any]) -> SessionTargets:
    return SessionTargets(
        duration_minutes=int(data.get("durationMinutes") or 0),
        intensity=str(data.get("intensity") or "easy"),
        sets_reps=data.get("setsReps"),
        work_bouts=data.get("workBouts"),
        recovery=data.get("recovery"),
        note=data.get("note"),
    )


def session_to_dict(session: Session) -> dict[str, Any]:
    """
    Convert Session to JSON-compatible dict.

    Args:
        session: Session to convert

    Returns:
        Dict representation
    """
    d: dict[str, Any] = {
        "id": session.id,
        "programId": session.program_id,
        "milestoneId": session.milestone_id,
        "weekIndex": session.week_index,
        "localDate": session.local_date,
        "title": session.title,
        "kind": session.kind.value,
        "modality": session.modality,
        "hardness": session.hardness,
        "requiresRecovery": session.requires_recovery,
        "targets": targets_to_dict(session.targets),
        "status": session.status,
        "actualActivityId": session.actual_activity_id,
        "ruleRefs": list(session.rule_refs),
    }
    if session.readiness_gated:
        d["readinessGated"] = True
    if session.downgraded_from is not None:
        d["downgradedFrom"] = session.downgraded_from.value
    if session.two_a_day:
        d["twoADay"] = True
    ref = session.calendar_ref
    if ref.is_published:
        d["calendar"] = {"eventUid": ref.event_uid, "publishedAt": ref.published_at}
    return d


def dict_to_session(data: dict[str, Any]) -> Session:
    """
    Convert dict to Session.

    Raises:
        ValidationError: If data is invalid
    """
    try:
        calendar = data.get("calendar") or {}
        downgraded = data.get("downgradedFrom")
        return Session(
            id=str(data["id"]),
            program_id=str(data.get("programId") or ""),
            milestone_id=data.get("milestoneId"),
            week_index=int(data.get("weekIndex") or 0),
            local_date=validate_date(data["localDate"]),
            title=str(data.get("title") or ""),
            kind=parse_kind(data["kind"]),
            hardness=data.get("hardness") or "easy",
            targets=dict_to_targets(data.get("targets") or {}),
            status=data.get("status") or "planned",
            actual_activity_id=data.get("actualActivityId"),
            rule_refs=list(data.get("ruleRefs") or []),
            readiness_gated=bool(data.get("readinessGated", False)),
            downgraded_from=parse_kind(downgraded) if downgraded else None,
            two_a_day=bool(data.get("twoADay", False)),
            calendar_ref=CalendarRef(
                event_uid=calendar.get("eventUid") or calendar.get("khalUid"),
                published_at=calendar.get("publishedAt"),
            ),
        )
    except KeyError as e:
        raise ValidationError(f"Session record missing field {e}") from e
    except ValueError as e:
        raise ValidationError(f"Invalid session {data.get('id')}: {e}") from e


def event_to_dict(event: AdaptationEvent) -> dict[str, Any]:
    d: dict[str, Any] = {
        "at": event.at,
        "reason": event.reason,
        "sessionId": event.session_id,
        "ruleRefs": list(event.rule_refs),
        "evidenceRefs": list(event.evidence_refs),
    }
    if event.actual_activity_id is not None:
        d["actualActivityId"] = event.actual_activity_id
    if event.from_date is not None:
        d["fromDate"] = event.from_date
    if event.to_date is not None:
        d["toDate"] = event.to_date
    if event.status is not None:
        d["status"] = event.status
    return d


def dict_to_event(data: dict[str, Any]) -> AdaptationEvent:
    if "reason" not in data:
        raise ValidationError("Adaptation event missing 'reason'")
    return AdaptationEvent(
        at=str(data.get("at") or ""),
        reason=str(data["reason"]),
        session_id=data.get("sessionId"),
        rule_refs=list(data.get("ruleRefs") or []),
        evidence_refs=list(data.get("evidenceRefs") or []),
        actual_activity_id=data.get("actualActivityId"),
        from_date=data.get("fromDate"),
        to_date=data.get("toDate"),
        status=data.get("status"),
    )


def recommendation_to_dict(rec: Recommendation) -> dict[str, Any]:
    return {"kind": rec.kind, "title": rec.title, "text": rec.text}


def fixed_event_to_dict(event: FixedEvent) -> dict[str, Any]:
    return {
        "localDate": event.local_date,
        "title": event.title,
        "kind": event.kind,
        "hardness": event.hardness,
        "source": event.source,
    }


def calendar_to_dict(calendar: Calendar) -> dict[str, Any]:
    """Convert Calendar to the persisted ``workout_calendar.json`` document."""
    return {
        "schemaVersion": calendar.schema_version,
        "timeZone": calendar.time_zone,
        "generatedAt": calendar.generated_at,
        "goals": [goal_to_dict(g) for g in calendar.goals],
        "milestones": [goal_to_dict(m) for m in calendar.milestones],
        "history": list(calendar.history),
        "plan": {
            "sessions": [session_to_dict(s) for s in calendar.sessions],
            "recommendations": [recommendation_to_dict(r) for r in calendar.recommendations],
            "blueprint": calendar.blueprint,
        },
        "adaptation": {"events": [event_to_dict(e) for e in calendar.events]},
    }


def dict_to_calendar(data: dict[str, Any]) -> Calendar:
    """
    Convert a ``workout_calendar.json`` document to Calendar.

    Raises:
        ValidationError: If any session or event is malformed, or the zone is unknown
    """
    plan = data.get("plan") or {}
    adaptation = data.get("adaptation") or {}
    time_zone = str(data.get("timeZone") or DEFAULT_TIME_ZONE)
    resolve_time_zone(time_zone)
    return Calendar(
        schema_version=int(data.get("schemaVersion") or 1),
        time_zone=time_zone,
        generated_at=str(data.get("generatedAt") or ""),
        goals=[dict_to_goal(g, i) for i, g in enumerate(data.get("goals") or [])],
        milestones=[dict_to_goal(m, i) for i, m in enumerate(data.get("milestones") or [])],
        history=list(data.get("history") or []),
        sessions=[dict_to_session(s) for s in plan.get("sessions") or []],
        recommendations=[
            Recommendation(kind=r.get("kind", ""), title=r.get("title", ""), text=r.get("text", ""))
            for r in plan.get("recommendations") or []
        ],
        blueprint=dict(plan.get("blueprint") or {}),
        events=[dict_to_event(e) for e in adaptation.get("events") or []],
    )


# =============================================================================
# STATUS
# =============================================================================


def dict_to_status(data: dict[str, Any]) -> StatusWindow | None:
    """Status window from ``status.json``; None when no status is set."""
    status = data.get("status")
    if not status:
        return None
    since = data.get("since")
    until = data.get("until")
    return StatusWindow(
        status=str(status),
        since=validate_date(since) if since else None,
        until=validate_date(until) if until else None,
        note=data.get("note"),
    )


def status_to_dict(status: StatusWindow | None) -> dict[str, Any]:
    if status is None:
        return {"status": None}
    return {"status": status.status, "since": status.since, "until": status.until, "note": status.note}


def event_to_json_line(event: AdaptationEvent) -> str:
    """One adaptation-log line."""
    return json.dumps(event_to_dict(event), separators=(",", ":"))
