"""
Training-load signals from recent activity.

Implements:
- Hard / very-hard day classification
- Intensity-weighted per-activity load
- Acute:chronic workload ratio (ACWR)
- Trailing volume and modality counts
- Today's readiness composite
"""

import math
import re

from loguru import logger

from .config import (
    ACWR_DETRAINING,
    ACWR_ELEVATED,
    ACWR_HIGH,
    CHRONIC_DAYS,
    CLASSIFICATION_LOAD_MULTIPLIERS,
    HARD_EFFORT_MIN,
    HIGH_ZONE_MINUTES_HARD,
    HIGH_ZONE_MINUTES_MODERATE,
    HIGH_ZONE_MODERATE_MIN_DURATION,
    LONG_SESSION_EFFORT_MIN,
    LONG_SESSION_HIGH_ZONE_MINUTES,
    LONG_SESSION_HIGH_ZONE_RATIO,
    LONG_SESSION_MINUTES,
    LONGEST_RUN_LOOKBACK_DAYS,
    RECENT_DAYS,
    RECOVERY_EFFORT_INCLUDE_MIN,
    RECOVERY_HR_FRACTION_INCLUDE,
    RECOVERY_Z3_PLUS_INCLUDE_MINUTES,
    TYPE_FALLBACK_ENDURANCE_MINUTES,
    VERY_HARD_DURATION_MINUTES,
    VERY_HARD_EFFORT_MIN,
    VERY_HARD_HIGH_ZONE_MINUTES,
)
from .dates import add_days, diff_days
from .kinds import Modality
from .models import ActivityRecord, Readiness, ScoreRecord, Signals

_HARD_CLASSIFICATION = re.compile(r"tempo|interval|zone4|zone5|mixed|threshold|vo2max")
_HARD_TYPE_FALLBACK = re.compile(
    r"tempo|interval|hiit|crossfit|volleyball|soccer|basketball|handball|martial|boxing|kickbox"
)
_STRENGTH_TYPE_FALLBACK = re.compile(r"strength|functional|gym|climbing")
_ENDURANCE_TYPE_FALLBACK = re.compile(r"running|cycling|bike")
_ACTIVE_RECOVERY = re.compile(r"flexibility|mobility|yoga|stretch|recovery")

_STRENGTH_TYPES = re.compile(r"strength|gym|functional|hypertrophy|weight|crossfit|calisthenics")
_ENDURANCE_TYPES = re.compile(
    r"run|jog|walk|hik|cycl|bike|swim|row|ski|elliptical|cardio|zone|tempo|interval|hiit|brick|multisport|triathlon"
)


# =============================================================================
# CLASSIFICATION
# =============================================================================


def is_hard_activity(activity: ActivityRecord) -> bool:
    """
    Whether an activity needs at least one recovery day afterwards.

    Priority order:
        1. Effort score >= 7
        2. Classification keyword (tempo, interval, zone4/5, threshold, ...)
        3. High-zone (Z4+Z5) minutes: ratio rule above 90 min, absolute below
        4. Type keywords, only when no effort/zone/classification data exists

    Args:
        activity: Normalized activity record

    Returns:
        True if the activity counts as hard
    """
    duration = activity.duration_minutes
    effort = activity.effort_score
    high = activity.high_zone_minutes

    if effort is not None and effort >= HARD_EFFORT_MIN:
        return True

    if _HARD_CLASSIFICATION.search(activity.classification):
        return True

    if high is not None:
        if duration > LONG_SESSION_MINUTES:
            # A few threshold minutes inside a 3h ride do not make it hard
            if high / duration >= LONG_SESSION_HIGH_ZONE_RATIO:
                return True
            if high >= LONG_SESSION_HIGH_ZONE_MINUTES:
                return True
            return effort is not None and effort >= LONG_SESSION_EFFORT_MIN
        if high >= HIGH_ZONE_MINUTES_HARD:
            return True
        if high >= HIGH_ZONE_MINUTES_MODERATE and duration >= HIGH_ZONE_MODERATE_MIN_DURATION:
            return True

    if not activity.has_vitals:
        kind = activity.activity_type
        if _HARD_TYPE_FALLBACK.search(kind) or _STRENGTH_TYPE_FALLBACK.search(kind):
            return True
        if _ENDURANCE_TYPE_FALLBACK.search(kind) and duration >= TYPE_FALLBACK_ENDURANCE_MINUTES:
            return True

    return False


def is_very_hard_activity(activity: ActivityRecord) -> bool:
    """Very hard activities need two recovery days instead of one."""
    if activity.effort_score is not None and activity.effort_score >= VERY_HARD_EFFORT_MIN:
        return True
    if (
        activity.high_zone_minutes is not None
        and activity.high_zone_minutes >= VERY_HARD_HIGH_ZONE_MINUTES
    ):
        return True
    return activity.duration_minutes >= VERY_HARD_DURATION_MINUTES and is_hard_activity(activity)


def activity_modality(activity_type: str) -> Modality | None:
    """Coarse modality of a raw activity type, or None for yoga, team sports etc."""
    lowered = activity_type.lower()
    if _STRENGTH_TYPES.search(lowered):
        return "strength"
    if _ENDURANCE_TYPES.search(lowered):
        return "endurance"
    return None


# =============================================================================
# LOAD
# =============================================================================


def is_active_recovery(activity_type: str) -> bool:
    return bool(_ACTIVE_RECOVERY.search(activity_type.lower()))


def should_exclude_from_load(activity: ActivityRecord) -> bool:
    """
    Low-intensity active recovery (easy yoga, mobility) carries no load.

    Intense sessions of the same types still count: effort >= 5,
    more than 5 minutes in Z3 or above, or average HR above 70% of max.
    """
    if not is_active_recovery(activity.activity_type):
        return False

    if activity.effort_score is not None and activity.effort_score >= RECOVERY_EFFORT_INCLUDE_MIN:
        return False

    zones = activity.hr_zone_minutes
    z3_plus = sum(zones.get(z, 0.0) for z in (3, 4, 5))
    if z3_plus > RECOVERY_Z3_PLUS_INCLUDE_MINUTES:
        return False

    avg_hr = activity.avg_heart_rate
    max_hr = activity.max_heart_rate
    if avg_hr is not None and max_hr and avg_hr / max_hr > RECOVERY_HR_FRACTION_INCLUDE:
        return False

    return True


def activity_load(activity: ActivityRecord) -> float:
    """
    Intensity-weighted load of one activity (arbitrary units).

    Cascade, first available wins:
        1. HR zones:        sum(minutes_z * z) for z in 1..5
        2. Session RPE:     effort * duration       (effort in 1..10)
        3. Classification:  duration * multiplier   (recovery 0.5 .. intervals 2.5)
        4. Duration alone

    Args:
        activity: Normalized activity record

    Returns:
        Load value (>= 0)
    """
    zones = activity.hr_zone_minutes
    zone_total = sum(zones.get(z, 0.0) for z in range(1, 6))
    if zone_total > 0:
        return sum(zones.get(z, 0.0) * z for z in range(1, 6))

    duration = activity.duration_minutes
    effort = activity.effort_score
    if effort is not None and 1 <= effort <= 10:
        return effort * duration

    multiplier = CLASSIFICATION_LOAD_MULTIPLIERS.get(activity.classification)
    if multiplier is not None:
        return duration * multiplier

    return duration


def daily_loads(activities: list[ActivityRecord]) -> dict[str, float]:
    """Sum of activity load per local date, active recovery excluded."""
    loads: dict[str, float] = {}
    for a in activities:
        if should_exclude_from_load(a):
            continue
        loads[a.local_date] = loads.get(a.local_date, 0.0) + activity_load(a)
    return loads


def compute_acwr(activities: list[ActivityRecord], today: str) -> float | None:
    """
    Acute:chronic workload ratio.

    Formula:
        acute   = sum(load over [today-6, today])
        chronic = sum(load over [today-27, today]) / 4
        ACWR    = acute / chronic

    Rest days contribute zero. Returns None when the history spans fewer
    than 7 days or chronic load is zero.

    Args:
        activities: All known activities (any date range)
        today: Evaluation date

    Returns:
        ACWR rounded to 2 decimals, or None
    """
    past = [a for a in activities if a.local_date <= today]
    if not past:
        return None

    earliest = min(a.local_date for a in past)
    if diff_days(today, earliest) + 1 < RECENT_DAYS:
        logger.debug(f"ACWR unavailable: history starts {earliest}, fewer than {RECENT_DAYS} days")
        return None

    loads = daily_loads(past)
    acute_start = add_days(today, -(RECENT_DAYS - 1))
    chronic_start = add_days(today, -(CHRONIC_DAYS - 1))

    acute = sum(v for d, v in loads.items() if acute_start <= d <= today)
    chronic_total = sum(v for d, v in loads.items() if chronic_start <= d <= today)
    return acwr_from_sums(acute, chronic_total)


def acwr_from_sums(acute: float, chronic_total: float) -> float | None:
    """ACWR from the 7-day and 28-day load sums (chronic = 28-day sum / 4)."""
    chronic = chronic_total / (CHRONIC_DAYS / RECENT_DAYS)
    if chronic <= 0:
        return None
    return round(acute / chronic, 2)


def acwr_risk(acwr: float | None) -> str:
    """
    Injury-risk label for an ACWR value.

    > 2.0 high, > 1.5 elevated, 0.8-1.5 safe, < 0.8 detraining.
    """
    if acwr is None:
        return "unknown"
    if acwr > ACWR_HIGH:
        return "high"
    if acwr > ACWR_ELEVATED:
        return "elevated"
    if acwr >= ACWR_DETRAINING:
        return "safe"
    return "detraining"


# =============================================================================
# READINESS & SIGNAL BUNDLE
# =============================================================================


def readiness_for(scores: list[ScoreRecord], today: str) -> Readiness | None:
    """Today's readiness composite, or None when no score exists for today."""
    for s in scores:
        if s.local_date == today and s.readiness_score is not None:
            return Readiness(
                score=s.readiness_score,
                label=s.readiness_label,
                recovery=s.recovery_score,
                sleep=s.sleep_score,
                data_quality=s.data_quality,
            )
    return None


def reported_load_ratio(scores: list[ScoreRecord], today: str) -> tuple[float, str] | None:
    """Most recent load ratio reported on or before today, with its source tag."""
    candidates = sorted(
        (s for s in scores if s.local_date <= today and s.load_ratio is not None),
        key=lambda s: s.local_date,
        reverse=True,
    )
    if not candidates:
        return None
    latest = candidates[0]
    source = "reported_ewma" if latest.load_method == "ewma" else "reported"
    return latest.load_ratio, source  # type: ignore[return-value]


def longest_recent_endurance(activities: list[ActivityRecord], today: str) -> float | None:
    """Longest completed endurance activity within the lookback window."""
    start = add_days(today, -LONGEST_RUN_LOOKBACK_DAYS)
    durations = [
        a.duration_minutes
        for a in activities
        if start <= a.local_date <= today and activity_modality(a.activity_type) == "endurance"
    ]
    return max(durations) if durations else None


def collect_signals(
    activities: list[ActivityRecord],
    today: str,
    scores: list[ScoreRecord] | None = None,
) -> Signals:
    """
    Derive all recent training signals for one planning run.

    Args:
        activities: Normalized activity records (any date range)
        today: Evaluation date
        scores: Daily score records, may be empty

    Returns:
        Signals for the trailing 7-day window plus ACWR and readiness
    """
    scores = scores or []
    signals = Signals()

    for a in activities:
        delta = diff_days(today, a.local_date)
        if delta < 0 or delta > RECENT_DAYS - 1:
            continue
        signals.completed_dates.add(a.local_date)
        if not should_exclude_from_load(a):
            signals.total_minutes += max(0.0, a.duration_minutes)
        if is_hard_activity(a):
            signals.hard_count += 1
            signals.hard_dates.add(a.local_date)
            signals.hard_activity_dates.append(a.local_date)
            if is_very_hard_activity(a):
                signals.very_hard_dates.add(a.local_date)
        modality = activity_modality(a.activity_type)
        if modality == "endurance":
            signals.completed_endurance += 1
        elif modality == "strength":
            signals.completed_strength += 1

    signals.yesterday_hard = add_days(today, -1) in signals.hard_dates
    signals.trained_today = today in signals.completed_dates

    reported = reported_load_ratio(scores, today)
    if reported is not None:
        signals.acwr, signals.acwr_source = reported
    else:
        signals.acwr = compute_acwr(activities, today)
        signals.acwr_source = "computed"

    signals.readiness = readiness_for(scores, today)
    signals.longest_recent_endurance_minutes = longest_recent_endurance(activities, today)

    logger.debug(
        f"Signals for {today}: {signals.hard_count} hard, {math.floor(signals.total_minutes)} min, "
        f"ACWR {signals.acwr} ({signals.acwr_source})"
    )
    return signals
